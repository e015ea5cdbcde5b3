from typing import Any, Dict, List
from fastapi import APIRouter, Depends, status
from app.api.dependencies import get_buddy_service, get_current_user_id, get_user_service
from app.core.response import ApiResponse, success_response
from app.models.buddy import Buddy, BuddyRequest
from app.models.dto import SendBuddyRequest
from app.services.buddy_service import BuddyService
from app.services.user_service import UserService

router = APIRouter(
    prefix="/api/buddies",
    tags=["Buddies"],
)


@router.get("/{user_id}", response_model=ApiResponse[List[Buddy]])
async def list_buddies(
    user_id: str,
    buddy_service: BuddyService = Depends(get_buddy_service),
):
    """버디 목록 (buddy_since 최신순)"""
    return success_response(result=await buddy_service.list_buddies(user_id))


@router.get("/{user_id}/status/{other_id}", response_model=ApiResponse[Dict[str, Any]])
async def get_buddy_status(
    user_id: str,
    other_id: str,
    buddy_service: BuddyService = Depends(get_buddy_service),
):
    """user_id 기준 관계 상태 (not_connected / request_sent / request_received / buddies)"""
    buddy_status = await buddy_service.pending_status(user_id, other_id)
    return success_response(result={"status": buddy_status.value})


@router.get("/{user_id}/requests/received", response_model=ApiResponse[List[BuddyRequest]])
async def list_received_requests(
    user_id: str,
    buddy_service: BuddyService = Depends(get_buddy_service),
):
    return success_response(result=await buddy_service.pending_requests(user_id))


@router.get("/{user_id}/requests/sent", response_model=ApiResponse[List[BuddyRequest]])
async def list_sent_requests(
    user_id: str,
    buddy_service: BuddyService = Depends(get_buddy_service),
):
    return success_response(result=await buddy_service.sent_requests(user_id))


@router.post("/requests", status_code=status.HTTP_201_CREATED, response_model=ApiResponse[BuddyRequest])
async def send_buddy_request(
    body: SendBuddyRequest,
    current_user_id: str = Depends(get_current_user_id),
    buddy_service: BuddyService = Depends(get_buddy_service),
    user_service: UserService = Depends(get_user_service),
):
    """
    버디 요청 보내기

    Raises:
        InvalidStatusTransitionError(409): 이미 버디이거나 이미 처리된 요청
    """
    from_user = await user_service.profile_or_placeholder(current_user_id)
    to_user = await user_service.profile_or_placeholder(body.to_user_id)
    request = await buddy_service.send_request(from_user, to_user)
    return success_response(result=request)


@router.post("/requests/{request_id}/accept", response_model=ApiResponse[BuddyRequest])
async def accept_buddy_request(
    request_id: str,
    buddy_service: BuddyService = Depends(get_buddy_service),
):
    return success_response(result=await buddy_service.accept_request(request_id))


@router.post("/requests/{request_id}/reject", response_model=ApiResponse[BuddyRequest])
async def reject_buddy_request(
    request_id: str,
    buddy_service: BuddyService = Depends(get_buddy_service),
):
    return success_response(result=await buddy_service.reject_request(request_id))


@router.delete("/{user_id}/{buddy_id}", response_model=ApiResponse[Dict[str, Any]])
async def remove_buddy(
    user_id: str,
    buddy_id: str,
    buddy_service: BuddyService = Depends(get_buddy_service),
):
    """양쪽 엣지 삭제 (멱등)"""
    await buddy_service.remove_buddy(user_id, buddy_id)
    return success_response(result={"deleted": True})
