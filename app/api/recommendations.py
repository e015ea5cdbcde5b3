from typing import List
from fastapi import APIRouter, Depends, status
from app.api.dependencies import get_current_user_id, get_recommendation_service, get_user_service
from app.core.response import ApiResponse, success_response
from app.models.dto import SendRecommendationRequest
from app.models.recommendation import Recommendation
from app.services.recommendation_service import RecommendationService
from app.services.user_service import UserService

router = APIRouter(
    prefix="/api/recommendations",
    tags=["Recommendations"],
)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=ApiResponse[Recommendation])
async def send_recommendation(
    body: SendRecommendationRequest,
    current_user_id: str = Depends(get_current_user_id),
    recommendation_service: RecommendationService = Depends(get_recommendation_service),
    user_service: UserService = Depends(get_user_service),
):
    """
    추천 보내기

    Raises:
        ContentTooLongError(400): 메시지 100자 초과
    """
    sender = await user_service.profile_or_placeholder(current_user_id)
    receiver = await user_service.profile_or_placeholder(body.receiver_id)
    rec = await recommendation_service.send(sender, receiver, body.item, body.message)
    return success_response(result=rec)


@router.post("/{recommendation_id}/ignore", response_model=ApiResponse[Recommendation])
async def ignore_recommendation(
    recommendation_id: str,
    recommendation_service: RecommendationService = Depends(get_recommendation_service),
):
    """
    Raises:
        InvalidStatusTransitionError(409): 이미 rated/ignored 상태
    """
    return success_response(result=await recommendation_service.ignore(recommendation_id))


@router.get("/inbox/{user_id}", response_model=ApiResponse[List[Recommendation]])
async def get_pending_inbox(
    user_id: str,
    recommendation_service: RecommendationService = Depends(get_recommendation_service),
):
    """아직 평가하지 않은 pending 추천"""
    return success_response(result=await recommendation_service.pending_inbox(user_id))


@router.get("/received/{user_id}", response_model=ApiResponse[List[Recommendation]])
async def get_received(
    user_id: str,
    recommendation_service: RecommendationService = Depends(get_recommendation_service),
):
    return success_response(result=await recommendation_service.received(user_id))


@router.get("/sent/{user_id}", response_model=ApiResponse[List[Recommendation]])
async def get_sent(
    user_id: str,
    recommendation_service: RecommendationService = Depends(get_recommendation_service),
):
    return success_response(result=await recommendation_service.sent(user_id))
