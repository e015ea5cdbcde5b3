from typing import Any, Dict
from fastapi import APIRouter, Depends
from app.api.dependencies import get_user_service
from app.core.response import ApiResponse, success_response
from app.models.dto import RegisterTokenRequest
from app.services.user_service import UserService

router = APIRouter(
    prefix="/api/users",
    tags=["Users"],
)


@router.post("/{user_id}/tokens", response_model=ApiResponse[Dict[str, Any]])
async def register_token(
    user_id: str,
    body: RegisterTokenRequest,
    user_service: UserService = Depends(get_user_service),
):
    """디바이스 토큰 등록 (중복 없이 추가)"""
    await user_service.register_token(user_id, body.token)
    return success_response(result={"registered": True})


@router.delete("/{user_id}/tokens", response_model=ApiResponse[Dict[str, Any]])
async def unregister_token(
    user_id: str,
    body: RegisterTokenRequest,
    user_service: UserService = Depends(get_user_service),
):
    """디바이스 토큰 제거 (로그아웃 등)"""
    await user_service.unregister_token(user_id, body.token)
    return success_response(result={"deleted": True})
