from typing import Any, Dict, List
from fastapi import APIRouter, Depends, status
from app.api.dependencies import get_current_user_id, get_rating_service, get_reaction_service, get_user_service
from app.core.response import ApiResponse, success_response
from app.models.dto import AddCommentRequest, SaveRatingRequest
from app.models.rating import Rating
from app.models.reaction import Comment, Like
from app.services.counter_service import ReactionService
from app.services.rating_service import RatingService
from app.services.user_service import UserService

router = APIRouter(
    prefix="/api/ratings",
    tags=["Ratings"],
)


@router.post("", response_model=ApiResponse[Rating])
async def save_rating(
    body: SaveRatingRequest,
    current_user_id: str = Depends(get_current_user_id),
    rating_service: RatingService = Depends(get_rating_service),
    user_service: UserService = Depends(get_user_service),
):
    """
    평점 저장 (같은 아이템 재평가 시 덮어쓰기)

    - item 스냅샷이 없으면 item_id/item_type으로 카탈로그를 조회합니다.

    Raises:
        InvalidScoreError(400): 점수 범위 오류
        CatalogLookupError(503): 카탈로그 조회 실패
    """
    user = await user_service.profile_or_placeholder(current_user_id)
    item = body.item or await rating_service.resolve_item(body.item_id, body.item_type)
    rating = await rating_service.save_rating(user, item, body.score, body.review_text)
    return success_response(result=rating)


@router.delete("/{rating_id}", response_model=ApiResponse[Dict[str, Any]])
async def delete_rating(
    rating_id: str,
    rating_service: RatingService = Depends(get_rating_service),
):
    await rating_service.delete_rating(rating_id)
    return success_response(result={"deleted": True})


@router.put("/{rating_id}/likes/{user_id}", response_model=ApiResponse[Like])
async def like_review(
    rating_id: str,
    user_id: str,
    reaction_service: ReactionService = Depends(get_reaction_service),
    user_service: UserService = Depends(get_user_service),
):
    """리뷰 좋아요 (사용자당 1개, 멱등)"""
    actor = await user_service.profile_or_placeholder(user_id)
    return success_response(result=await reaction_service.like_review(rating_id, actor))


@router.get("/{rating_id}/likes", response_model=ApiResponse[List[Like]])
async def list_review_likes(
    rating_id: str,
    reaction_service: ReactionService = Depends(get_reaction_service),
):
    """리뷰 좋아요 목록 (최신순)"""
    return success_response(result=await reaction_service.review_likes(rating_id))


@router.delete("/{rating_id}/likes/{user_id}", response_model=ApiResponse[Dict[str, Any]])
async def unlike_review(
    rating_id: str,
    user_id: str,
    reaction_service: ReactionService = Depends(get_reaction_service),
):
    await reaction_service.unlike_review(rating_id, user_id)
    return success_response(result={"deleted": True})


@router.get("/{rating_id}/comments", response_model=ApiResponse[List[Comment]])
async def list_comments(
    rating_id: str,
    reaction_service: ReactionService = Depends(get_reaction_service),
):
    """댓글 목록 (오래된 순)"""
    return success_response(result=await reaction_service.comments(rating_id))


@router.post("/{rating_id}/comments", status_code=status.HTTP_201_CREATED, response_model=ApiResponse[Comment])
async def add_comment(
    rating_id: str,
    body: AddCommentRequest,
    current_user_id: str = Depends(get_current_user_id),
    reaction_service: ReactionService = Depends(get_reaction_service),
    user_service: UserService = Depends(get_user_service),
):
    """
    Raises:
        ContentTooLongError(400): 100자 초과
    """
    actor = await user_service.profile_or_placeholder(current_user_id)
    comment = await reaction_service.add_comment(rating_id, actor, body.content)
    return success_response(result=comment)


@router.delete("/{rating_id}/comments/{comment_id}", response_model=ApiResponse[Dict[str, Any]])
async def delete_comment(
    rating_id: str,
    comment_id: str,
    reaction_service: ReactionService = Depends(get_reaction_service),
):
    await reaction_service.delete_comment(rating_id, comment_id)
    return success_response(result={"deleted": True})


@router.put("/{rating_id}/comments/{comment_id}/likes/{user_id}", response_model=ApiResponse[Like])
async def like_comment(
    rating_id: str,
    comment_id: str,
    user_id: str,
    reaction_service: ReactionService = Depends(get_reaction_service),
    user_service: UserService = Depends(get_user_service),
):
    actor = await user_service.profile_or_placeholder(user_id)
    return success_response(result=await reaction_service.like_comment(rating_id, comment_id, actor))


@router.delete("/{rating_id}/comments/{comment_id}/likes/{user_id}", response_model=ApiResponse[Dict[str, Any]])
async def unlike_comment(
    rating_id: str,
    comment_id: str,
    user_id: str,
    reaction_service: ReactionService = Depends(get_reaction_service),
):
    await reaction_service.unlike_comment(rating_id, comment_id, user_id)
    return success_response(result={"deleted": True})
