from fastapi import APIRouter, Depends, Query, Request
from app.api.dependencies import get_feed_service
from app.core.config import RATE_LIMIT_PER_MINUTE
from app.core.limiter import limiter
from app.core.response import ApiResponse, success_response
from app.models.feed import BuddyFeed
from app.services.feed_service import FeedService

router = APIRouter(
    prefix="/api/feed",
    tags=["Feed"],
)


@router.get("", response_model=ApiResponse[BuddyFeed])
@limiter.limit(f"{RATE_LIMIT_PER_MINUTE}/minute")
async def get_feed(
    request: Request,
    user_id: str = Query(..., description="피드를 보는 사용자 ID"),
    feed_service: FeedService = Depends(get_feed_service),
):
    """
    버디 피드 조회

    버디의 평점과 범위 내 추천을 sort_date 내림차순으로 병합합니다.
    일부 묶음 조회가 실패하면 complete=false로 반환합니다.
    """
    feed = await feed_service.build_feed(user_id)
    return success_response(result=feed)
