from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Request
from app.api.dependencies import get_aggregation_service
from app.core.config import RATE_LIMIT_PER_MINUTE
from app.core.limiter import limiter
from app.core.response import ApiResponse, success_response
from app.models.catalog import ItemType
from app.models.rating import ActiveUser, AggregatedRating
from app.services.aggregation_service import AggregationService, TimePeriod

router = APIRouter(
    prefix="/api/charts",
    tags=["Charts"],
)


@router.get("", response_model=ApiResponse[List[AggregatedRating]])
@limiter.limit(f"{RATE_LIMIT_PER_MINUTE}/minute")
async def get_charts(
    request: Request,
    item_type: Optional[ItemType] = Query(None, description="artist / album / track"),
    viewer_id: Optional[str] = Query(None, description="current_user_rating 표시용 사용자 ID"),
    limit: Optional[int] = Query(None, ge=1, le=100),
    period: TimePeriod = Query(TimePeriod.ALL_TIME, description="since 미지정 시 사용할 기간"),
    since: Optional[datetime] = Query(None, description="rated_at 하한 (포함)"),
    until: Optional[datetime] = Query(None, description="rated_at 상한 (미포함)"),
    aggregation_service: AggregationService = Depends(get_aggregation_service),
):
    """
    아이템별 평점 집계 (평균 점수 내림차순)
    """
    charts = await aggregation_service.charts(
        item_type=item_type,
        viewer_user_id=viewer_id,
        limit=limit,
        since=since or period.since(),
        until=until,
    )
    return success_response(result=charts)


@router.get("/active-users", response_model=ApiResponse[List[ActiveUser]])
@limiter.limit(f"{RATE_LIMIT_PER_MINUTE}/minute")
async def get_most_active_users(
    request: Request,
    limit: int = Query(10, ge=1, le=100),
    aggregation_service: AggregationService = Depends(get_aggregation_service),
):
    """평점 수 기준 활동 사용자"""
    return success_response(result=await aggregation_service.most_active_users(limit=limit))
