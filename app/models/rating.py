from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field
from app.core.config import REVIEW_SHORT_MAX_LENGTH
from app.models.base import DocumentModel
from app.models.catalog import CatalogItem, ItemType, item_type_of


class ReviewLength(str, Enum):
    SHORT = "short"
    LONG = "long"


def has_text(value: Optional[str]) -> bool:
    """공백만 있는 문자열은 리뷰가 없는 것으로 취급"""
    return bool(value and value.strip())


class Rating(DocumentModel):
    """
    한 사용자의 카탈로그 아이템 평점 (선택적으로 리뷰 포함)

    문서 ID는 "{userId}_{itemId}" 복합 키이므로 같은 아이템을 다시 평가하면 덮어씁니다.
    아이템/사용자 정보는 피드 렌더링 시 추가 조회가 없도록 스냅샷으로 함께 저장합니다.
    """
    id: str
    user_id: str
    item: CatalogItem
    score: int = Field(ge=0, le=100)
    rated_at: datetime

    user_display_name: Optional[str] = None
    username: Optional[str] = None
    user_image_url: Optional[str] = None

    review_text: Optional[str] = None
    review_created_at: Optional[datetime] = None
    review_updated_at: Optional[datetime] = None

    # 반응(좋아요/댓글) 수의 비정규화 카운터. 트리거가 원자적 증감으로만 갱신합니다.
    likes_count: int = 0
    comments_count: int = 0

    @staticmethod
    def make_id(user_id: str, item_id: str) -> str:
        return f"{user_id}_{item_id}"

    @property
    def item_id(self) -> str:
        return self.item.id

    @property
    def item_type(self) -> ItemType:
        return item_type_of(self.item)

    @property
    def has_review(self) -> bool:
        return has_text(self.review_text)

    @property
    def review_length(self) -> Optional[ReviewLength]:
        if not self.has_review:
            return None
        if len(self.review_text) < REVIEW_SHORT_MAX_LENGTH:
            return ReviewLength.SHORT
        return ReviewLength.LONG

    @property
    def display_name(self) -> str:
        return self.username or self.user_display_name or "A buddy"


class AggregatedRating(BaseModel):
    """아이템별 평점 집계 결과 (저장하지 않는 파생 값)"""
    item: CatalogItem
    average_score: float
    total_ratings: int
    ratings: List[Rating]
    current_user_rating: Optional[Rating] = None

    @property
    def item_id(self) -> str:
        return self.item.id


class ActiveUser(BaseModel):
    """평점 수 기준 활동 사용자 통계"""
    user_id: str
    username: Optional[str] = None
    rating_count: int
