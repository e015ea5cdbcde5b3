from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union
from pydantic import BaseModel, Field, computed_field
from app.models.rating import Rating
from app.models.recommendation import Recommendation


class RatingFeedItem(BaseModel):
    """버디의 평점 (sort_date = rated_at)"""
    kind: Literal["rating"] = "rating"
    rating: Rating

    @computed_field
    @property
    def id(self) -> str:
        return f"rating_{self.rating.id}"

    @computed_field
    @property
    def sort_date(self) -> datetime:
        return self.rating.rated_at


class RecommendationFeedItem(BaseModel):
    """
    추천 항목 (sort_date = sent_at)

    receiver_rating은 받은 사람이 같은 아이템에 남긴 평점이며, 아직 평가하지 않았다면 None입니다.
    """
    kind: Literal["recommendation"] = "recommendation"
    recommendation: Recommendation
    receiver_rating: Optional[Rating] = None

    @computed_field
    @property
    def id(self) -> str:
        return f"rec_{self.recommendation.id}"

    @computed_field
    @property
    def sort_date(self) -> datetime:
        return self.recommendation.sent_at


BuddyFeedItem = Annotated[Union[RatingFeedItem, RecommendationFeedItem], Field(discriminator="kind")]


class BuddyFeed(BaseModel):
    """
    병합된 피드 스냅샷

    complete가 False면 일부 묶음 조회가 실패하여 항목이 빠졌을 수 있습니다 (best-effort).
    """
    items: List[BuddyFeedItem]
    complete: bool = True
