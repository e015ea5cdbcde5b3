from typing import Optional
from pydantic import BaseModel, Field, model_validator
from app.models.catalog import CatalogItem, ItemType


# Request DTO
class SaveRatingRequest(BaseModel):
    """
    평점 저장 요청

    item 스냅샷을 직접 보내거나, item_id + item_type만 보내면 카탈로그에서 조회합니다.
    점수 범위(0~100)는 서비스 계층에서 검증합니다 (InvalidScoreError).
    """
    item: Optional[CatalogItem] = Field(None, description="Catalog item snapshot")
    item_id: Optional[str] = Field(None, description="Catalog item ID (Spotify ID)")
    item_type: Optional[ItemType] = Field(None, description="artist / album / track")
    score: int = Field(..., description="Score (0-100)")
    review_text: Optional[str] = Field(None, description="Optional review text")

    @model_validator(mode="after")
    def check_item_reference(self):
        if self.item is None and (self.item_id is None or self.item_type is None):
            raise ValueError("item 또는 item_id/item_type 중 하나는 필요합니다.")
        return self


class SendRecommendationRequest(BaseModel):
    """추천 보내기 요청 (메시지 길이는 서비스 계층에서 검증)"""
    receiver_id: str = Field(..., description="Receiver user ID")
    item: CatalogItem = Field(..., description="Catalog item snapshot")
    message: Optional[str] = Field(None, description="Optional message (max 100 chars)")


class SendBuddyRequest(BaseModel):
    to_user_id: str = Field(..., description="Target user ID")


class AddCommentRequest(BaseModel):
    content: str = Field(..., description="Comment content (max 100 chars)")


class RegisterTokenRequest(BaseModel):
    token: str = Field(..., min_length=1, description="FCM registration token")
