from datetime import datetime
from enum import Enum
from typing import Optional
from app.models.base import DocumentModel
from app.models.catalog import CatalogItem, ItemType, item_type_of


class RecommendationStatus(str, Enum):
    PENDING = "pending"
    RATED = "rated"
    IGNORED = "ignored"


class Recommendation(DocumentModel):
    """
    한 사용자가 다른 사용자에게 보낸 음악 추천

    status는 pending -> rated 또는 pending -> ignored로만 변경되며 되돌릴 수 없습니다.
    """
    id: str
    sender_id: str
    receiver_id: str

    sender_username: Optional[str] = None
    sender_display_name: str
    sender_image_url: Optional[str] = None
    receiver_username: Optional[str] = None
    receiver_display_name: str
    receiver_image_url: Optional[str] = None

    item: CatalogItem
    message: Optional[str] = None
    sent_at: datetime

    status: RecommendationStatus = RecommendationStatus.PENDING
    receiver_rating_id: Optional[str] = None

    @staticmethod
    def make_id(sender_id: str, receiver_id: str, item_id: str, sent_at: datetime) -> str:
        """
        추천 ID 생성 ("{sender}_{receiver}_{item}_{epochMillis}")

        Note:
            밀리초 타임스탬프를 포함하므로 같은 아이템을 같은 사람에게 다시 보내면
            별도의 추천으로 공존합니다 (중복 제거하지 않음).
        """
        millis = int(sent_at.timestamp() * 1000)
        return f"{sender_id}_{receiver_id}_{item_id}_{millis}"

    @property
    def item_id(self) -> str:
        return self.item.id

    @property
    def item_type(self) -> ItemType:
        return item_type_of(self.item)
