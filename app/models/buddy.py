from datetime import datetime
from enum import Enum
from typing import Optional
from app.models.base import DocumentModel


class BuddyRequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class BuddyStatus(str, Enum):
    """두 사용자 간 관계 상태 (a 기준)"""
    NOT_CONNECTED = "not_connected"
    REQUEST_SENT = "request_sent"
    REQUEST_RECEIVED = "request_received"
    BUDDIES = "buddies"


class BuddyRequest(DocumentModel):
    """버디 요청. ID는 "{fromUserId}_{toUserId}", 수락/거절 이후에는 상태가 바뀌지 않습니다."""
    id: str
    from_user_id: str
    to_user_id: str
    from_username: Optional[str] = None
    from_display_name: str
    from_image_url: Optional[str] = None
    to_username: Optional[str] = None
    to_display_name: str
    to_image_url: Optional[str] = None
    status: BuddyRequestStatus = BuddyRequestStatus.PENDING
    created_at: datetime

    @staticmethod
    def make_id(from_user_id: str, to_user_id: str) -> str:
        return f"{from_user_id}_{to_user_id}"


class Buddy(DocumentModel):
    """
    users/{userId}/buddies/{buddyId}에 저장되는 방향성 있는 버디 엣지

    수락 시 양쪽 사용자 아래에 하나씩, 총 두 개의 문서로 기록됩니다.
    """
    id: str
    username: Optional[str] = None
    display_name: str
    image_url: Optional[str] = None
    buddy_since: datetime


class BuddyEdgeRepair(DocumentModel):
    """대칭 엣지의 두 번째 쓰기가 실패했을 때 남기는 복구 작업"""
    id: str
    owner_id: str
    buddy: Buddy
    created_at: datetime
