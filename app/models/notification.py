from enum import Enum
from typing import Dict
from pydantic import BaseModel, Field


class NotificationKind(str, Enum):
    RECOMMENDATION = "recommendation"
    RATING = "rating"
    REVIEW = "review"


class NotificationPayload(BaseModel):
    """푸시 제공자에 전달할 알림 내용. data 값은 모두 문자열이어야 합니다 (FCM 제약)."""
    title: str
    body: str
    data: Dict[str, str] = Field(default_factory=dict)


class FanOutReport(BaseModel):
    """한 이벤트의 팬아웃 결과 요약 (로깅 및 테스트용)"""
    recipients: int = 0
    sent: int = 0
    failed: int = 0
    pruned: int = 0
