from datetime import datetime
from typing import List, Optional
from pydantic import Field
from app.models.base import DocumentModel


class UserProfile(DocumentModel):
    """알림 팬아웃에 필요한 최소한의 사용자 정보 (users/{userId})"""
    id: str
    username: Optional[str] = None
    display_name: str = ""
    image_url: Optional[str] = None
    fcm_tokens: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
