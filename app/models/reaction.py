from datetime import datetime
from typing import Optional
from pydantic import BaseModel
from app.models.base import DocumentModel


class Like(DocumentModel):
    """리뷰(평점) 또는 댓글에 대한 좋아요. 사용자당 부모별 최대 1개."""
    id: str
    parent_id: str
    user_id: str
    username: Optional[str] = None
    user_display_name: Optional[str] = None
    user_image_url: Optional[str] = None
    created_at: datetime

    @staticmethod
    def make_id(parent_id: str, user_id: str) -> str:
        return f"{parent_id}_{user_id}"


class Comment(DocumentModel):
    """리뷰(평점)에 달린 댓글 (최대 100자)"""
    id: str
    rating_id: str
    user_id: str
    username: Optional[str] = None
    user_display_name: Optional[str] = None
    user_image_url: Optional[str] = None
    content: str
    created_at: datetime
    updated_at: Optional[datetime] = None

    likes_count: int = 0


class CounterTarget(BaseModel):
    """
    반응 문서가 생성/삭제될 때 증감해야 할 부모 문서의 카운터 위치

    예: ratings/{ratingId}의 likesCount, ratings/{ratingId}/comments/{commentId}의 likesCount
    """
    path: str
    doc_id: str
    field: str
