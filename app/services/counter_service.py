"""
반응(좋아요/댓글) 카운터 유지 서비스

반응 문서가 생성/삭제될 때 부모 문서의 비정규화 카운터(likesCount, commentsCount)를
저장소의 원자적 증감 연산으로 +1/-1 합니다. read-modify-write는 사용하지 않으므로
서로 다른 사용자의 동시 반응에도 카운터가 어긋나지 않습니다.

한계:
- 이벤트 플랫폼이 같은 트리거를 재전달하면 카운터가 어긋날 수 있습니다 (정확히 한 번 보장 없음).
- 증감 실패는 로깅 후 버립니다. 실제 개수는 하위 컬렉션을 다시 세면 언제든 복구됩니다 (recount).
"""

from __future__ import annotations
import logging
import uuid
from typing import Callable, Dict, List, Optional
from datetime import datetime
from app.core.config import COMMENT_MAX_LENGTH
from app.exception.base_exception import BaseCustomException, ErrorCode
from app.exception.domain.domain_exception import ContentTooLongError
from app.exception.store.store_exception import DocumentNotFoundError, StoreOperationError
from app.models.reaction import Comment, CounterTarget, Like
from app.models.user import UserProfile
from app.repositories.base import IDocumentStore
from app.utils.clock import utc_now

logger = logging.getLogger("app")

RATINGS_COLLECTION = "ratings"
LIKES_FIELD = "likesCount"
COMMENTS_FIELD = "commentsCount"


def review_likes_path(rating_id: str) -> str:
    return f"{RATINGS_COLLECTION}/{rating_id}/likes"


def comments_path(rating_id: str) -> str:
    return f"{RATINGS_COLLECTION}/{rating_id}/comments"


def comment_likes_path(rating_id: str, comment_id: str) -> str:
    return f"{comments_path(rating_id)}/{comment_id}/likes"


class CounterService:
    """반응 트리거를 받아 부모 카운터를 원자적으로 증감"""

    def __init__(self, store: IDocumentStore):
        self.store = store

    async def on_reaction_written(self, target: CounterTarget, delta: int) -> bool:
        """
        부모 카운터 증감

        Args:
            target: 증감할 부모 문서와 필드
            delta: 생성 시 +1, 삭제 시 -1

        Returns:
            bool: 반영 성공 여부 (실패는 예외 대신 False, 로깅 후 폐기)
        """
        try:
            await self.store.atomic_increment(target.path, target.doc_id, target.field, delta)
            return True
        except (StoreOperationError, DocumentNotFoundError) as e:
            logger.error({
                "event": "counter_update_dropped",
                "errorCode": e.error_code.value,
                "message": e.message,
                "target": f"{target.path}/{target.doc_id}",
                "field": target.field,
                "delta": delta,
            })
            return False

    async def recount(self, target: CounterTarget, children_path: str) -> int:
        """
        하위 컬렉션의 실제 문서 수로 카운터를 덮어써 복구

        Note:
            운영 중 드리프트 보정용 수동 작업입니다. 트리거 경로에서는 사용하지 않습니다.
        """
        live = len(await self.store.query(children_path))
        await self.store.update(target.path, target.doc_id, {target.field: live})
        logger.info(f"Recounted {target.path}/{target.doc_id}.{target.field} = {live}")
        return live


class ReactionService:
    """
    리뷰/댓글 좋아요와 댓글 쓰기

    카운터는 직접 건드리지 않습니다. 반응 문서의 생성/삭제가 트리거를 통해
    CounterService.on_reaction_written으로 이어집니다.
    """

    def __init__(self, store: IDocumentStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    def _like(self, parent_id: str, actor: UserProfile) -> Like:
        return Like(
            id=Like.make_id(parent_id, actor.id),
            parent_id=parent_id,
            user_id=actor.id,
            username=actor.username,
            user_display_name=actor.display_name or None,
            user_image_url=actor.image_url,
            created_at=self.clock(),
        )

    async def _put_like(self, path: str, like: Like) -> Like:
        # 사용자당 부모별 최대 1개. 이미 있으면 다시 쓰지 않음 (멱등)
        existing = await self.store.get(path, like.id)
        if existing is not None:
            return Like.from_document(existing)
        await self.store.set(path, like.id, like.to_document())
        return like

    # ------------------------------------------------------------------
    # 리뷰 좋아요
    # ------------------------------------------------------------------

    async def like_review(self, rating_id: str, actor: UserProfile) -> Like:
        return await self._put_like(review_likes_path(rating_id), self._like(rating_id, actor))

    async def unlike_review(self, rating_id: str, user_id: str) -> None:
        await self.store.delete(review_likes_path(rating_id), Like.make_id(rating_id, user_id))

    async def has_liked_review(self, rating_id: str, user_id: str) -> bool:
        doc = await self.store.get(review_likes_path(rating_id), Like.make_id(rating_id, user_id))
        return doc is not None

    async def review_likes(self, rating_id: str) -> List[Like]:
        """좋아요 목록 (최신순)"""
        docs = await self.store.query(review_likes_path(rating_id), order_by="createdAt", descending=True)
        return [Like.from_document(doc) for doc in docs]

    # ------------------------------------------------------------------
    # 댓글
    # ------------------------------------------------------------------

    async def add_comment(self, rating_id: str, actor: UserProfile, content: str) -> Comment:
        """
        댓글 작성

        Raises:
            ContentTooLongError: 100자 초과
            BaseCustomException(COMMON_BAD_REQUEST): 공백뿐인 내용
        """
        content = content.strip()
        if not content:
            raise BaseCustomException(
                message="댓글 내용이 비어 있습니다.",
                error_code=ErrorCode.COMMON_BAD_REQUEST,
                status_code=400,
            )
        if len(content) > COMMENT_MAX_LENGTH:
            raise ContentTooLongError(f"댓글은 {COMMENT_MAX_LENGTH}자를 초과할 수 없습니다.")

        comment = Comment(
            id=str(uuid.uuid4()),
            rating_id=rating_id,
            user_id=actor.id,
            username=actor.username,
            user_display_name=actor.display_name or None,
            user_image_url=actor.image_url,
            content=content,
            created_at=self.clock(),
        )
        await self.store.set(comments_path(rating_id), comment.id, comment.to_document())
        return comment

    async def delete_comment(self, rating_id: str, comment_id: str) -> None:
        await self.store.delete(comments_path(rating_id), comment_id)

    async def comments(self, rating_id: str) -> List[Comment]:
        """댓글 목록 (오래된 순)"""
        docs = await self.store.query(comments_path(rating_id), order_by="createdAt")
        return [Comment.from_document(doc) for doc in docs]

    # ------------------------------------------------------------------
    # 댓글 좋아요
    # ------------------------------------------------------------------

    async def like_comment(self, rating_id: str, comment_id: str, actor: UserProfile) -> Like:
        return await self._put_like(comment_likes_path(rating_id, comment_id), self._like(comment_id, actor))

    async def unlike_comment(self, rating_id: str, comment_id: str, user_id: str) -> None:
        await self.store.delete(comment_likes_path(rating_id, comment_id), Like.make_id(comment_id, user_id))

    async def has_liked_comment(self, rating_id: str, comment_id: str, user_id: str) -> bool:
        doc = await self.store.get(comment_likes_path(rating_id, comment_id), Like.make_id(comment_id, user_id))
        return doc is not None

    # ------------------------------------------------------------------
    # 실시간 개수
    # ------------------------------------------------------------------

    async def live_counts(self, rating_id: str) -> Dict[str, int]:
        """카운터 필드가 아닌 하위 컬렉션을 직접 센 값"""
        likes = await self.store.query(review_likes_path(rating_id))
        comments = await self.store.query(comments_path(rating_id))
        return {LIKES_FIELD: len(likes), COMMENTS_FIELD: len(comments)}

    async def comment(self, rating_id: str, comment_id: str) -> Optional[Comment]:
        doc = await self.store.get(comments_path(rating_id), comment_id)
        return Comment.from_document(doc) if doc is not None else None
