from __future__ import annotations
import logging
from datetime import datetime
from typing import Callable, Iterable, List, Optional
from app.core.config import MESSAGE_MAX_LENGTH
from app.exception.domain.domain_exception import ContentTooLongError, InvalidStatusTransitionError
from app.exception.store.store_exception import DocumentNotFoundError
from app.models.catalog import CatalogItem
from app.models.rating import Rating
from app.models.recommendation import Recommendation, RecommendationStatus
from app.models.store import where
from app.models.user import UserProfile
from app.repositories.base import IDocumentStore
from app.utils.clock import utc_now

logger = logging.getLogger("app")

RECOMMENDATIONS_COLLECTION = "recommendations"
RATINGS_COLLECTION = "ratings"


class RecommendationService:
    """
    추천 보내기와 상태 변경

    상태는 pending -> rated, pending -> ignored 로만 바뀌며 되돌릴 수 없습니다.
    같은 아이템을 같은 사람에게 다시 보내면 ID의 밀리초 타임스탬프가 달라 별도 추천으로 남습니다.
    """

    def __init__(self, store: IDocumentStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    async def get(self, recommendation_id: str) -> Optional[Recommendation]:
        doc = await self.store.get(RECOMMENDATIONS_COLLECTION, recommendation_id)
        return Recommendation.from_document(doc) if doc is not None else None

    async def send(
        self,
        sender: UserProfile,
        receiver: UserProfile,
        item: CatalogItem,
        message: Optional[str] = None,
    ) -> Recommendation:
        """
        Raises:
            ContentTooLongError: 메시지가 100자를 초과하는 경우
        """
        message = message.strip() if message else None
        if message and len(message) > MESSAGE_MAX_LENGTH:
            raise ContentTooLongError(f"메시지는 {MESSAGE_MAX_LENGTH}자를 초과할 수 없습니다.")

        sent_at = self.clock()
        rec = Recommendation(
            id=Recommendation.make_id(sender.id, receiver.id, item.id, sent_at),
            sender_id=sender.id,
            receiver_id=receiver.id,
            sender_username=sender.username,
            sender_display_name=sender.display_name,
            sender_image_url=sender.image_url,
            receiver_username=receiver.username,
            receiver_display_name=receiver.display_name,
            receiver_image_url=receiver.image_url,
            item=item,
            message=message or None,
            sent_at=sent_at,
        )
        await self.store.set(RECOMMENDATIONS_COLLECTION, rec.id, rec.to_document())
        return rec

    async def _transition(
        self,
        recommendation_id: str,
        target: RecommendationStatus,
        receiver_rating_id: Optional[str] = None,
    ) -> Recommendation:
        rec = await self.get(recommendation_id)
        if rec is None:
            raise DocumentNotFoundError(f"추천을 찾을 수 없습니다: {recommendation_id}")
        if rec.status != RecommendationStatus.PENDING:
            raise InvalidStatusTransitionError(
                f"추천 상태를 변경할 수 없습니다: {rec.status.value} -> {target.value}"
            )

        changes = {"status": target.value}
        if receiver_rating_id is not None:
            changes["receiverRatingId"] = receiver_rating_id
        await self.store.update(RECOMMENDATIONS_COLLECTION, recommendation_id, changes)
        return rec.model_copy(update={"status": target, "receiver_rating_id": receiver_rating_id or rec.receiver_rating_id})

    async def mark_rated(self, recommendation_id: str, rating_id: str) -> Recommendation:
        return await self._transition(recommendation_id, RecommendationStatus.RATED, receiver_rating_id=rating_id)

    async def ignore(self, recommendation_id: str) -> Recommendation:
        return await self._transition(recommendation_id, RecommendationStatus.IGNORED)

    async def mark_rated_for_item(self, receiver_id: str, item_id: str, rating_id: str) -> int:
        """받은 사람이 아이템을 평가했을 때 해당 아이템의 pending 추천을 모두 rated로 변경"""
        docs = await self.store.query(
            RECOMMENDATIONS_COLLECTION,
            [
                where("receiverId", "==", receiver_id),
                where("item.id", "==", item_id),
                where("status", "==", RecommendationStatus.PENDING.value),
            ],
        )
        marked = 0
        for doc in docs:
            # 조회 이후 상태가 바뀐 추천은 건너뛰고 나머지를 계속 처리
            try:
                await self.mark_rated(doc["id"], rating_id)
            except (InvalidStatusTransitionError, DocumentNotFoundError) as e:
                logger.warning({
                    "event": "recommendation_mark_rated_skipped",
                    "errorCode": e.error_code.value,
                    "message": e.message,
                    "recommendation": doc["id"],
                    "rating": rating_id,
                })
                continue
            marked += 1
        return marked

    async def received(self, user_id: str) -> List[Recommendation]:
        """받은 추천 (최신순)"""
        docs = await self.store.query(
            RECOMMENDATIONS_COLLECTION,
            [where("receiverId", "==", user_id)],
            order_by="sentAt",
            descending=True,
        )
        return [Recommendation.from_document(doc) for doc in docs]

    async def sent(self, user_id: str) -> List[Recommendation]:
        """보낸 추천 (최신순)"""
        docs = await self.store.query(
            RECOMMENDATIONS_COLLECTION,
            [where("senderId", "==", user_id)],
            order_by="sentAt",
            descending=True,
        )
        return [Recommendation.from_document(doc) for doc in docs]

    async def pending_inbox(self, user_id: str, own_ratings: Optional[Iterable[Rating]] = None) -> List[Recommendation]:
        """
        아직 처리하지 않은 받은 추천

        status가 pending이고, 받은 사람이 해당 아이템을 아직 평가하지 않은 추천만 남깁니다.
        own_ratings를 넘기지 않으면 저장소에서 사용자의 평점을 조회합니다.
        """
        if own_ratings is None:
            docs = await self.store.query(RATINGS_COLLECTION, [where("userId", "==", user_id)])
            own_ratings = [Rating.from_document(doc) for doc in docs]

        rated_item_ids = {rating.item_id for rating in own_ratings}
        return [
            rec for rec in await self.received(user_id)
            if rec.status == RecommendationStatus.PENDING and rec.item_id not in rated_item_ids
        ]
