from __future__ import annotations
import logging
from typing import Awaitable, Callable, List, Optional, Sequence
from app.models.rating import Rating
from app.models.store import FieldFilter
from app.repositories.base import Document, IDocumentStore, Unsubscribe

logger = logging.getLogger("app")

RatingSubscriber = Callable[[List[Rating]], Awaitable[None]]

RATINGS_COLLECTION = "ratings"


class RatingStream:
    """
    실시간 평점 스트림 구독 객체

    저장소 리스너를 하나 소유하고, 마지막 스냅샷을 snapshot으로 보관합니다.
    스냅샷이 바뀔 때마다(replace) 등록된 구독자를 순서대로 호출합니다.
    집계/피드 계산은 이 스냅샷을 입력으로 다시 수행하면 됩니다.
    """

    def __init__(self, store: IDocumentStore, filters: Sequence[FieldFilter] = ()):
        self.store = store
        self.filters = tuple(filters)
        self._snapshot: List[Rating] = []
        self._subscribers: List[RatingSubscriber] = []
        self._unsubscribe: Optional[Unsubscribe] = None

    @property
    def snapshot(self) -> List[Rating]:
        return list(self._snapshot)

    @property
    def is_running(self) -> bool:
        return self._unsubscribe is not None

    def subscribe(self, subscriber: RatingSubscriber) -> Callable[[], None]:
        """구독자 등록. 반환된 함수를 호출하면 해제됩니다."""
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    async def replace(self, ratings: List[Rating]) -> None:
        """스냅샷 교체 후 구독자 알림 (구독자 오류는 다른 구독자에게 영향 없음)"""
        self._snapshot = list(ratings)
        for subscriber in list(self._subscribers):
            try:
                await subscriber(self.snapshot)
            except Exception as e:
                logger.error(f"Rating stream subscriber failed: {e}", exc_info=True)

    async def _on_change(self, docs: List[Document]) -> None:
        await self.replace([Rating.from_document(doc) for doc in docs])

    async def start(self) -> None:
        """초기 스냅샷을 읽고 저장소 리스너를 연결 (이미 실행 중이면 무시)"""
        if self.is_running:
            return
        docs = await self.store.query(RATINGS_COLLECTION, self.filters)
        await self._on_change(docs)
        self._unsubscribe = self.store.listen(RATINGS_COLLECTION, self.filters, self._on_change)
        logger.info(f"Rating stream started with {len(self._snapshot)} ratings")

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
