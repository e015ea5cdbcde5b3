import asyncio
import copy
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple
from app.core.config import IN_QUERY_LIMIT
from app.exception.store.store_exception import DocumentNotFoundError, InQueryLimitExceededError
from app.models.store import DocumentWriteEvent, FieldFilter, FilterOp
from app.repositories.base import ChangeCallback, Document, IDocumentStore, Unsubscribe

logger = logging.getLogger(__name__)

WriteObserver = Callable[[DocumentWriteEvent], Awaitable[None]]

_MISSING = object()


def resolve_field(document: Document, field: str) -> Any:
    """점(.)으로 구분된 중첩 필드 값을 꺼냅니다. 없으면 _MISSING."""
    current: Any = document
    for part in field.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def matches(document: Document, flt: FieldFilter) -> bool:
    value = resolve_field(document, flt.field)
    if value is _MISSING:
        return False

    try:
        if flt.op == FilterOp.EQ:
            return value == flt.value
        if flt.op == FilterOp.NE:
            return value != flt.value
        if flt.op == FilterOp.IN:
            return value in flt.value
        if flt.op == FilterOp.ARRAY_CONTAINS:
            return isinstance(value, list) and flt.value in value
        if value is None or flt.value is None:
            return False
        if flt.op == FilterOp.LT:
            return value < flt.value
        if flt.op == FilterOp.LTE:
            return value <= flt.value
        if flt.op == FilterOp.GT:
            return value > flt.value
        if flt.op == FilterOp.GTE:
            return value >= flt.value
    except TypeError:
        # 타입이 다른 값끼리의 비교는 불일치로 취급
        return False
    raise ValueError(f"Unsupported filter op: {flt.op}")


def check_in_limit(filters: Sequence[FieldFilter]) -> None:
    for flt in filters:
        if flt.op == FilterOp.IN and len(flt.value) > IN_QUERY_LIMIT:
            raise InQueryLimitExceededError(
                f"'in' 조건 값 {len(flt.value)}개가 허용치({IN_QUERY_LIMIT})를 초과했습니다: {flt.field}"
            )


class InMemoryDocumentStore(IDocumentStore):
    """
    In-Memory 문서 저장소 구현체

    Note:
        서버 재시작 시 데이터가 초기화됩니다.
        {collection_path: {doc_id: document}} 구조로 관리하며,
        증감/배열 연산은 asyncio.Lock으로 보호하여 동시 호출에도 원자적으로 동작합니다.

        쓰기 옵저버(add_write_observer)는 쓰기 직후 before/after 스냅샷과 함께 호출되며
        트리거 레지스트리가 이를 이용해 이벤트 플랫폼을 흉내냅니다.
    """

    def __init__(self):
        self._collections: Dict[str, Dict[str, Document]] = {}
        self._lock = asyncio.Lock()
        self._observers: List[WriteObserver] = []
        self._listeners: List[Tuple[str, Tuple[FieldFilter, ...], ChangeCallback]] = []

    # ------------------------------------------------------------------
    # 조회
    # ------------------------------------------------------------------

    async def get(self, path: str, doc_id: str) -> Optional[Document]:
        doc = self._collections.get(path, {}).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def query(
        self,
        path: str,
        filters: Sequence[FieldFilter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Document]:
        check_in_limit(filters)
        return self._run_query(path, tuple(filters), order_by, descending, limit)

    def _run_query(
        self,
        path: str,
        filters: Tuple[FieldFilter, ...],
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Document]:
        docs = [
            doc for doc in self._collections.get(path, {}).values()
            if all(matches(doc, flt) for flt in filters)
        ]

        if order_by:
            # 정렬 필드가 없는 문서는 결과에서 제외 (Firestore 동작과 동일)
            docs = [doc for doc in docs if resolve_field(doc, order_by) not in (_MISSING, None)]
            docs.sort(key=lambda doc: resolve_field(doc, order_by), reverse=descending)

        if limit is not None:
            docs = docs[:limit]

        return copy.deepcopy(docs)

    # ------------------------------------------------------------------
    # 쓰기
    # ------------------------------------------------------------------

    async def set(self, path: str, doc_id: str, data: Document, merge: bool = False) -> None:
        async with self._lock:
            collection = self._collections.setdefault(path, {})
            before = copy.deepcopy(collection.get(doc_id))
            if merge and before is not None:
                collection[doc_id] = {**before, **copy.deepcopy(data)}
            else:
                collection[doc_id] = copy.deepcopy(data)
            after = copy.deepcopy(collection[doc_id])
        await self._emit(path, doc_id, before, after)

    async def update(self, path: str, doc_id: str, fields: Document) -> None:
        async with self._lock:
            doc = self._require(path, doc_id)
            before = copy.deepcopy(doc)
            doc.update(copy.deepcopy(fields))
            after = copy.deepcopy(doc)
        await self._emit(path, doc_id, before, after)

    async def delete(self, path: str, doc_id: str) -> None:
        async with self._lock:
            before = self._collections.get(path, {}).pop(doc_id, None)
        if before is not None:
            await self._emit(path, doc_id, before, None)

    async def atomic_increment(self, path: str, doc_id: str, field: str, delta: int) -> None:
        async with self._lock:
            doc = self._require(path, doc_id)
            before = copy.deepcopy(doc)
            doc[field] = (doc.get(field) or 0) + delta
            after = copy.deepcopy(doc)
        await self._emit(path, doc_id, before, after)

    async def array_remove(self, path: str, doc_id: str, field: str, value: Any) -> None:
        async with self._lock:
            doc = self._require(path, doc_id)
            before = copy.deepcopy(doc)
            doc[field] = [item for item in (doc.get(field) or []) if item != value]
            after = copy.deepcopy(doc)
        await self._emit(path, doc_id, before, after)

    async def array_union(self, path: str, doc_id: str, field: str, value: Any) -> None:
        async with self._lock:
            doc = self._require(path, doc_id)
            before = copy.deepcopy(doc)
            items = list(doc.get(field) or [])
            if value not in items:
                items.append(value)
            doc[field] = items
            after = copy.deepcopy(doc)
        await self._emit(path, doc_id, before, after)

    def _require(self, path: str, doc_id: str) -> Document:
        doc = self._collections.get(path, {}).get(doc_id)
        if doc is None:
            raise DocumentNotFoundError(f"문서를 찾을 수 없습니다: {path}/{doc_id}")
        return doc

    # ------------------------------------------------------------------
    # 변경 알림
    # ------------------------------------------------------------------

    def add_write_observer(self, observer: WriteObserver) -> None:
        """모든 쓰기 직후 호출될 옵저버 등록 (트리거 디스패처 연결용)"""
        self._observers.append(observer)

    def remove_write_observer(self, observer: WriteObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def listen(
        self,
        path: str,
        filters: Sequence[FieldFilter],
        on_change: ChangeCallback,
    ) -> Unsubscribe:
        check_in_limit(filters)
        entry = (path, tuple(filters), on_change)
        self._listeners.append(entry)

        def unsubscribe() -> None:
            if entry in self._listeners:
                self._listeners.remove(entry)

        return unsubscribe

    async def _emit(self, path: str, doc_id: str, before: Optional[Document], after: Optional[Document]) -> None:
        for listen_path, filters, on_change in list(self._listeners):
            if listen_path != path:
                continue
            try:
                await on_change(self._run_query(path, filters))
            except Exception as e:
                # 구독자 오류가 쓰기 자체를 실패시키지 않도록 로깅만 수행
                logger.error(f"Listener callback failed for {path}: {e}", exc_info=True)

        event = DocumentWriteEvent(path=path, doc_id=doc_id, before=before, after=after)
        for observer in list(self._observers):
            await observer(event)
