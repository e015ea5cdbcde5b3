from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence
from app.models.store import FieldFilter

Document = Dict[str, Any]
ChangeCallback = Callable[[List[Document]], Awaitable[None]]
Unsubscribe = Callable[[], None]


class IDocumentStore(Protocol):
    """
    문서 저장소 인터페이스 (Repository Pattern Protocol)

    컬렉션은 "ratings", "ratings/{ratingId}/likes", "users/{userId}/buddies" 처럼
    슬래시로 연결된 경로로 지정합니다. 모든 메서드는 비동기 I/O입니다.
    """

    async def get(self, path: str, doc_id: str) -> Optional[Document]:
        """
        문서 단건 조회

        Returns:
            Optional[Document]: 문서가 없으면 None
        """
        ...

    async def query(
        self,
        path: str,
        filters: Sequence[FieldFilter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Document]:
        """
        조건 조회

        Args:
            path (str): 컬렉션 경로
            filters (Sequence[FieldFilter]): AND로 결합되는 조건 목록
            order_by (Optional[str]): 정렬 필드
            descending (bool): 내림차순 여부
            limit (Optional[int]): 최대 결과 수

        Raises:
            InQueryLimitExceededError: "in" 조건 값이 10개를 초과하는 경우
        """
        ...

    async def set(self, path: str, doc_id: str, data: Document, merge: bool = False) -> None:
        """문서 생성 또는 덮어쓰기 (merge=True면 기존 필드와 병합)"""
        ...

    async def update(self, path: str, doc_id: str, fields: Document) -> None:
        """
        기존 문서의 일부 필드 갱신

        Raises:
            DocumentNotFoundError: 문서가 없는 경우
        """
        ...

    async def delete(self, path: str, doc_id: str) -> None:
        """문서 삭제 (없으면 무시, 멱등)"""
        ...

    async def atomic_increment(self, path: str, doc_id: str, field: str, delta: int) -> None:
        """
        숫자 필드 원자적 증감 (read-modify-write 금지)

        Raises:
            DocumentNotFoundError: 부모 문서가 없는 경우
        """
        ...

    async def array_remove(self, path: str, doc_id: str, field: str, value: Any) -> None:
        """배열 필드에서 값 제거 (원자적)"""
        ...

    async def array_union(self, path: str, doc_id: str, field: str, value: Any) -> None:
        """배열 필드에 값이 없으면 추가 (원자적)"""
        ...

    def listen(
        self,
        path: str,
        filters: Sequence[FieldFilter],
        on_change: ChangeCallback,
    ) -> Unsubscribe:
        """
        조건에 맞는 문서 집합이 바뀔 때마다 전체 스냅샷으로 on_change를 호출

        Returns:
            Unsubscribe: 구독 해제 함수
        """
        ...
