from typing import Iterator, List, Sequence, TypeVar
from app.core.config import IN_QUERY_LIMIT

T = TypeVar("T")


def chunked(items: Sequence[T], size: int = IN_QUERY_LIMIT) -> Iterator[List[T]]:
    """
    시퀀스를 size 개씩 나눈 리스트를 순서대로 반환

    예: 23개 ID, size=10 -> [10개], [10개], [3개]

    Raises:
        ValueError: size가 1보다 작은 경우
    """
    if size < 1:
        raise ValueError("chunk size must be positive")
    items = list(items)
    for start in range(0, len(items), size):
        yield items[start:start + size]
