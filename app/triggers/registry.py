from __future__ import annotations
import logging
import re
import uuid
from enum import Enum
from threading import Lock
from typing import Awaitable, Callable, Dict, List, Pattern, Tuple
from app.core.context import trace_id_context
from app.models.store import DocumentWriteEvent, WriteKind

logger = logging.getLogger("app")

TriggerHandler = Callable[[DocumentWriteEvent, Dict[str, str]], Awaitable[None]]

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


class TriggerEvent(str, Enum):
    """핸들러가 반응할 쓰기 종류. WRITTEN은 생성/수정/삭제 모두."""
    CREATED = "created"
    DELETED = "deleted"
    WRITTEN = "written"

    def accepts(self, kind: WriteKind) -> bool:
        if self is TriggerEvent.WRITTEN:
            return True
        return self.value == kind.value


def compile_pattern(pattern: str) -> Pattern[str]:
    """
    "ratings/{ratingId}/likes/{likeId}" -> 각 자리표시자가 슬래시 없는 한 세그먼트에 대응하는 정규식
    """
    regex = ""
    last = 0
    for match in _PLACEHOLDER.finditer(pattern):
        regex += re.escape(pattern[last:match.start()]) + f"(?P<{match.group(1)}>[^/]+)"
        last = match.end()
    regex += re.escape(pattern[last:])
    return re.compile(f"^{regex}$")


class TriggerRegistry:
    """문서 쓰기 이벤트를 경로 패턴별 핸들러로 라우팅하는 싱글톤 레지스트리.

    Thread-safe한 싱글톤 패턴을 사용하여 애플리케이션 전체에서
    단일 레지스트리 인스턴스만 사용하도록 보장합니다 (Double-checked locking).

    Note:
        디스패치마다 새 Trace ID를 발급하므로 한 이벤트에서 파생된 로그를 묶어 볼 수 있습니다.
        핸들러 예외는 로깅 후 삼키며 쓰기를 수행한 쪽으로 전파하지 않습니다.
    """
    _instance: TriggerRegistry | None = None
    _lock: Lock = Lock()

    def __new__(cls):
        # 첫 번째 체크: Lock 없이 빠르게 확인 (대부분의 경우)
        if cls._instance is None:
            with cls._lock:
                # 두 번째 체크: Lock 내에서 다시 확인 (thread-safe)
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._routes = {}
        return cls._instance

    def register(self, pattern: str, event: TriggerEvent, handler: TriggerHandler):
        """핸들러 등록. 같은 (패턴, 이벤트)로 다시 등록하면 교체합니다.

        Args:
            pattern: 문서 경로 패턴 (예: "recommendations/{recommendationId}")
            event: 반응할 쓰기 종류
            handler: (이벤트, 경로 파라미터)를 받는 비동기 함수
        """
        self._routes[(pattern, event)] = (compile_pattern(pattern), handler)

    def clear(self):
        """등록된 모든 핸들러 제거 (테스트용)"""
        self._routes.clear()

    def routes(self) -> List[Tuple[str, TriggerEvent]]:
        return list(self._routes.keys())

    async def dispatch(self, event: DocumentWriteEvent) -> int:
        """
        이벤트와 일치하는 모든 핸들러를 순서대로 실행

        Returns:
            int: 실행된 핸들러 수
        """
        full_path = event.full_path
        kind = event.kind
        handled = 0

        for (pattern, trigger_event), (regex, handler) in list(self._routes.items()):
            if not trigger_event.accepts(kind):
                continue
            match = regex.match(full_path)
            if match is None:
                continue

            token = trace_id_context.set(str(uuid.uuid4()))
            try:
                await handler(event, match.groupdict())
            except Exception as e:
                logger.error(
                    f"Trigger handler failed for {pattern} ({kind.value} {full_path}): {e}",
                    exc_info=True,
                )
            finally:
                trace_id_context.reset(token)
            handled += 1

        return handled


# Global singleton instance
trigger_registry = TriggerRegistry()
