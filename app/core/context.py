import contextvars
from typing import Optional

# 트리거 이벤트 또는 HTTP 요청 단위의 Trace ID
# Rationale: 팬아웃 중 생성되는 여러 태스크의 로그를 하나의 이벤트로 묶어 추적하기 위해 사용합니다.
# asyncio 태스크는 생성 시점의 컨텍스트를 복사하므로 하위 태스크에도 그대로 전달됩니다.
trace_id_context: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("trace_id", default=None)

def get_trace_id() -> Optional[str]:
    """현재 컨텍스트의 Trace ID를 반환합니다."""
    return trace_id_context.get()
