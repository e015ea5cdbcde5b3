# =============================================================================
# HTTP 미들웨어
# =============================================================================
# - Trace ID: 요청 단위 추적 ID 발급/전파 (트리거 디스패치와 같은 로그 키 사용)
# - Cache-Control: 피드/차트처럼 자주 바뀌는 API 응답의 캐시 방지
# =============================================================================

import logging
import re
import uuid
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from app.core.context import trace_id_context

logger = logging.getLogger(__name__)

TRACE_ID_HEADER = "X-Trace-ID"

# UUID 형식 검증 정규식 (8-4-4-4-12)
UUID_PATTERN = re.compile(
    r'^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$',
    re.IGNORECASE
)


class TraceIDMiddleware(BaseHTTPMiddleware):
    """
    요청마다 Trace ID를 부여하는 미들웨어

    - 요청 헤더(X-Trace-ID)가 UUID 형식이면 그대로 사용
    - 없거나 형식이 틀리면 새 UUIDv4 발급
    - 응답 헤더(X-Trace-ID)로 반환

    Note:
        웹훅 요청도 이 ID로 시작하지만, 트리거 레지스트리는 이벤트마다 새 ID를 다시 발급합니다.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        trace_id = request.headers.get(TRACE_ID_HEADER)

        if trace_id and not UUID_PATTERN.match(trace_id):
            logger.warning(f"Invalid Trace ID received: {trace_id[:64]}")
            trace_id = None

        if not trace_id:
            trace_id = str(uuid.uuid4())

        token = trace_id_context.set(trace_id)
        request.state.trace_id = trace_id
        try:
            response = await call_next(request)
        finally:
            trace_id_context.reset(token)

        response.headers[TRACE_ID_HEADER] = trace_id
        return response


class CacheControlMiddleware(BaseHTTPMiddleware):
    """
    /api 경로 응답에 캐시 방지 헤더를 붙입니다.

    Rationale:
        피드와 좋아요/댓글 수는 실시간 값이므로 중간 프록시가 캐시하면 안 됩니다.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)

        if request.url.path.startswith("/api"):
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
            response.headers["Pragma"] = "no-cache"

        return response
