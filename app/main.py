from contextlib import asynccontextmanager
import logging
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from app.api.buddies import router as buddies_router
from app.api.charts import router as charts_router
from app.api.dependencies import get_document_store, get_push_client, get_trigger_handlers
from app.api.feed import router as feed_router
from app.api.ratings import router as ratings_router
from app.api.recommendations import router as recommendations_router
from app.api.triggers import router as triggers_router
from app.api.users import router as users_router
from app.core.config import ALLOWED_ORIGINS
from app.core.limiter import limiter
from app.core.logging_config import setup_logging
from app.core.middleware import CacheControlMiddleware, TraceIDMiddleware
from app.exception.base_exception import BaseCustomException
from app.exception.envelope_handlers import (
    custom_exception_handler,
    global_exception_handler_envelope,
    http_exception_handler,
    rate_limit_exception_handler,
    validation_exception_handler,
)
from app.repositories.memory import InMemoryDocumentStore
from app.triggers.registry import trigger_registry

logger = logging.getLogger("app")


def _resolve(dependency):
    # 테스트에서 dependency_overrides로 바꾼 저장소/클라이언트를 그대로 사용
    return app.dependency_overrides.get(dependency, dependency)()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    트리거 핸들러 등록

    Note:
        In-Memory 저장소는 외부 웹훅이 없으므로 쓰기 옵저버로 레지스트리를 직접 연결합니다.
        Supabase 저장소는 /api/triggers/document-written 웹훅으로 이벤트를 받습니다.
    """
    store = _resolve(get_document_store)
    push_client = _resolve(get_push_client)
    handlers = get_trigger_handlers(store, push_client)
    handlers.register(trigger_registry)

    observer = None
    if isinstance(store, InMemoryDocumentStore):
        observer = trigger_registry.dispatch
        store.add_write_observer(observer)
        logger.info("In-memory store wired to trigger registry")

    yield

    if observer is not None:
        store.remove_write_observer(observer)
    close = getattr(push_client, "close", None)
    if close is not None:
        await close()


app = FastAPI(title="Resonance API", lifespan=lifespan)

app.state.limiter = limiter


@app.get("/ping")
def ping():
    return {"ok": True}


# 미들웨어는 나중에 추가한 것이 바깥쪽에서 실행됩니다 (CORS가 가장 바깥)
app.add_middleware(CacheControlMiddleware)
app.add_middleware(TraceIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API 라우터 포함
app.include_router(ratings_router)
app.include_router(recommendations_router)
app.include_router(buddies_router)
app.include_router(feed_router)
app.include_router(charts_router)
app.include_router(users_router)
app.include_router(triggers_router)

# 커스텀 예외 핸들러는 라우터 포함 이후에 추가
app.add_exception_handler(BaseCustomException, custom_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)
app.add_exception_handler(Exception, global_exception_handler_envelope)

# 로깅 설정(콘솔 + 일자별 파일 로테이션, JSON 포맷)
setup_logging()
