import hmac
import logging
from typing import Any, Dict
from fastapi import APIRouter, Depends, Header
from app.core import config
from app.core.response import ApiResponse, success_response
from app.exception.common.webhook_exception import WebhookUnauthorizedError
from app.models.store import DocumentWebhookPayload
from app.triggers.registry import trigger_registry

router = APIRouter(
    prefix="/api/triggers",
    tags=["Triggers"],
)
logger = logging.getLogger("app")


def verify_webhook_secret(
    x_webhook_secret: str | None = Header(default=None, alias="X-Webhook-Secret")
) -> None:
    """
    공유 비밀값 검증 (TRIGGER_WEBHOOK_SECRET 미설정 시 생략)

    Raises:
        WebhookUnauthorizedError(401): 헤더가 없거나 값이 다른 경우
    """
    expected = config.TRIGGER_WEBHOOK_SECRET
    if not expected:
        return
    if not x_webhook_secret or not hmac.compare_digest(x_webhook_secret, expected):
        raise WebhookUnauthorizedError()


@router.post("/document-written", response_model=ApiResponse[Dict[str, Any]])
async def document_written(
    payload: DocumentWebhookPayload,
    _: None = Depends(verify_webhook_secret),
):
    """
    Supabase Database Webhook 수신 (documents 테이블 INSERT/UPDATE/DELETE)

    핸들러 등록은 애플리케이션 시작 시 한 번만 수행하고, 여기서는 디스패치만 합니다.
    핸들러 실패는 레지스트리에서 로깅 후 삼키므로 항상 200을 반환합니다.
    """
    event = payload.to_event()
    handled = await trigger_registry.dispatch(event)
    logger.info(f"Webhook {payload.type} {event.full_path} dispatched to {handled} handler(s)")
    return success_response(result={"handled": handled})
