"""
FCM HTTP v1 푸시 알림 클라이언트

푸시 제공자는 (디바이스 토큰, 제목, 본문, 데이터)를 받아 성공 또는 실패를 돌려주는
외부 서비스로 취급합니다. 실패는 두 종류로만 구분합니다.

- InvalidDeliveryTokenError: 토큰이 영구적으로 무효 (등록 해제/형식 오류) -> 호출부가 토큰 정리
- DeliveryFailedError: 그 외 모든 실패 (네트워크, 5xx, 할당량 초과 등) -> 로깅만

사용법:
    async with FcmPushClient() as client:
        await client.send(token, NotificationPayload(title="Resonance", body="..."))
"""

import httpx
import logging
from typing import Optional, Protocol
from app.core.config import FCM_ACCESS_TOKEN, FCM_BASE_URL, FCM_PROJECT_ID, FCM_TIMEOUT_SECONDS
from app.core.logging_config import mask_token
from app.exception.notification.notification_exception import DeliveryFailedError, InvalidDeliveryTokenError
from app.models.notification import NotificationPayload

logger = logging.getLogger(__name__)

# FCM v1 FcmError.errorCode 중 토큰 자체가 무효임을 뜻하는 값
INVALID_TOKEN_ERROR_CODES = {"UNREGISTERED"}


class IPushClient(Protocol):
    """푸시 발송 인터페이스 (테스트에서는 AsyncMock으로 대체)"""

    async def send(self, token: str, payload: NotificationPayload) -> str:
        """
        단일 토큰으로 알림 발송

        Returns:
            str: 제공자가 부여한 메시지 ID

        Raises:
            InvalidDeliveryTokenError: 토큰이 영구적으로 무효인 경우
            DeliveryFailedError: 그 외 발송 실패
        """
        ...


def is_invalid_token_response(response: httpx.Response) -> bool:
    """
    FCM 에러 응답이 "무효 토큰" 부류인지 판별

    Note:
        - UNREGISTERED (404): 앱 삭제 등으로 등록이 해제된 토큰
        - INVALID_ARGUMENT (400) 중 registration token 관련 메시지: 형식이 잘못된 토큰
        그 외 INVALID_ARGUMENT(페이로드 오류 등)는 토큰 문제가 아니므로 제외합니다.
    """
    try:
        error = response.json().get("error", {})
    except ValueError:
        return False

    for detail in error.get("details", []) or []:
        if detail.get("errorCode") in INVALID_TOKEN_ERROR_CODES:
            return True

    if error.get("status") == "INVALID_ARGUMENT":
        message = (error.get("message") or "").lower()
        return "registration token" in message
    return False


class FcmPushClient:
    """FCM HTTP v1 API 비동기 클라이언트.

    httpx.AsyncClient를 재사용하여 팬아웃 중 다수의 동시 발송에서도
    연결 오버헤드를 최소화합니다. 사용 후 close()를 호출하거나 async with 구문을 사용하세요.
    """

    def __init__(
        self,
        project_id: Optional[str] = None,
        access_token: Optional[str] = None,
        base_url: str = FCM_BASE_URL,
        timeout: float = FCM_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            project_id: Firebase 프로젝트 ID
            access_token: OAuth2 Bearer 토큰 (발급은 외부에서 처리)
            base_url: FCM API 기본 URL
            timeout: HTTP 요청 타임아웃 (초)
            client: 테스트용 httpx.AsyncClient 주입 (MockTransport 등)
        """
        self.project_id = project_id or FCM_PROJECT_ID
        self.access_token = access_token or FCM_ACCESS_TOKEN
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        """httpx.AsyncClient를 lazy-init으로 반환합니다."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self):
        """HTTP 클라이언트를 정리합니다."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    @property
    def send_url(self) -> str:
        return f"{self.base_url}/projects/{self.project_id}/messages:send"

    async def send(self, token: str, payload: NotificationPayload) -> str:
        body = {
            "message": {
                "token": token,
                "notification": {"title": payload.title, "body": payload.body},
                "data": payload.data,
                "apns": {"payload": {"aps": {"sound": "default"}}},
            }
        }
        headers = {"Authorization": f"Bearer {self.access_token}"}

        try:
            response = await self._get_client().post(self.send_url, json=body, headers=headers)
        except httpx.TimeoutException as e:
            raise DeliveryFailedError(f"FCM 요청 타임아웃 ({self.timeout}초)") from e
        except httpx.HTTPError as e:
            raise DeliveryFailedError(f"FCM 연결 오류: {e}") from e

        if response.is_success:
            return response.json().get("name", "")

        if is_invalid_token_response(response):
            raise InvalidDeliveryTokenError(f"무효 토큰: {mask_token(token)}")

        logger.debug(f"FCM 에러 응답 (status {response.status_code}): {response.text}")
        raise DeliveryFailedError(f"FCM 발송 실패 (status {response.status_code})")
