from app.exception.base_exception import BaseCustomException, ErrorCode


class DeliveryFailedError(BaseCustomException):
    """푸시 발송 실패 (네트워크/5xx/할당량 초과 등 토큰 외 원인)."""
    def __init__(self, message: str = "푸시 알림 발송에 실패했습니다."):
        super().__init__(
            message=message,
            error_code=ErrorCode.NOTIFICATION_DELIVERY_FAILED,
            status_code=502
        )


class InvalidDeliveryTokenError(BaseCustomException):
    """푸시 제공자가 토큰을 영구적으로 유효하지 않다고 응답한 경우.

    Rationale (의도):
        - 이 예외만 토큰 정리(사용자 토큰 목록에서 제거)를 유발합니다.
        - 그 외 실패(DeliveryFailedError)는 로깅만 합니다.
    """
    def __init__(self, message: str = "유효하지 않은 디바이스 토큰입니다."):
        super().__init__(
            message=message,
            error_code=ErrorCode.NOTIFICATION_INVALID_TOKEN,
            status_code=410
        )
