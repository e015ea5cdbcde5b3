from app.exception.base_exception import BaseCustomException, ErrorCode

class WebhookUnauthorizedError(BaseCustomException):
    """트리거 웹훅 공유 비밀값 불일치"""
    error_code = ErrorCode.COMMON_UNAUTHORIZED
    message = "웹훅 인증에 실패했습니다."
    status_code = 401
