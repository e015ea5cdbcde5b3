from app.exception.base_exception import BaseCustomException, ErrorCode


class RateLimitException(BaseCustomException):
    """slowapi RateLimitExceeded를 Envelope 응답으로 바꾸기 위한 예외"""
    error_code = ErrorCode.COMMON_RATE_LIMITED
    message = "요청 횟수가 초과되었습니다. 잠시 후 다시 시도해주세요."
    status_code = 429
