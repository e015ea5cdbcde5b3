from app.exception.base_exception import BaseCustomException, ErrorCode


class InvalidStatusTransitionError(BaseCustomException):
    """허용되지 않는 상태 전이 (예: rated -> pending, 이미 수락/거절된 버디 요청)."""
    def __init__(self, message: str = "허용되지 않는 상태 변경입니다."):
        super().__init__(
            message=message,
            error_code=ErrorCode.INVALID_STATUS_TRANSITION,
            status_code=409
        )


class ContentTooLongError(BaseCustomException):
    """추천 메시지/댓글이 최대 길이(100자)를 초과한 경우."""
    def __init__(self, message: str = "내용은 100자를 초과할 수 없습니다."):
        super().__init__(
            message=message,
            error_code=ErrorCode.CONTENT_TOO_LONG,
            status_code=400
        )


class InvalidScoreError(BaseCustomException):
    """평점이 0~100 범위를 벗어난 경우."""
    def __init__(self, message: str = "평점은 0에서 100 사이여야 합니다."):
        super().__init__(
            message=message,
            error_code=ErrorCode.INVALID_SCORE,
            status_code=400
        )
