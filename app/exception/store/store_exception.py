from app.exception.base_exception import BaseCustomException, ErrorCode


class StoreOperationError(BaseCustomException):
    """문서 저장소 읽기/쓰기 실패 (타임아웃, 연결 불가 등 일시적 I/O 오류).

    Rationale (의도):
        - 반응형 핸들러(카운터, 팬아웃)는 이 예외를 로깅 후 해당 작업 단위만 버립니다.
        - 자동 재시도는 하지 않으며, 재시도가 필요하면 외부 스케줄러가 담당합니다.
    """
    def __init__(self, message: str = "문서 저장소 작업에 실패했습니다."):
        super().__init__(
            message=message,
            error_code=ErrorCode.STORE_OPERATION_FAILED,
            status_code=503
        )


class DocumentNotFoundError(BaseCustomException):
    """대상 문서가 존재하지 않을 때 발생하는 예외."""
    def __init__(self, message: str = "문서를 찾을 수 없습니다."):
        super().__init__(
            message=message,
            error_code=ErrorCode.STORE_DOCUMENT_NOT_FOUND,
            status_code=404
        )


class InQueryLimitExceededError(BaseCustomException):
    """"in" 조건에 허용 개수(10개)를 초과한 값이 전달되었을 때 발생하는 예외.

    Rationale (의도):
        - 호출부에서 chunked()로 분할하지 않은 프로그래밍 오류를 조기에 드러냅니다.
    """
    def __init__(self, message: str = "'in' 조건은 최대 10개의 값만 허용됩니다."):
        super().__init__(
            message=message,
            error_code=ErrorCode.STORE_IN_QUERY_LIMIT,
            status_code=500
        )
