from enum import Enum

class ErrorCode(str, Enum):
    """
    애플리케이션 전반에서 사용하는 에러 코드 정의.
    형식: 카테고리(영문)-번호(3자리)
    """
    # 1. COMMON: 공통/일반 에러
    GENERIC_UNKNOWN = "GENERIC-000"
    COMMON_INTERNAL_ERROR = "COMMON-001"
    COMMON_BAD_REQUEST = "COMMON-002"
    COMMON_UNAUTHORIZED = "COMMON-003"
    COMMON_RATE_LIMITED = "COMMON-004"

    # 2. STORE: 문서 저장소 관련
    STORE_OPERATION_FAILED = "STORE-001"
    STORE_DOCUMENT_NOT_FOUND = "STORE-002"
    STORE_IN_QUERY_LIMIT = "STORE-003"

    # 3. NOTIFICATION: 푸시 발송 관련
    NOTIFICATION_DELIVERY_FAILED = "NOTIFICATION-001"
    NOTIFICATION_INVALID_TOKEN = "NOTIFICATION-002"

    # 4. DOMAIN: 평점/추천/버디 규칙 위반
    INVALID_STATUS_TRANSITION = "DOMAIN-001"
    CONTENT_TOO_LONG = "DOMAIN-002"
    INVALID_SCORE = "DOMAIN-003"

    # 5. CATALOG: 음악 카탈로그 API 관련
    CATALOG_LOOKUP_FAILED = "CATALOG-001"


class BaseCustomException(Exception):
    """
    모든 커스텀 예외의 최상위 클래스.
    이 클래스를 상속받아 구체적인 예외를 정의해야 함.
    """
    error_code: ErrorCode = ErrorCode.GENERIC_UNKNOWN
    message: str = "알 수 없는 오류가 발생했습니다."
    status_code: int = 500

    def __init__(self, message: str = None, error_code: ErrorCode = None, status_code: int = None):
        if message:
            self.message = message
        if error_code:
            self.error_code = error_code
        if status_code:
            self.status_code = status_code
        super().__init__(self.message)
