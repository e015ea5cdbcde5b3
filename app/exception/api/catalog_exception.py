from app.exception.base_exception import BaseCustomException, ErrorCode

class CatalogLookupError(BaseCustomException):
    """음악 카탈로그 API 호출 실패(네트워크/상태코드/타임아웃 등)"""
    error_code = ErrorCode.CATALOG_LOOKUP_FAILED
    message = "음악 카탈로그 조회에 실패했습니다."
    status_code = 503
