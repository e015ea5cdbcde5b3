"""
HTTP 응답용 에러 코드 상수 정의

도메인 예외 코드는 app.exception.base_exception.ErrorCode(Enum)에서 관리하고,
이 모듈은 Envelope 응답에서 공통으로 쓰는 성공/검증/내부 오류 코드만 담습니다.
"""

class ErrorCode:
    """에러 코드 상수 클래스"""

    # 공통 성공 코드
    COMMON_SUCCESS = "COMMON200"

    # 공통 에러 코드
    INTERNAL_ERROR = "COMMON-001"    # 500 서버 내부 오류
    VALIDATION_ERROR = "VALIDATION-001"  # 422 요청 검증 실패

    @staticmethod
    def http_error(status_code: int) -> str:
        """
        HTTP 상태 코드 기반 에러 코드 생성 (예: 404 -> "HTTP_404")
        """
        return f"HTTP_{status_code}"
