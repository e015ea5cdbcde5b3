from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi import HTTPException
from slowapi.errors import RateLimitExceeded
import logging
from app.core.response import error_response, ValidationErrorDetail
from datetime import datetime
from app.core.error_codes import ErrorCode
from app.exception.base_exception import BaseCustomException
from app.exception.common.rate_limit_exception import RateLimitException
from app.core.config import IS_DEBUG
import traceback

logger = logging.getLogger("app")


def _error_code_value(exc: BaseCustomException) -> str:
    # error_code가 Enum이면 .value, 아니면 그대로 사용
    return exc.error_code.value if hasattr(exc.error_code, "value") else exc.error_code


async def custom_exception_handler(request: Request, exc: BaseCustomException):
    """
    도메인 예외(BaseCustomException)를 ApiResponse 포맷으로 변환

    Rationale:
        상태 전이 위반, 길이 초과 등 클라이언트 요청 문제는 경고 수준으로 로깅합니다.
    """
    error_code_value = _error_code_value(exc)

    logger.warning({
        "timestamp": datetime.now().isoformat(timespec="seconds"),
        "status": exc.status_code,
        "errorCode": error_code_value,
        "message": exc.message,
        "client_ip": request.client.host if request.client else None,
        "path": request.url.path
    })
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(
            message=exc.message,
            code=error_code_value
        ).model_dump()
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    """HTTPException을 ApiResponse 포맷으로 변환"""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(
            message=exc.detail,
            code=ErrorCode.http_error(exc.status_code)
        ).model_dump()
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Pydantic Validation Error를 ApiResponse 포맷으로 변환 (422)
    """
    error_details = {}
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        error_details[field] = ValidationErrorDetail(
            message=error["msg"],
            type=error["type"],
            input=error.get("input")
        ).model_dump()

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_response(
            message="입력값을 확인해주세요.",
            code=ErrorCode.VALIDATION_ERROR,
            result=error_details
        ).model_dump()
    )


async def global_exception_handler_envelope(request: Request, exc: Exception):
    """
    처리되지 않은 모든 예외(500)를 ApiResponse 포맷으로 변환

    Rationale:
        스택 트레이스는 로그에만 기록하고, 디버그 모드가 아니면 클라이언트에 노출하지 않습니다.
    """
    logger.exception(
        f"Unhandled Exception: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "client_ip": request.client.host if request.client else None,
        }
    )

    if IS_DEBUG:
        error_result = {
            "error_detail": str(exc),
            "stack_trace": traceback.format_exc()
        }
    else:
        error_result = None

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response(
            message="서버 내부 오류가 발생했습니다. 담당자에게 문의해주세요.",
            code=ErrorCode.INTERNAL_ERROR,
            result=error_result
        ).model_dump()
    )


async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded):
    """
    slowapi의 RateLimitExceeded를 RateLimitException으로 변환하여
    일관된 에러 응답 포맷을 유지합니다.
    """
    return await custom_exception_handler(request, RateLimitException())
