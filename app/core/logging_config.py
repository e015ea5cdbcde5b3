import logging
import json
import os
import re
from logging.handlers import TimedRotatingFileHandler
from app.core.context import get_trace_id

# 로그에 남길 디바이스 토큰 앞부분 길이
TOKEN_VISIBLE_PREFIX = 20

# FCM 등록 토큰 형식 (예: "dXk1...:APA91b...")
_FCM_TOKEN_PATTERN = re.compile(r"\b([A-Za-z0-9_-]{20})[A-Za-z0-9_-]*:APA91[A-Za-z0-9_-]+")


def mask_token(token: str | None) -> str:
    """디바이스 토큰을 앞 20자만 남기고 마스킹합니다."""
    if not token:
        return ""
    if len(token) <= TOKEN_VISIBLE_PREFIX:
        return token
    return f"{token[:TOKEN_VISIBLE_PREFIX]}..."


class TokenMaskingFilter(logging.Filter):
    """
    로그 메시지에 포함된 FCM 토큰 원문을 마스킹하는 필터

    Rationale:
        호출부에서 mask_token()을 빠뜨리더라도 토큰 전체가 파일 로그에 남지 않도록 합니다.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = _FCM_TOKEN_PATTERN.sub(r"\1...", record.msg)
        elif isinstance(record.msg, dict) and "token" in record.msg:
            record.msg = {**record.msg, "token": mask_token(str(record.msg["token"]))}
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        # 메시지가 dict면 그대로 기반으로 삼고, 아니면 기본 구조 생성
        base_message = record.msg if isinstance(record.msg, dict) else {
            "message": record.getMessage()
        }

        log = {
            "timestamp": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "trace_id": get_trace_id(),
            **base_message,
        }

        if record.exc_info:
            log["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(log, ensure_ascii=False, default=str)


def setup_logging(log_dir: str = "logs"):
    os.makedirs(log_dir, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)

    json_formatter = JsonFormatter()
    masking_filter = TokenMaskingFilter()

    # 콘솔 핸들러
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(json_formatter)
    console_handler.addFilter(masking_filter)
    root_logger.addHandler(console_handler)

    # 일자별 파일 로테이션 핸들러 (자정 기준, 7일 보관)
    file_handler = TimedRotatingFileHandler(
        filename=os.path.join(log_dir, "app.log"),
        when="midnight",
        backupCount=7,
        encoding="utf-8",
        utc=False,
    )
    file_handler.setFormatter(json_formatter)
    file_handler.addFilter(masking_filter)
    root_logger.addHandler(file_handler)
