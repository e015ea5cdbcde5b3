import os
from dotenv import load_dotenv

load_dotenv()

APP_ENV = os.getenv("APP_ENV", "production")
IS_DEBUG = APP_ENV == "development"

# 문서 저장소 (Supabase JSONB 테이블 또는 인메모리)
STORE_BACKEND = os.getenv("STORE_BACKEND", "supabase")
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")
SUPABASE_DOCUMENTS_TABLE = os.getenv("SUPABASE_DOCUMENTS_TABLE", "documents")

# Supabase 저장소의 listen()은 폴링 방식으로 동작
STORE_POLL_INTERVAL_SECONDS = float(os.getenv("STORE_POLL_INTERVAL_SECONDS", "5"))

# 푸시 알림 (FCM HTTP v1). 액세스 토큰 발급은 외부에서 처리한다.
FCM_PROJECT_ID = os.getenv("FCM_PROJECT_ID")
FCM_ACCESS_TOKEN = os.getenv("FCM_ACCESS_TOKEN")
FCM_BASE_URL = os.getenv("FCM_BASE_URL", "https://fcm.googleapis.com/v1")
FCM_TIMEOUT_SECONDS = float(os.getenv("FCM_TIMEOUT_SECONDS", "10"))

# 음악 카탈로그 (Spotify Web API)
SPOTIFY_API_BASE_URL = os.getenv("SPOTIFY_API_BASE_URL", "https://api.spotify.com/v1")
SPOTIFY_ACCESS_TOKEN = os.getenv("SPOTIFY_ACCESS_TOKEN")

NOTIFICATION_APP_TITLE = os.getenv("NOTIFICATION_APP_TITLE", "Resonance")

# 저장소의 "in" 조건은 최대 10개 값까지만 허용된다
IN_QUERY_LIMIT = 10

MESSAGE_MAX_LENGTH = 100
COMMENT_MAX_LENGTH = 100
REVIEW_SHORT_MAX_LENGTH = 150

RATE_LIMIT_PER_MINUTE = int(os.getenv("RATE_LIMIT_PER_MINUTE", "60"))

# 트리거 웹훅 공유 비밀값 (미설정 시 검증 생략)
TRIGGER_WEBHOOK_SECRET = os.getenv("TRIGGER_WEBHOOK_SECRET")

# CORS 허용 오리진 (환경변수 기반)
def _parse_origins(value: str | None) -> list[str]:
    if not value:
        return []
    normalized = value.replace("\n", ",").replace(";", ",")
    items = [item.strip() for item in normalized.split(",")]
    return [item for item in items if item]

_DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

_cors_allowed_origins = _parse_origins(os.getenv("CORS_ALLOWED_ORIGINS"))

# 중복 제거를 위해 dict 키 보존 방식 사용
ALLOWED_ORIGINS = list(dict.fromkeys(_DEFAULT_ALLOWED_ORIGINS + _cors_allowed_origins))
