from functools import lru_cache
from supabase import create_client, Client, ClientOptions
from app.core.config import SUPABASE_URL, SUPABASE_KEY

@lru_cache
def get_supabase_client() -> Client:
    """
    Supabase 클라이언트 반환 (Singleton via lru_cache)

    Returns:
        Client: Supabase Client 인스턴스

    Rationale:
        - functools.lru_cache를 사용하여 Thread-safe한 싱글톤 패턴 구현
        - 저장소 호출은 asyncio.to_thread로 워커 스레드에서 실행되므로 스레드 간 공유 가능해야 함
        - 서버 측 트리거 처리 전용이므로 세션 유지/토큰 갱신은 사용하지 않음
    """
    if not SUPABASE_URL or not SUPABASE_KEY:
        raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set in environment variables")

    options = ClientOptions(
        schema="public",
        auto_refresh_token=False,
        persist_session=False,
    )

    return create_client(SUPABASE_URL, SUPABASE_KEY, options=options)
