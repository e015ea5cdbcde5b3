import asyncio
import sys
import os

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.api.dependencies import get_document_store
from app.core.logging_config import setup_logging
from app.services.buddy_service import BuddyService


async def main() -> int:
    """
    버디 요청 수락 중 실패한 엣지 쓰기를 다시 적용합니다.

    Rationale:
        수락은 요청 문서 갱신과 양쪽 엣지 쓰기로 나뉘어 있어 중간 실패 시 한쪽만 버디가 될 수 있습니다.
        실패 건은 buddyEdgeRepairs 컬렉션에 남으므로 cron 등에서 주기적으로 실행합니다.
    """
    repaired = await BuddyService(get_document_store()).reconcile_repairs()
    print(f"Repaired {repaired} buddy edge(s)")
    return repaired


if __name__ == "__main__":
    # NOTE: 루트 디렉토리에서 'python -m scripts.reconcile_buddy_edges' 명령어로 실행
    setup_logging()
    asyncio.run(main())
