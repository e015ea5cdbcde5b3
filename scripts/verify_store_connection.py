import sys
import os

# 현재 스크립트의 상위 디렉터리(프로젝트 루트)를 path에 추가
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.core.config import SUPABASE_DOCUMENTS_TABLE
from app.core.supabase import get_supabase_client


def verify():
    """
    문서 저장소(Supabase) 연결 상태를 검증하는 유틸리티 스크립트.
    보안을 위해 API Key는 출력하지 않으며, 테이블과 RPC 함수 존재 여부를 확인합니다.
    """
    print("Verifying document store connection...")
    try:
        client = get_supabase_client()
        print("✅ Client Initialization: Success")

        # 데이터가 없어도 에러가 나지 않는지(테이블 존재 여부 및 권한) 확인
        client.table(SUPABASE_DOCUMENTS_TABLE).select("id").limit(1).execute()
        print(f"✅ Table '{SUPABASE_DOCUMENTS_TABLE}': Success")

        # 존재하지 않는 문서 대상 호출은 false를 반환해야 함 (scripts/init_db.sql 적용 여부)
        response = client.rpc(
            "increment_field",
            {"p_collection": "__probe__", "p_id": "__probe__", "p_field": "n", "p_delta": 0},
        ).execute()
        if response.data is not False:
            raise RuntimeError(f"unexpected RPC result: {response.data!r}")
        print("✅ RPC Functions: Success")

    except Exception as e:
        print(f"❌ Connection Failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    verify()
