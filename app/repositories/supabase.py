import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence
from supabase import Client
from app.core.config import SUPABASE_DOCUMENTS_TABLE, STORE_POLL_INTERVAL_SECONDS
from app.core.supabase import get_supabase_client
from app.exception.store.store_exception import DocumentNotFoundError, StoreOperationError
from app.models.store import FieldFilter, FilterOp
from app.repositories.base import ChangeCallback, Document, IDocumentStore, Unsubscribe
from app.repositories.memory import check_in_limit

# 로거 설정
logger = logging.getLogger(__name__)


def to_json_value(value: Any) -> Any:
    """
    JSONB 저장용 값 변환

    Rationale:
        ->> 연산자의 텍스트 비교/정렬이 시간 순서와 일치하도록 datetime은
        UTC 마이크로초 고정 형식(예: 2026-02-11T09:00:00.000000+00:00)으로 직렬화합니다.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat(timespec="microseconds")
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: to_json_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_value(v) for v in value]
    return value


def json_path(field: str, as_text: bool = True) -> str:
    """
    "item.id" -> "data->item->>id" (PostgREST JSON 경로 표기)
    """
    parts = field.split(".")
    arrow = "->>" if as_text else "->"
    if len(parts) == 1:
        return f"data{arrow}{parts[0]}"
    return "data->" + "->".join(parts[:-1]) + f"{arrow}{parts[-1]}"


def _as_text(value: Any) -> str:
    value = to_json_value(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class SupabaseDocumentStore(IDocumentStore):
    """
    Supabase (PostgreSQL) 기반 문서 저장소 구현체
    테이블: documents (collection text, id text, data jsonb, PK(collection, id))

    Note:
        supabase-py 동기 클라이언트를 asyncio.to_thread로 실행하여 이벤트 루프를 막지 않습니다.
        원자적 증감/배열 연산은 scripts/init_db.sql의 Postgres 함수(RPC)로 처리합니다.
    """

    def __init__(self, client: Optional[Client] = None, table: str = SUPABASE_DOCUMENTS_TABLE):
        """
        Args:
            client (Optional[Client]): 테스트 용이성을 위한 의존성 주입 지원
            table (str): 문서 테이블 이름
        """
        self.client = client or get_supabase_client()
        self.table = table

    async def _run(self, description: str, fn: Callable[[], Any]) -> Any:
        try:
            return await asyncio.to_thread(fn)
        except Exception as e:
            # 에러 로깅 후 상위 호출자에게 전파 (Fail Fast)
            logger.error(f"Failed to {description}: {e}", exc_info=True)
            raise StoreOperationError(f"문서 저장소 작업 실패: {description}") from e

    async def get(self, path: str, doc_id: str) -> Optional[Document]:
        response = await self._run(
            f"get {path}/{doc_id}",
            lambda: self.client.table(self.table)
                .select("data")
                .eq("collection", path)
                .eq("id", doc_id)
                .limit(1)
                .execute(),
        )
        if not response.data:
            return None
        return response.data[0]["data"]

    async def query(
        self,
        path: str,
        filters: Sequence[FieldFilter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Document]:
        check_in_limit(filters)

        def build():
            builder = self.client.table(self.table).select("data").eq("collection", path)
            for flt in filters:
                builder = self._apply_filter(builder, flt)
            if order_by:
                builder = builder.order(json_path(order_by), desc=descending)
            if limit is not None:
                builder = builder.limit(limit)
            return builder.execute()

        response = await self._run(f"query {path}", build)
        return [row["data"] for row in response.data]

    @staticmethod
    def _apply_filter(builder, flt: FieldFilter):
        column = json_path(flt.field)
        if flt.op == FilterOp.EQ:
            return builder.eq(column, _as_text(flt.value))
        if flt.op == FilterOp.NE:
            return builder.neq(column, _as_text(flt.value))
        if flt.op == FilterOp.LT:
            return builder.lt(column, _as_text(flt.value))
        if flt.op == FilterOp.LTE:
            return builder.lte(column, _as_text(flt.value))
        if flt.op == FilterOp.GT:
            return builder.gt(column, _as_text(flt.value))
        if flt.op == FilterOp.GTE:
            return builder.gte(column, _as_text(flt.value))
        if flt.op == FilterOp.IN:
            return builder.in_(column, [_as_text(v) for v in flt.value])
        if flt.op == FilterOp.ARRAY_CONTAINS:
            return builder.contains(json_path(flt.field, as_text=False), [to_json_value(flt.value)])
        raise ValueError(f"Unsupported filter op: {flt.op}")

    async def set(self, path: str, doc_id: str, data: Document, merge: bool = False) -> None:
        payload = to_json_value(data)
        if merge:
            existing = await self.get(path, doc_id)
            if existing is not None:
                payload = {**existing, **payload}

        # Rationale: upsert로 생성/덮어쓰기를 한 번의 round-trip으로 처리 (on_conflict=PK)
        await self._run(
            f"set {path}/{doc_id}",
            lambda: self.client.table(self.table)
                .upsert({"collection": path, "id": doc_id, "data": payload}, on_conflict="collection,id")
                .execute(),
        )

    async def update(self, path: str, doc_id: str, fields: Document) -> None:
        response = await self._run(
            f"update {path}/{doc_id}",
            lambda: self.client.rpc(
                "merge_document",
                {"p_collection": path, "p_id": doc_id, "p_fields": to_json_value(fields)},
            ).execute(),
        )
        self._require_found(response, path, doc_id)

    async def delete(self, path: str, doc_id: str) -> None:
        await self._run(
            f"delete {path}/{doc_id}",
            lambda: self.client.table(self.table)
                .delete()
                .eq("collection", path)
                .eq("id", doc_id)
                .execute(),
        )

    async def atomic_increment(self, path: str, doc_id: str, field: str, delta: int) -> None:
        response = await self._run(
            f"increment {path}/{doc_id}.{field}",
            lambda: self.client.rpc(
                "increment_field",
                {"p_collection": path, "p_id": doc_id, "p_field": field, "p_delta": delta},
            ).execute(),
        )
        self._require_found(response, path, doc_id)

    async def array_remove(self, path: str, doc_id: str, field: str, value: Any) -> None:
        response = await self._run(
            f"array_remove {path}/{doc_id}.{field}",
            lambda: self.client.rpc(
                "array_remove_value",
                {"p_collection": path, "p_id": doc_id, "p_field": field, "p_value": to_json_value(value)},
            ).execute(),
        )
        self._require_found(response, path, doc_id)

    async def array_union(self, path: str, doc_id: str, field: str, value: Any) -> None:
        response = await self._run(
            f"array_union {path}/{doc_id}.{field}",
            lambda: self.client.rpc(
                "array_union_value",
                {"p_collection": path, "p_id": doc_id, "p_field": field, "p_value": to_json_value(value)},
            ).execute(),
        )
        self._require_found(response, path, doc_id)

    @staticmethod
    def _require_found(response, path: str, doc_id: str) -> None:
        # RPC 함수는 대상 행이 있으면 true, 없으면 false를 반환
        if response.data is False or response.data is None:
            raise DocumentNotFoundError(f"문서를 찾을 수 없습니다: {path}/{doc_id}")

    def listen(
        self,
        path: str,
        filters: Sequence[FieldFilter],
        on_change: ChangeCallback,
    ) -> Unsubscribe:
        """
        폴링 기반 변경 감지

        Note:
            첫 조회 결과는 기준 스냅샷으로만 사용하고 콜백을 호출하지 않습니다.
            조회 실패는 로깅 후 다음 주기에 다시 시도합니다.
        """
        check_in_limit(filters)

        async def poll() -> None:
            previous: Optional[List[Document]] = None
            while True:
                try:
                    current = await self.query(path, filters)
                    if previous is not None and current != previous:
                        await on_change(current)
                    previous = current
                except StoreOperationError:
                    pass
                except Exception as e:
                    logger.error(f"Listener callback failed for {path}: {e}", exc_info=True)
                await asyncio.sleep(STORE_POLL_INTERVAL_SECONDS)

        task = asyncio.get_running_loop().create_task(poll())
        return task.cancel
