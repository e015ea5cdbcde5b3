from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Literal, Optional
from pydantic import BaseModel, Field


class FilterOp(str, Enum):
    EQ = "=="
    NE = "!="
    LT = "<"
    LTE = "<="
    GT = ">"
    GTE = ">="
    IN = "in"
    ARRAY_CONTAINS = "array_contains"


@dataclass(frozen=True)
class FieldFilter:
    """
    문서 조회 조건 하나

    field는 저장 문서의 필드명(camelCase)이며 "item.id"처럼 점으로 중첩 필드를 가리킬 수 있습니다.
    """
    field: str
    op: FilterOp
    value: Any


def where(field: str, op: str, value: Any) -> FieldFilter:
    return FieldFilter(field=field, op=FilterOp(op), value=value)


class WriteKind(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass(frozen=True)
class DocumentWriteEvent:
    """
    문서 쓰기 이벤트 (트리거 입력)

    before/after는 쓰기 전후의 문서 스냅샷이며, 생성이면 before가, 삭제면 after가 None입니다.
    """
    path: str
    doc_id: str
    before: Optional[Dict[str, Any]]
    after: Optional[Dict[str, Any]]

    @property
    def kind(self) -> WriteKind:
        if self.before is None:
            return WriteKind.CREATED
        if self.after is None:
            return WriteKind.DELETED
        return WriteKind.UPDATED

    @property
    def full_path(self) -> str:
        return f"{self.path}/{self.doc_id}"


class DocumentRow(BaseModel):
    """documents 테이블의 한 행"""
    collection: str
    id: str
    data: Dict[str, Any] = Field(default_factory=dict)


class DocumentWebhookPayload(BaseModel):
    """
    Supabase Database Webhook 요청 본문 (documents 테이블)

    INSERT는 record만, DELETE는 old_record만, UPDATE는 둘 다 채워져 옵니다.
    """
    type: Literal["INSERT", "UPDATE", "DELETE"]
    table: Optional[str] = None
    record: Optional[DocumentRow] = None
    old_record: Optional[DocumentRow] = None

    def to_event(self) -> DocumentWriteEvent:
        row = self.record or self.old_record
        if row is None:
            raise ValueError("record 또는 old_record 중 하나는 필요합니다.")
        return DocumentWriteEvent(
            path=row.collection,
            doc_id=row.id,
            before=self.old_record.data if self.old_record is not None and self.type != "INSERT" else None,
            after=self.record.data if self.record is not None and self.type != "DELETE" else None,
        )
