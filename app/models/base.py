from typing import Any, Dict
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class DocumentModel(BaseModel):
    """
    문서 저장소에 저장되는 모델의 공통 베이스

    Python 속성은 snake_case, 저장 문서의 필드명은 camelCase(userId, ratedAt 등)를 사용합니다.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> Dict[str, Any]:
        """저장소에 기록할 dict (camelCase 키, datetime은 객체 그대로)"""
        return self.model_dump(by_alias=True)

    @classmethod
    def from_document(cls, data: Dict[str, Any]):
        return cls.model_validate(data)
