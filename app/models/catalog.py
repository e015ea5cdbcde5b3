from enum import Enum
from typing import Annotated, List, Literal, Optional, Union
from pydantic import Field
from app.models.base import DocumentModel


class ItemType(str, Enum):
    """카탈로그 아이템 종류 (artist / album / track)"""
    ARTIST = "artist"
    ALBUM = "album"
    TRACK = "track"

    @property
    def label(self) -> str:
        """사용자 노출용 명칭. track은 "song"으로 표기합니다."""
        if self is ItemType.TRACK:
            return "song"
        return self.value


class ArtistItem(DocumentModel):
    """아티스트 스냅샷"""
    type: Literal["artist"] = "artist"
    id: str
    name: str
    image_url: Optional[str] = None
    genres: List[str] = Field(default_factory=list)

    @property
    def artist_name(self) -> Optional[str]:
        return None


class AlbumItem(DocumentModel):
    """앨범 스냅샷"""
    type: Literal["album"] = "album"
    id: str
    name: str
    artist_name: Optional[str] = None
    image_url: Optional[str] = None
    release_year: Optional[str] = None


class TrackItem(DocumentModel):
    """트랙 스냅샷"""
    type: Literal["track"] = "track"
    id: str
    name: str
    artist_name: Optional[str] = None
    album_name: Optional[str] = None
    image_url: Optional[str] = None
    duration_ms: Optional[int] = None


# Rationale:
# 아이템 종류별로 메타데이터 형태가 다르므로 Optional 필드를 늘어놓는 대신
# "type"을 판별자로 하는 닫힌 합 타입으로 표현합니다.
CatalogItem = Annotated[Union[ArtistItem, AlbumItem, TrackItem], Field(discriminator="type")]


def item_type_of(item: Union[ArtistItem, AlbumItem, TrackItem]) -> ItemType:
    """스냅샷의 판별자 값을 ItemType으로 변환"""
    return ItemType(item.type)
