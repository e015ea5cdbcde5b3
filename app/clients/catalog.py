"""
음악 카탈로그 조회 클라이언트 (Spotify Web API)

평점/추천 저장 시점에 아이템 스냅샷(이름, 아티스트, 이미지)을 채우는 용도로만 사용합니다.
집계나 팬아웃 경로에서는 호출하지 않습니다.
"""

import httpx
import logging
from typing import Any, Dict, List, Optional
from app.core.config import SPOTIFY_ACCESS_TOKEN, SPOTIFY_API_BASE_URL
from app.exception.api.catalog_exception import CatalogLookupError
from app.models.catalog import AlbumItem, ArtistItem, CatalogItem, ItemType, TrackItem

logger = logging.getLogger(__name__)

_ENDPOINTS = {
    ItemType.ARTIST: "artists",
    ItemType.ALBUM: "albums",
    ItemType.TRACK: "tracks",
}


def _first_image(images: Optional[List[Dict[str, Any]]]) -> Optional[str]:
    if not images:
        return None
    return images[0].get("url")


def _first_artist(artists: Optional[List[Dict[str, Any]]]) -> Optional[str]:
    if not artists:
        return None
    return artists[0].get("name")


def parse_catalog_item(item_type: ItemType, data: Dict[str, Any]) -> CatalogItem:
    """Spotify 응답 JSON을 아이템 종류별 스냅샷으로 변환"""
    if item_type is ItemType.ARTIST:
        return ArtistItem(
            id=data["id"],
            name=data["name"],
            image_url=_first_image(data.get("images")),
            genres=data.get("genres") or [],
        )
    if item_type is ItemType.ALBUM:
        release_date = data.get("release_date") or ""
        return AlbumItem(
            id=data["id"],
            name=data["name"],
            artist_name=_first_artist(data.get("artists")),
            image_url=_first_image(data.get("images")),
            release_year=release_date[:4] or None,
        )
    album = data.get("album") or {}
    return TrackItem(
        id=data["id"],
        name=data["name"],
        artist_name=_first_artist(data.get("artists")),
        album_name=album.get("name"),
        image_url=_first_image(album.get("images")),
        duration_ms=data.get("duration_ms"),
    )


class CatalogClient:
    """Spotify 카탈로그 조회용 비동기 클라이언트.

    액세스 토큰 발급(OAuth)은 범위 밖이며 외부에서 받은 토큰을 그대로 사용합니다.
    """

    DEFAULT_TIMEOUT = 10.0

    def __init__(
        self,
        access_token: Optional[str] = None,
        base_url: str = SPOTIFY_API_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.access_token = access_token or SPOTIFY_ACCESS_TOKEN
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def get_item(self, item_id: str, item_type: ItemType) -> CatalogItem:
        """
        아이템 ID와 종류로 스냅샷 메타데이터 조회

        Raises:
            CatalogLookupError: 네트워크 오류, 비정상 상태코드, 응답 파싱 실패
        """
        url = f"{self.base_url}/{_ENDPOINTS[item_type]}/{item_id}"
        headers = {"Authorization": f"Bearer {self.access_token}"}

        try:
            response = await self._get_client().get(url, headers=headers)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning(f"Spotify HTTP 에러 (status {e.response.status_code}): {item_type.value}/{item_id}")
            raise CatalogLookupError(f"카탈로그 조회 실패: {item_type.value}/{item_id}") from e
        except httpx.HTTPError as e:
            logger.warning(f"Spotify 연결 오류: {e}")
            raise CatalogLookupError(f"카탈로그 조회 실패: {item_type.value}/{item_id}") from e

        try:
            return parse_catalog_item(item_type, data)
        except (KeyError, TypeError, ValueError) as e:
            raise CatalogLookupError(f"카탈로그 응답 파싱 오류: {e}") from e
