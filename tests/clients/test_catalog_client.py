import httpx
import pytest
from app.clients.catalog import CatalogClient, parse_catalog_item
from app.exception.api.catalog_exception import CatalogLookupError
from app.models.catalog import AlbumItem, ArtistItem, ItemType, TrackItem

TRACK_JSON = {
    "id": "t1",
    "name": "Blue in Green",
    "artists": [{"name": "Miles Davis"}, {"name": "Bill Evans"}],
    "album": {"name": "Kind of Blue", "images": [{"url": "https://img/kob.jpg"}]},
    "duration_ms": 337000,
}


def make_client(handler) -> CatalogClient:
    return CatalogClient(
        access_token="spotify-token",
        base_url="https://catalog.test/v1",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


class TestParseCatalogItem:

    def test_track(self):
        item = parse_catalog_item(ItemType.TRACK, TRACK_JSON)

        assert isinstance(item, TrackItem)
        assert item.artist_name == "Miles Davis"
        assert item.album_name == "Kind of Blue"
        assert item.image_url == "https://img/kob.jpg"

    def test_album_release_year(self):
        item = parse_catalog_item(ItemType.ALBUM, {"id": "al1", "name": "Kind of Blue", "release_date": "1959-08-17"})

        assert isinstance(item, AlbumItem)
        assert item.release_year == "1959"
        assert item.image_url is None

    def test_artist_genres(self):
        item = parse_catalog_item(ItemType.ARTIST, {"id": "ar1", "name": "Alice Coltrane", "genres": None})

        assert isinstance(item, ArtistItem)
        assert item.genres == []


class TestCatalogClient:

    @pytest.mark.asyncio
    async def test_get_item_uses_type_endpoint(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json=TRACK_JSON)

        async with make_client(handler) as client:
            item = await client.get_item("t1", ItemType.TRACK)

        assert item.id == "t1"
        assert seen == {"path": "/v1/tracks/t1", "auth": "Bearer spotify-token"}

    @pytest.mark.asyncio
    async def test_not_found(self):
        client = make_client(lambda request: httpx.Response(404, json={"error": {"status": 404}}))

        with pytest.raises(CatalogLookupError):
            await client.get_item("missing", ItemType.ALBUM)

    @pytest.mark.asyncio
    async def test_malformed_response(self):
        client = make_client(lambda request: httpx.Response(200, json={"name": "no id"}))

        with pytest.raises(CatalogLookupError):
            await client.get_item("x", ItemType.ARTIST)

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("down", request=request)

        with pytest.raises(CatalogLookupError):
            await make_client(handler).get_item("t1", ItemType.TRACK)
