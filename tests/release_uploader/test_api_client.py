"""
Tests for ReleaseApiClient.

Test coverage:
- Request shape (method, URL, body, query parameters, auth header)
- Response interpretation for each control-plane call
- Error mapping (401, 403, 409, unexpected status, malformed JSON)
"""

import aiohttp
import pytest

from core.errors.exceptions import ApiError, AuthError, ConflictError, ForbiddenError
from core.http.client import ResilientHttpClient
from release_uploader.api_client import (
    ReleaseApiClient,
    quote_odata_string,
    release_asset_by_key,
)
from release_uploader.schemas import CommitPayload, FileMetadata, PartResult, UploadPart

API_URL = "https://api.example.io"


@pytest.fixture
def make_client(recording_sleep):
    def factory(session):
        http = ResilientHttpClient(
            base_url=API_URL,
            headers={"Authorization": "Bearer t0k3n"},
            session=session,
            sleep=recording_sleep,
        )
        return ReleaseApiClient(API_URL, "t0k3n", http=http)

    return factory


def form_field_names(form):
    return [options["name"] for options, _headers, _value in form._fields]


class TestODataPaths:

    def test_quote_doubles_single_quotes(self):
        assert quote_odata_string("it's") == "'it''s'"

    def test_release_asset_by_key(self):
        assert (
            release_asset_by_key(42, "firmware")
            == "resin/release_asset(release=42,asset_key='firmware')"
        )


class TestIdentityAndAccess:

    @pytest.mark.asyncio
    async def test_whoami(self, make_client, fake_session, fake_response):
        session = fake_session([fake_response(200, {"id": 1, "actorType": "user"})])
        api = make_client(session)

        identity = await api.whoami()

        assert identity["actorType"] == "user"
        method, url, _ = session.calls[0]
        assert (method, url) == ("GET", f"{API_URL}/actor/v1/whoami")

    @pytest.mark.asyncio
    async def test_whoami_unauthorized(self, make_client, fake_session, fake_response):
        api = make_client(fake_session([fake_response(401, "Unauthorized")]))

        with pytest.raises(AuthError, match="Not logged in"):
            await api.whoami()

    @pytest.mark.asyncio
    async def test_can_access_release(self, make_client, fake_session, fake_response):
        session = fake_session([fake_response(200, {"d": [{"id": 42}]})])
        api = make_client(session)

        await api.can_access_release(42)

        method, url, kwargs = session.calls[0]
        assert method == "POST"
        assert url == f"{API_URL}/resin/release(42)/canAccess"
        assert kwargs["json"] == {"action": "update"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response_args",
        [(200, {"d": []}), (200, {}), (403, "Forbidden"), (404, "")],
    )
    async def test_can_access_denied(self, make_client, fake_session, fake_response, response_args):
        api = make_client(fake_session([fake_response(*response_args)]))

        with pytest.raises(ForbiddenError, match="necessary access"):
            await api.can_access_release(42)


class TestAssetRecords:

    @pytest.mark.asyncio
    async def test_get_release_asset_id_found(self, make_client, fake_session, fake_response):
        session = fake_session([fake_response(200, {"d": [{"id": 77}]})])
        api = make_client(session)

        assert await api.get_release_asset_id(42, "firmware") == 77

        method, url, kwargs = session.calls[0]
        assert method == "GET"
        assert url == f"{API_URL}/resin/release_asset(release=42,asset_key='firmware')"
        assert kwargs["params"] == {"$select": "id"}

    @pytest.mark.asyncio
    async def test_get_release_asset_id_missing(self, make_client, fake_session, fake_response):
        api = make_client(fake_session([fake_response(200, {"d": []})]))
        assert await api.get_release_asset_id(42, "firmware") is None

    @pytest.mark.asyncio
    async def test_get_release_asset_id_error(self, make_client, fake_session, fake_response):
        api = make_client(fake_session([fake_response(400, "bad filter")]))

        with pytest.raises(ApiError) as exc_info:
            await api.get_release_asset_id(42, "firmware")

        assert exc_info.value.status_code == 400
        assert "HTTP 400 bad filter" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_create_release_asset(self, make_client, fake_session, fake_response):
        session = fake_session([fake_response(201, {"id": 5})])
        api = make_client(session)

        assert await api.create_release_asset(42, "firmware") == 5

        method, url, kwargs = session.calls[0]
        assert (method, url) == ("POST", f"{API_URL}/resin/release_asset")
        assert kwargs["json"] == {"asset_key": "firmware", "release": 42}

    @pytest.mark.asyncio
    async def test_create_release_asset_conflict(self, make_client, fake_session, fake_response):
        api = make_client(fake_session([fake_response(409, "Unique key constraint violated")]))

        with pytest.raises(ConflictError, match="already exists"):
            await api.create_release_asset(42, "firmware")

    @pytest.mark.asyncio
    async def test_malformed_json_is_api_error(self, make_client, fake_session, fake_response):
        api = make_client(fake_session([fake_response(201, b"<html>")]))

        with pytest.raises(ApiError, match="invalid JSON"):
            await api.create_release_asset(42, "firmware")


class TestMultipart:

    @pytest.mark.asyncio
    async def test_begin_upload(self, make_client, fake_session, fake_response):
        body = {
            "asset": {
                "uuid": "session-1",
                "uploadParts": [
                    {"url": "https://s3/p1", "chunkSize": 10, "partNumber": 1},
                    {"url": "https://s3/p2", "chunkSize": 10, "partNumber": 2},
                ],
            }
        }
        session = fake_session([fake_response(200, body)])
        api = make_client(session)
        metadata = FileMetadata(filename="app.img", content_type="application/x-raw", size=20)

        response = await api.begin_multipart_upload(5, metadata, 10)

        assert response.session_id == "session-1"
        assert [p.part_number for p in response.parts] == [1, 2]
        method, url, kwargs = session.calls[0]
        assert url == f"{API_URL}/resin/release_asset(5)/beginUpload"
        assert kwargs["json"] == {
            "asset": {
                "filename": "app.img",
                "content_type": "application/x-raw",
                "size": 20,
                "chunk_size": 10,
            }
        }

    @pytest.mark.asyncio
    async def test_commit_upload(self, make_client, fake_session, fake_response):
        session = fake_session([fake_response(200, {"href": "https://cdn/app.img"})])
        api = make_client(session)
        parts = [
            UploadPart(part_number=1, url="https://s3/p1", chunk_size=10),
            UploadPart(part_number=2, url="https://s3/p2", chunk_size=10),
        ]
        payload = CommitPayload.from_results(
            [PartResult(part_number=2, etag="b"), PartResult(part_number=1, etag="a")],
            parts,
        )

        href = await api.commit_multipart_upload(5, "session-1", payload)

        assert href == "https://cdn/app.img"
        _, url, kwargs = session.calls[0]
        assert url == f"{API_URL}/resin/release_asset(5)/commitUpload"
        assert kwargs["json"] == {
            "uuid": "session-1",
            "providerCommitData": {
                "Parts": [
                    {"PartNumber": 1, "ETag": "a"},
                    {"PartNumber": 2, "ETag": "b"},
                ]
            },
        }

    @pytest.mark.asyncio
    async def test_commit_without_href(self, make_client, fake_session, fake_response):
        api = make_client(fake_session([fake_response(200, {})]))
        payload = CommitPayload(parts=[PartResult(part_number=1, etag="a")])

        with pytest.raises(ApiError, match="no href"):
            await api.commit_multipart_upload(5, "session-1", payload)

    @pytest.mark.asyncio
    async def test_cancel_upload(self, make_client, fake_session, fake_response):
        session = fake_session([fake_response(204)])
        api = make_client(session)

        await api.cancel_multipart_upload(5, "session-1")

        _, url, kwargs = session.calls[0]
        assert url == f"{API_URL}/resin/release_asset(5)/cancelUpload"
        assert kwargs["json"] == {"uuid": "session-1"}

    @pytest.mark.asyncio
    async def test_cancel_upload_failure(self, make_client, fake_session, fake_response):
        api = make_client(fake_session([fake_response(404, "no such upload")]))

        with pytest.raises(ApiError):
            await api.cancel_multipart_upload(5, "session-1")


class TestStreamUpload:

    @pytest.mark.asyncio
    async def test_creates_asset_with_form(self, make_client, fake_session, fake_response, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_bytes(b"hello")
        session = fake_session([fake_response(201, {"id": 9})])
        api = make_client(session)
        metadata = FileMetadata(filename="notes.txt", content_type="text/plain", size=5)

        await api.upload_release_asset_stream(42, "notes", str(path), metadata)

        method, url, kwargs = session.calls[0]
        assert (method, url) == ("POST", f"{API_URL}/resin/release_asset")
        assert isinstance(kwargs["data"], aiohttp.FormData)
        assert form_field_names(kwargs["data"]) == ["asset", "asset_key", "release"]

    @pytest.mark.asyncio
    async def test_replaces_existing_asset(self, make_client, fake_session, fake_response, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_bytes(b"hello")
        session = fake_session([fake_response(200, {})])
        api = make_client(session)
        metadata = FileMetadata(filename="notes.txt", size=5)

        await api.upload_release_asset_stream(42, "notes", str(path), metadata, release_asset_id=77)

        method, url, kwargs = session.calls[0]
        assert (method, url) == ("PATCH", f"{API_URL}/resin/release_asset(77)")
        assert form_field_names(kwargs["data"]) == ["asset"]

    @pytest.mark.asyncio
    async def test_fresh_form_per_attempt(self, make_client, fake_session, fake_response, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_bytes(b"hello")
        session = fake_session([fake_response(503), fake_response(201, {"id": 9})])
        api = make_client(session)

        await api.upload_release_asset_stream(
            42, "notes", str(path), FileMetadata(filename="notes.txt", size=5)
        )

        first, second = session.calls[0][2]["data"], session.calls[1][2]["data"]
        assert first is not second

    @pytest.mark.asyncio
    async def test_stream_conflict(self, make_client, fake_session, fake_response, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_bytes(b"hello")
        api = make_client(fake_session([fake_response(409)]))

        with pytest.raises(ConflictError):
            await api.upload_release_asset_stream(
                42, "notes", str(path), FileMetadata(filename="notes.txt", size=5)
            )

    @pytest.mark.asyncio
    async def test_get_release_asset(self, make_client, fake_session, fake_response):
        body = {"d": [{"id": 9, "asset": {"href": "https://cdn/notes.txt"}}]}
        session = fake_session([fake_response(200, body)])
        api = make_client(session)

        result = await api.get_release_asset(42, "notes")

        assert result.release_asset_id == 9
        assert result.download_url == "https://cdn/notes.txt"
        assert session.calls[0][2]["params"] == {"$select": "id,asset"}

    @pytest.mark.asyncio
    async def test_get_release_asset_missing(self, make_client, fake_session, fake_response):
        api = make_client(fake_session([fake_response(200, {"d": []})]))

        with pytest.raises(ApiError, match="not found after upload"):
            await api.get_release_asset(42, "notes")


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_injected_session_not_closed(self, make_client, fake_session):
        session = fake_session()
        async with make_client(session):
            pass
        assert session.closed is False

    def test_default_http_client_carries_bearer_token(self):
        api = ReleaseApiClient(API_URL + "/", "t0k3n")
        assert api.api_url == API_URL
        assert api._http.default_headers == {"Authorization": "Bearer t0k3n"}
        assert api._http.base_url == API_URL
