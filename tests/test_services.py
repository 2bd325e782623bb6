"""Tests for the external collaborator wrappers."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from app.content_pipeline.engine.errors import PermanentStepError
from app.content_pipeline.services import (
    ContentIndexService,
    IPFSPinningService,
    OriginMintService,
    TranscodeService,
)
from tests.helpers import OWNER


def json_response(data, status=200):
    response = MagicMock()
    response.status_code = status
    response.json.return_value = data
    if status >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(
            f"{status} error", response=response
        )
    return response


class TestTranscodeService:

    @patch("app.content_pipeline.services.transcode_service.requests.post")
    def test_probe(self, mock_post):
        mock_post.return_value = json_response({"has_video": True, "duration": 12.5})
        service = TranscodeService(base_url="http://transcoder/", token="tok")

        assert service.probe("https://cdn/clip.mp4")["has_video"] is True

        args, kwargs = mock_post.call_args
        assert args[0] == "http://transcoder/probe"
        assert kwargs["json"] == {"url": "https://cdn/clip.mp4"}
        assert kwargs["headers"]["Authorization"] == "Bearer tok"

    @patch("app.content_pipeline.services.transcode_service.requests.post")
    def test_transcode_hls_payload(self, mock_post):
        mock_post.return_value = json_response({"playlist_url": "https://cdn/x.m3u8"})
        TranscodeService(base_url="http://transcoder", token="tok").transcode_hls(
            "https://cdn/clip.mp4", "proc_1_abc"
        )
        payload = mock_post.call_args.kwargs["json"]
        assert payload["height"] == 720
        assert payload["segment_seconds"] == 10

    @patch("app.content_pipeline.services.transcode_service.requests.post")
    def test_fingerprint(self, mock_post):
        mock_post.return_value = json_response({"perceptual_hash": "ff00"})
        assert TranscodeService(base_url="http://t", token="").fingerprint("u") == "ff00"

    @patch("app.content_pipeline.services.transcode_service.requests.post")
    def test_server_error_raises(self, mock_post):
        mock_post.return_value = json_response({}, status=502)
        with pytest.raises(requests.exceptions.HTTPError):
            TranscodeService(base_url="http://t", token="").probe("u")


class TestIPFSPinningService:

    @patch("app.content_pipeline.services.ipfs_pinning_service.requests.post")
    def test_pin_json(self, mock_post):
        mock_post.return_value = json_response({"IpfsHash": "QmMeta", "PinSize": 321})
        service = IPFSPinningService(api_url="https://pinata", jwt="jwt",
                                     gateway_url="https://gw/")

        pinned = service.pin_json({"name": "clip"}, name="meta.json", key_values={"a": "b"})

        assert pinned == {"ipfs_hash": "QmMeta", "size": 321,
                          "gateway_url": "https://gw/ipfs/QmMeta"}
        body = mock_post.call_args.kwargs["json"]
        assert body["pinataContent"] == {"name": "clip"}
        assert body["pinataMetadata"] == {"name": "meta.json", "keyvalues": {"a": "b"}}
        assert mock_post.call_args.kwargs["headers"]["Authorization"] == "Bearer jwt"

    @patch("app.content_pipeline.services.ipfs_pinning_service.requests.post")
    @patch("app.content_pipeline.services.ipfs_pinning_service.requests.get")
    def test_pin_file_streams_download(self, mock_get, mock_post):
        download = MagicMock()
        mock_get.return_value.__enter__.return_value = download
        mock_post.return_value = json_response({"IpfsHash": "QmVideo", "PinSize": 10})
        service = IPFSPinningService(api_url="https://pinata", jwt="jwt", gateway_url="https://gw")

        pinned = service.pin_file_from_url("https://cdn/clip.mp4", name="clip.mp4")

        assert pinned["ipfs_hash"] == "QmVideo"
        assert mock_get.call_args.kwargs["stream"] is True
        assert mock_post.call_args[0][0] == "https://pinata/pinning/pinFileToIPFS"
        assert mock_post.call_args.kwargs["files"]["file"] == ("clip.mp4", download.raw)

    def test_video_metadata(self):
        service = IPFSPinningService(api_url="https://pinata", jwt="", gateway_url="https://gw")
        metadata = service.build_video_metadata(
            title="Sunset", description=None, creator=OWNER, tags=["nature"],
            video_hash="QmVideo", thumbnail_hash="QmThumb", duration=12.5,
            resolution="1280x720", allow_remixing=True, parent_token_id="42",
        )

        assert metadata["name"] == "Sunset"
        assert metadata["image"] == "ipfs://QmThumb"
        assert metadata["properties"]["files"][0]["uri"] == "ipfs://QmVideo"
        traits = {(a["trait_type"], a["value"]) for a in metadata["attributes"]}
        assert ("Derived From", "42") in traits
        assert ("Allow Remixing", "Yes") in traits
        assert ("Tag", "nature") in traits

    def test_video_metadata_without_thumbnail(self):
        service = IPFSPinningService(api_url="https://pinata", jwt="", gateway_url="https://gw")
        metadata = service.build_video_metadata(
            title="Sunset", description="", creator=OWNER, tags=[],
            video_hash="QmVideo", thumbnail_hash=None, duration=None,
            resolution=None, allow_remixing=False,
        )
        assert "image" not in metadata


class TestOriginMintService:

    def service(self):
        return OriginMintService(base_url="https://origin", api_key="key",
                                 explorer_url="https://explorer")

    @patch("app.content_pipeline.services.origin_mint_service.requests.post")
    def test_mint(self, mock_post):
        mock_post.return_value = json_response({
            "tokenId": 101, "transactionHash": "0xtx", "blockNumber": 5,
        })

        minted = self.service().mint(
            creator=OWNER, content_uri="ipfs://QmMeta", metadata={"title": "Sunset"},
            idempotency_key="proc_1_abc", parent_token_id="42",
            license_terms={"allowRemixing": True},
        )

        assert minted == {
            "token_id": "101",
            "transaction_hash": "0xtx",
            "block_number": 5,
            "explorer_url": "https://explorer/tx/0xtx",
        }
        kwargs = mock_post.call_args.kwargs
        assert kwargs["headers"]["Idempotency-Key"] == "proc_1_abc"
        assert kwargs["headers"]["X-API-Key"] == "key"
        assert kwargs["json"]["parentTokenId"] == "42"
        assert kwargs["json"]["tokenUri"] == "ipfs://QmMeta"

    @patch("app.content_pipeline.services.origin_mint_service.requests.post")
    def test_insufficient_funds_is_permanent(self, mock_post):
        mock_post.return_value = json_response({"code": "INSUFFICIENT_FUNDS"}, status=402)
        with pytest.raises(PermanentStepError):
            self.service().mint(creator=OWNER, content_uri="ipfs://x", metadata={},
                                idempotency_key="proc_1_abc")

    @patch("app.content_pipeline.services.origin_mint_service.requests.post")
    def test_relay_error_propagates_http_error(self, mock_post):
        mock_post.return_value = json_response({"code": "RPC_UNAVAILABLE"}, status=503)
        with pytest.raises(requests.exceptions.HTTPError):
            self.service().mint(creator=OWNER, content_uri="ipfs://x", metadata={},
                                idempotency_key="proc_1_abc")


class TestContentIndexService:

    def test_get_by_token_id(self):
        client = MagicMock()
        query = client.table.return_value.select.return_value.eq.return_value.limit.return_value
        query.execute.return_value.data = [{"token_id": "42", "allow_remixing": True}]

        row = ContentIndexService(client=client).get_by_token_id("42")

        assert row["token_id"] == "42"
        client.table.assert_called_with("videos")

    def test_missing_token(self):
        client = MagicMock()
        query = client.table.return_value.select.return_value.eq.return_value.limit.return_value
        query.execute.return_value.data = []
        assert ContentIndexService(client=client).find_by_perceptual_hash("ff00") is None

    def test_upsert_on_token_id(self):
        client = MagicMock()
        client.table.return_value.upsert.return_value.execute.return_value.data = [{"id": 7}]

        saved = ContentIndexService(client=client).upsert_video({"token_id": "42"})

        assert saved == {"id": 7}
        assert client.table.return_value.upsert.call_args.kwargs["on_conflict"] == "token_id"
