"""
Tests for the Facebook and LinkedIn adapters with a mocked HTTP session.
"""
from unittest.mock import MagicMock

import pytest
import requests

from social_planner.errors import NO_TARGET, NOT_CONNECTED, POST_FAILED, TIMEOUT, UPLOAD_FAILED, PlatformError
from social_planner.models.post import MediaKind
from social_planner.store import ConnectionInfo
from social_planner.worker.media_resolver import ResolvedItem, ResolvedMedia
from social_planner.worker.platform_upload import FacebookPublisher, LinkedInPublisher, PublishRequest

from .conftest import PDF_BYTES, PNG_BYTES


def _response(status=200, body=None, headers=None):
    response = MagicMock()
    response.status_code = status
    response.json.return_value = body if body is not None else {}
    response.headers = headers or {}
    response.text = ""
    response.reason = "Error"
    return response


def _session(*responses):
    session = MagicMock()
    session.request.side_effect = list(responses)
    return session


def _calls(session):
    return [(c.args[0], c.args[1]) for c in session.request.call_args_list]


def _media(*items):
    return ResolvedMedia(items=list(items))


IMAGE = ResolvedItem(kind=MediaKind.IMAGE, content=PNG_BYTES, mime_type="image/png", file_name="a.png")
IMAGE_2 = ResolvedItem(kind=MediaKind.IMAGE, content=PNG_BYTES, mime_type="image/png", file_name="b.png")
VIDEO = ResolvedItem(kind=MediaKind.VIDEO, content=b"\x00\x00\x00\x18ftypmp42", mime_type="video/mp4")
DOCUMENT = ResolvedItem(kind=MediaKind.DOCUMENT, content=PDF_BYTES, mime_type="application/pdf",
                        file_name="deck.pdf")

REQUEST = PublishRequest(post_id="p1", caption="hello")
FB_CONNECTION = ConnectionInfo(
    platform="facebook",
    credential="user-token",
    targets=[{"id": "page-1", "name": "Brand", "access_token": "page-token"}],
)
LI_CONNECTION = ConnectionInfo(
    platform="linkedin",
    credential="li-token",
    targets=[{"id": "111", "name": "Brand Co"}, {"id": "222", "name": "Other Co"}],
)

REGISTER_BODY = {
    "value": {
        "asset": "urn:li:digitalmediaAsset:1",
        "uploadMechanism": {
            LinkedInPublisher.UPLOAD_MECHANISM: {"uploadUrl": "https://upload.example.com/1"},
        },
    }
}


class TestFacebookPublisher:

    def test_not_connected(self):
        session = _session()
        with pytest.raises(PlatformError) as exc:
            FacebookPublisher(session=session).publish(REQUEST, _media(), None)
        assert exc.value.kind == NOT_CONNECTED
        assert exc.value.message == "Facebook not connected"
        session.request.assert_not_called()

    def test_no_pages(self):
        connection = ConnectionInfo(platform="facebook", credential="t", targets=[])
        with pytest.raises(PlatformError) as exc:
            FacebookPublisher(session=_session()).publish(REQUEST, _media(), connection)
        assert exc.value.kind == NO_TARGET

    def test_text_post(self):
        session = _session(_response(body={"id": "page-1_99"}))
        result = FacebookPublisher(session=session).publish(REQUEST, _media(), FB_CONNECTION)

        assert result == {"id": "page-1_99"}
        method, url = _calls(session)[0]
        assert method == "POST" and url.endswith("/page-1/feed")
        data = session.request.call_args.kwargs["data"]
        assert data == {"message": "hello", "access_token": "page-token"}
        assert session.request.call_args.kwargs["timeout"]

    def test_single_image(self):
        session = _session(_response(body={"id": "photo-1", "post_id": "page-1_1"}))
        FacebookPublisher(session=session).publish(REQUEST, _media(IMAGE), FB_CONNECTION)
        assert _calls(session)[0][1].endswith("/page-1/photos")
        assert "source" in session.request.call_args.kwargs["files"]

    def test_single_video(self):
        session = _session(_response(body={"id": "video-1"}))
        FacebookPublisher(session=session).publish(REQUEST, _media(VIDEO), FB_CONNECTION)
        assert _calls(session)[0][1].endswith("/page-1/videos")
        assert session.request.call_args.kwargs["data"]["description"] == "hello"

    def test_multi_image_attaches_unpublished_photos(self):
        session = _session(
            _response(body={"id": "ph-1"}),
            _response(body={"id": "ph-2"}),
            _response(body={"id": "page-1_5"}),
        )
        result = FacebookPublisher(session=session).publish(REQUEST, _media(IMAGE, IMAGE_2), FB_CONNECTION)

        urls = [url for _, url in _calls(session)]
        assert urls[0].endswith("/photos") and urls[1].endswith("/photos")
        assert urls[2].endswith("/feed")
        first_upload = session.request.call_args_list[0].kwargs["data"]
        assert first_upload["published"] == "false"
        feed = session.request.call_args_list[2].kwargs["data"]
        assert feed["attached_media[0]"] == '{"media_fbid": "ph-1"}'
        assert feed["attached_media[1]"] == '{"media_fbid": "ph-2"}'
        assert result["photo_ids"] == ["ph-1", "ph-2"]

    def test_document_skipped_falls_back_to_text(self):
        session = _session(_response(body={"id": "page-1_7"}))
        result = FacebookPublisher(session=session).publish(REQUEST, _media(DOCUMENT), FB_CONNECTION)
        assert result == {"id": "page-1_7"}
        assert _calls(session)[0][1].endswith("/feed")

    def test_http_error_message_extracted(self):
        session = _session(_response(400, {"error": {"message": "Invalid OAuth access token"}}))
        with pytest.raises(PlatformError) as exc:
            FacebookPublisher(session=session).publish(REQUEST, _media(IMAGE), FB_CONNECTION)
        assert exc.value.kind == UPLOAD_FAILED
        assert "Invalid OAuth access token" in exc.value.message

    def test_timeout(self):
        session = MagicMock()
        session.request.side_effect = requests.Timeout("slow")
        with pytest.raises(PlatformError) as exc:
            FacebookPublisher(session=session, timeout=1).publish(REQUEST, _media(), FB_CONNECTION)
        assert exc.value.kind == TIMEOUT

    def test_connection_error_is_post_failed(self):
        session = MagicMock()
        session.request.side_effect = requests.ConnectionError("refused")
        with pytest.raises(PlatformError) as exc:
            FacebookPublisher(session=session).publish(REQUEST, _media(), FB_CONNECTION)
        assert exc.value.kind == POST_FAILED


class TestLinkedInPublisher:

    def test_not_connected(self):
        with pytest.raises(PlatformError) as exc:
            LinkedInPublisher(session=_session()).publish(REQUEST, _media(), None)
        assert exc.value.kind == NOT_CONNECTED

    def test_text_post_uses_first_organization(self):
        session = _session(_response(201, {}, headers={"x-restli-id": "urn:li:share:1"}))
        result = LinkedInPublisher(session=session).publish(REQUEST, _media(), LI_CONNECTION)

        assert result["id"] == "urn:li:share:1"
        body = session.request.call_args.kwargs["json"]
        assert body["author"] == "urn:li:organization:111"
        share = body["specificContent"]["com.linkedin.ugc.ShareContent"]
        assert share["shareMediaCategory"] == "NONE"
        assert share["shareCommentary"]["text"] == "hello"

    def test_explicit_organization(self):
        session = _session(_response(201, {"id": "urn:li:share:2"}))
        request = PublishRequest(post_id="p1", caption="hi", target_id="222")
        LinkedInPublisher(session=session).publish(request, _media(), LI_CONNECTION)
        assert session.request.call_args.kwargs["json"]["author"] == "urn:li:organization:222"

    def test_unknown_organization(self):
        request = PublishRequest(post_id="p1", caption="hi", target_id="999")
        with pytest.raises(PlatformError) as exc:
            LinkedInPublisher(session=_session()).publish(request, _media(), LI_CONNECTION)
        assert exc.value.kind == NO_TARGET

    def test_multi_image_registers_each_asset(self):
        session = _session(
            _response(body=REGISTER_BODY), _response(201),
            _response(body=REGISTER_BODY), _response(201),
            _response(201, {"id": "urn:li:share:3"}),
        )
        LinkedInPublisher(session=session).publish(REQUEST, _media(IMAGE, IMAGE_2), LI_CONNECTION)

        calls = _calls(session)
        assert [m for m, _ in calls] == ["POST", "PUT", "POST", "PUT", "POST"]
        assert calls[0][1].endswith("/v2/assets?action=registerUpload")
        assert calls[1][1] == "https://upload.example.com/1"
        share = session.request.call_args.kwargs["json"]["specificContent"]["com.linkedin.ugc.ShareContent"]
        assert share["shareMediaCategory"] == "IMAGE"
        assert len(share["media"]) == 2

    def test_single_video(self):
        session = _session(_response(body=REGISTER_BODY), _response(201), _response(201, {"id": "s"}))
        LinkedInPublisher(session=session).publish(REQUEST, _media(VIDEO), LI_CONNECTION)
        register = session.request.call_args_list[0].kwargs["json"]["registerUploadRequest"]
        assert register["recipes"] == ["urn:li:digitalmediaRecipe:feedshare-video"]
        share = session.request.call_args.kwargs["json"]["specificContent"]["com.linkedin.ugc.ShareContent"]
        assert share["shareMediaCategory"] == "VIDEO"

    def test_document_flow(self):
        session = _session(
            _response(body={"value": {"uploadUrl": "https://upload.example.com/doc", "document": "urn:li:document:9"}}),
            _response(201),
            _response(201, {}, headers={"x-restli-id": "urn:li:share:9"}),
        )
        result = LinkedInPublisher(session=session).publish(REQUEST, _media(DOCUMENT, IMAGE), LI_CONNECTION)

        calls = _calls(session)
        assert calls[0][1].endswith("/rest/documents?action=initializeUpload")
        assert calls[1] == ("PUT", "https://upload.example.com/doc")
        assert calls[2][1].endswith("/rest/posts")
        post_body = session.request.call_args.kwargs["json"]
        assert post_body["content"]["media"] == {"title": "deck.pdf", "id": "urn:li:document:9"}
        assert "LinkedIn-Version" in session.request.call_args.kwargs["headers"]
        assert result["id"] == "urn:li:share:9"
        assert result["document"] == "urn:li:document:9"

    def test_document_failure_propagates(self):
        session = _session(_response(500, {"message": "upload service down"}))
        with pytest.raises(PlatformError) as exc:
            LinkedInPublisher(session=session).publish(REQUEST, _media(DOCUMENT), LI_CONNECTION)
        assert exc.value.kind == UPLOAD_FAILED
        assert "upload service down" in exc.value.message
        assert len(session.request.call_args_list) == 1
