"""
Platform Publishing Integration

Publish a normalized post to:
- Facebook Pages (Graph API)
- LinkedIn Organizations (UGC posts + REST documents API)

Credentials come from the platform-wide connection record; every HTTP
call carries a timeout. Failures surface as PlatformError tagged with the
platform and one of: not_connected, no_target, upload_failed,
post_failed, timeout.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

import requests

from ..config import get_settings
from ..errors import (
    NO_TARGET,
    NOT_CONNECTED,
    POST_FAILED,
    TIMEOUT,
    UPLOAD_FAILED,
    PlatformError,
)
from ..logging_config import get_logger
from ..store import ConnectionInfo
from .media_resolver import ResolvedItem, ResolvedMedia

logger = get_logger("platforms")


class Platform(str, Enum):
    """Supported publishing platforms"""
    FACEBOOK = "facebook"
    LINKEDIN = "linkedin"


@dataclass
class PublishRequest:
    """Read-only snapshot of the post handed to each adapter"""
    post_id: str
    caption: str
    target_id: Optional[str] = None  # platform-specific sub-target


# ============================================================
# SHARED HTTP HANDLING
# ============================================================

class PlatformPublisher:
    """Base adapter: one platform, one shared requests session"""

    platform: Platform

    def __init__(self, session: Optional[requests.Session] = None, timeout: Optional[float] = None):
        self.session = session or requests.Session()
        self.timeout = timeout or get_settings().platform_timeout_seconds

    def publish(self, request: PublishRequest, media: ResolvedMedia,
                connection: Optional[ConnectionInfo]) -> Dict:
        raise NotImplementedError

    def _error(self, kind: str, message: str) -> PlatformError:
        return PlatformError(self.platform.value, kind, message)

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text[:300] or response.reason
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict) and error.get("message"):
                return error["message"]
            if body.get("message"):
                return body["message"]
        return str(body)[:300]

    def _call(self, kind: str, method: str, url: str, **kwargs) -> requests.Response:
        """Send one request; map transport and HTTP errors to PlatformError(kind)."""
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.Timeout:
            raise self._error(TIMEOUT, f"{method} {url} timed out after {self.timeout}s")
        except requests.RequestException as e:
            raise self._error(kind, f"{method} {url} failed: {e}")

        if response.status_code >= 400:
            raise self._error(kind, f"HTTP {response.status_code}: {self._error_message(response)}")
        return response

    @staticmethod
    def _json(response: requests.Response) -> Dict:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {"data": body}


# ============================================================
# FACEBOOK
# ============================================================

class FacebookPublisher(PlatformPublisher):
    """Publish to the first connected Facebook Page"""

    platform = Platform.FACEBOOK

    def __init__(self, session: Optional[requests.Session] = None, timeout: Optional[float] = None):
        super().__init__(session, timeout)
        settings = get_settings()
        self.base_url = f"{settings.facebook_graph_url.rstrip('/')}/{settings.facebook_api_version}"

    def _page(self, connection: Optional[ConnectionInfo]) -> Dict:
        if connection is None or not connection.credential:
            raise self._error(NOT_CONNECTED, "Facebook not connected")
        if not connection.targets:
            raise self._error(NO_TARGET, "No Facebook pages found. Please reconnect your Facebook account.")
        page = dict(connection.targets[0])
        page.setdefault("access_token", connection.credential)
        return page

    @staticmethod
    def _source(item: ResolvedItem, default_name: str):
        return (item.file_name or default_name, item.content, item.mime_type or "application/octet-stream")

    def publish(self, request: PublishRequest, media: ResolvedMedia,
                connection: Optional[ConnectionInfo]) -> Dict:
        page = self._page(connection)
        page_id, token = page["id"], page["access_token"]

        if media.documents:
            logger.warning(
                "Facebook does not support documents, skipping",
                post_id=request.post_id,
                documents=len(media.documents),
            )

        images, videos = media.images, media.videos

        if len(images) >= 2:
            if videos:
                logger.warning("Videos are not supported alongside multiple images, skipping",
                               post_id=request.post_id, videos=len(videos))
            return self._post_multi_image(page_id, token, request, images)
        if videos:
            if len(videos) > 1:
                logger.warning("Only the first video is published", post_id=request.post_id, videos=len(videos))
            return self._post_video(page_id, token, request, videos[0])
        if images:
            return self._post_photo(page_id, token, request, images[0])
        return self._post_text(page_id, token, request)

    def _post_text(self, page_id: str, token: str, request: PublishRequest) -> Dict:
        response = self._call(
            POST_FAILED, "POST", f"{self.base_url}/{page_id}/feed",
            data={"message": request.caption, "access_token": token},
        )
        logger.info("Facebook text post created", post_id=request.post_id, page_id=page_id)
        return self._json(response)

    def _post_photo(self, page_id: str, token: str, request: PublishRequest, image: ResolvedItem) -> Dict:
        response = self._call(
            UPLOAD_FAILED, "POST", f"{self.base_url}/{page_id}/photos",
            data={"message": request.caption, "access_token": token},
            files={"source": self._source(image, "image.jpg")},
        )
        logger.info("Facebook photo post created", post_id=request.post_id, page_id=page_id)
        return self._json(response)

    def _post_video(self, page_id: str, token: str, request: PublishRequest, video: ResolvedItem) -> Dict:
        response = self._call(
            UPLOAD_FAILED, "POST", f"{self.base_url}/{page_id}/videos",
            data={"description": request.caption, "access_token": token},
            files={"source": self._source(video, "video.mp4")},
        )
        logger.info("Facebook video post created", post_id=request.post_id, page_id=page_id)
        return self._json(response)

    def _post_multi_image(self, page_id: str, token: str, request: PublishRequest,
                          images: List[ResolvedItem]) -> Dict:
        photo_ids = []
        for index, image in enumerate(images):
            response = self._call(
                UPLOAD_FAILED, "POST", f"{self.base_url}/{page_id}/photos",
                data={"published": "false", "access_token": token},
                files={"source": self._source(image, f"image_{index}.jpg")},
            )
            photo_id = self._json(response).get("id")
            if not photo_id:
                raise self._error(UPLOAD_FAILED, f"Photo {index + 1} upload returned no id")
            photo_ids.append(photo_id)

        data = {"message": request.caption, "access_token": token}
        for index, photo_id in enumerate(photo_ids):
            data[f"attached_media[{index}]"] = json.dumps({"media_fbid": photo_id})

        response = self._call(POST_FAILED, "POST", f"{self.base_url}/{page_id}/feed", data=data)
        result = self._json(response)
        result["photo_ids"] = photo_ids
        logger.info("Facebook multi-image post created", post_id=request.post_id,
                    page_id=page_id, images=len(photo_ids))
        return result


# ============================================================
# LINKEDIN
# ============================================================

class LinkedInPublisher(PlatformPublisher):
    """Publish as a connected LinkedIn organization"""

    platform = Platform.LINKEDIN

    RECIPES = {
        "image": "urn:li:digitalmediaRecipe:feedshare-image",
        "video": "urn:li:digitalmediaRecipe:feedshare-video",
    }
    UPLOAD_MECHANISM = "com.linkedin.digitalmedia.uploading.MediaUploadHttpRequest"

    def __init__(self, session: Optional[requests.Session] = None, timeout: Optional[float] = None):
        super().__init__(session, timeout)
        settings = get_settings()
        self.base_url = settings.linkedin_api_url.rstrip("/")
        self.api_version = settings.linkedin_api_version

    def _organization(self, connection: Optional[ConnectionInfo], target_id: Optional[str]) -> str:
        if connection is None or not connection.credential:
            raise self._error(NOT_CONNECTED, "LinkedIn not connected")
        if not connection.targets:
            raise self._error(NO_TARGET, "No LinkedIn organizations found. Please reconnect your LinkedIn account.")
        if target_id:
            for org in connection.targets:
                if str(org.get("id")) == str(target_id):
                    return str(org["id"])
            raise self._error(NO_TARGET, f"LinkedIn organization {target_id} is not connected")
        return str(connection.targets[0]["id"])

    def _headers(self, token: str, rest: bool = False) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "X-Restli-Protocol-Version": "2.0.0",
        }
        if rest:
            headers["LinkedIn-Version"] = self.api_version
        return headers

    def publish(self, request: PublishRequest, media: ResolvedMedia,
                connection: Optional[ConnectionInfo]) -> Dict:
        org_id = self._organization(connection, request.target_id)
        token = connection.credential
        author = f"urn:li:organization:{org_id}"

        documents, images, videos = media.documents, media.images, media.videos

        if documents:
            if len(documents) > 1:
                logger.warning("Only one document per LinkedIn post, using the first",
                               post_id=request.post_id, documents=len(documents))
            return self._post_document(token, author, request, documents[0])
        if len(images) >= 2:
            assets = [self._upload_asset(token, author, image, "image") for image in images]
            return self._post_ugc(token, author, request, "IMAGE", assets)
        if images or videos:
            item, category = (images[0], "image") if images else (videos[0], "video")
            asset = self._upload_asset(token, author, item, category)
            return self._post_ugc(token, author, request, category.upper(), [asset])
        return self._post_ugc(token, author, request, "NONE", [])

    def _upload_asset(self, token: str, author: str, item: ResolvedItem, category: str) -> str:
        """registerUpload + PUT bytes; returns the asset URN."""
        response = self._call(
            UPLOAD_FAILED, "POST", f"{self.base_url}/v2/assets?action=registerUpload",
            headers=self._headers(token),
            json={
                "registerUploadRequest": {
                    "recipes": [self.RECIPES[category]],
                    "owner": author,
                    "serviceRelationships": [{
                        "relationshipType": "OWNER",
                        "identifier": "urn:li:userGeneratedContent",
                    }],
                }
            },
        )
        value = self._json(response).get("value", {})
        try:
            upload_url = value["uploadMechanism"][self.UPLOAD_MECHANISM]["uploadUrl"]
            asset = value["asset"]
        except (KeyError, TypeError):
            raise self._error(UPLOAD_FAILED, "registerUpload response missing upload URL or asset")

        self._call(
            UPLOAD_FAILED, "PUT", upload_url,
            data=item.content,
            headers={"Authorization": f"Bearer {token}", "Content-Type": "application/octet-stream"},
        )
        return asset

    def _post_ugc(self, token: str, author: str, request: PublishRequest,
                  category: str, assets: List[str]) -> Dict:
        share = {
            "shareCommentary": {"text": request.caption},
            "shareMediaCategory": category,
        }
        if assets:
            share["media"] = [{"status": "READY", "media": asset} for asset in assets]

        response = self._call(
            POST_FAILED, "POST", f"{self.base_url}/v2/ugcPosts",
            headers=self._headers(token),
            json={
                "author": author,
                "lifecycleState": "PUBLISHED",
                "specificContent": {"com.linkedin.ugc.ShareContent": share},
                "visibility": {"com.linkedin.ugc.MemberNetworkVisibility": "PUBLIC"},
            },
        )
        result = self._json(response)
        result.setdefault("id", response.headers.get("x-restli-id"))
        logger.info("LinkedIn post created", post_id=request.post_id, category=category,
                    assets=len(assets), linkedin_id=result.get("id"))
        return result

    def _post_document(self, token: str, author: str, request: PublishRequest, document: ResolvedItem) -> Dict:
        """initializeUpload, PUT bytes, then create a post referencing the document."""
        response = self._call(
            UPLOAD_FAILED, "POST", f"{self.base_url}/rest/documents?action=initializeUpload",
            headers=self._headers(token, rest=True),
            json={"initializeUploadRequest": {"owner": author}},
        )
        value = self._json(response).get("value", {})
        upload_url, document_urn = value.get("uploadUrl"), value.get("document")
        if not upload_url or not document_urn:
            raise self._error(UPLOAD_FAILED, "initializeUpload response missing upload URL or document")

        self._call(
            UPLOAD_FAILED, "PUT", upload_url,
            data=document.content,
            headers={"Authorization": f"Bearer {token}", "Content-Type": "application/octet-stream"},
        )

        response = self._call(
            POST_FAILED, "POST", f"{self.base_url}/rest/posts",
            headers=self._headers(token, rest=True),
            json={
                "author": author,
                "commentary": request.caption,
                "visibility": "PUBLIC",
                "distribution": {
                    "feedDistribution": "MAIN_FEED",
                    "targetEntities": [],
                    "thirdPartyDistributionChannels": [],
                },
                "content": {"media": {"title": document.file_name or "Document", "id": document_urn}},
                "lifecycleState": "PUBLISHED",
                "isReshareDisabledByAuthor": False,
            },
        )
        result = self._json(response)
        result.setdefault("id", response.headers.get("x-restli-id"))
        result["document"] = document_urn
        logger.info("LinkedIn document post created", post_id=request.post_id, document=document_urn)
        return result


# ============================================================
# REGISTRY
# ============================================================

def get_platform_publishers() -> Dict[str, PlatformPublisher]:
    """One adapter per supported platform, keyed by platform name"""
    return {
        Platform.FACEBOOK.value: FacebookPublisher(),
        Platform.LINKEDIN.value: LinkedInPublisher(),
    }
