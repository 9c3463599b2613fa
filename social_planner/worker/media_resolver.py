"""
Media Resolver

Normalizes a post's declared media into concrete bytes for the platform
adapters:
- The media-item collection wins over the legacy single-media field
- Each item's durable URL is fetched; inline data URIs are decoded
- Items that cannot be fetched are dropped with a warning
- Kind detection: explicit tag, then MIME type, then header bytes
"""
from dataclasses import dataclass, field
from typing import List, Optional

from ..errors import StorageError
from ..logging_config import get_logger, timed
from ..models.post import MediaKind, Post
from ..storage import ObjectStorage, is_data_uri, parse_data_uri

logger = get_logger("media")


@dataclass
class ResolvedItem:
    kind: MediaKind
    content: bytes
    mime_type: Optional[str] = None
    file_name: Optional[str] = None


@dataclass
class ResolvedMedia:
    """Ordered resolved items with per-kind views for adapter routing"""
    items: List[ResolvedItem] = field(default_factory=list)
    dropped: int = 0

    def of_kind(self, kind: MediaKind) -> List[ResolvedItem]:
        return [item for item in self.items if item.kind == kind]

    @property
    def images(self) -> List[ResolvedItem]:
        return self.of_kind(MediaKind.IMAGE)

    @property
    def videos(self) -> List[ResolvedItem]:
        return self.of_kind(MediaKind.VIDEO)

    @property
    def documents(self) -> List[ResolvedItem]:
        return self.of_kind(MediaKind.DOCUMENT)

    @property
    def counts(self) -> dict:
        return {kind.value: len(self.of_kind(kind)) for kind in MediaKind}

    def __len__(self) -> int:
        return len(self.items)


# ============================================================
# KIND DETECTION
# ============================================================

def kind_from_tag(tag: Optional[str]) -> Optional[MediaKind]:
    if not tag:
        return None
    tag = tag.lower()
    if tag in ("pdf", "document"):
        return MediaKind.DOCUMENT
    try:
        return MediaKind(tag)
    except ValueError:
        return None


def kind_from_mime(mime_type: Optional[str]) -> Optional[MediaKind]:
    if not mime_type:
        return None
    mime_type = mime_type.lower()
    if mime_type.startswith("image/"):
        return MediaKind.IMAGE
    if mime_type.startswith("video/"):
        return MediaKind.VIDEO
    if mime_type == "application/pdf":
        return MediaKind.DOCUMENT
    return None


def sniff_kind(content: bytes) -> Optional[MediaKind]:
    """Detect the kind from the payload's magic bytes."""
    head = content[:16]
    if head.startswith(b"%PDF"):
        return MediaKind.DOCUMENT
    if (head.startswith(b"\xff\xd8\xff") or head.startswith(b"\x89PNG")
            or head.startswith(b"GIF8") or (head[:4] == b"RIFF" and head[8:12] == b"WEBP")):
        return MediaKind.IMAGE
    if head[4:8] == b"ftyp" or head.startswith(b"\x1a\x45\xdf\xa3"):
        return MediaKind.VIDEO
    return None


def detect_kind(content: bytes, tag: Optional[str] = None, mime_type: Optional[str] = None) -> Optional[MediaKind]:
    """Tag, then MIME type, then header bytes. None when nothing matches."""
    return kind_from_tag(tag) or kind_from_mime(mime_type) or sniff_kind(content)


# ============================================================
# RESOLVER
# ============================================================

class MediaResolver:
    """Turn declared media into a ResolvedMedia list"""

    def __init__(self, storage: ObjectStorage):
        self.storage = storage

    def _load(self, reference: str):
        """Bytes and content type for a durable URL or an inline data URI."""
        if is_data_uri(reference):
            mime_type, content = parse_data_uri(reference)
            return content, mime_type
        return self.storage.get(reference)

    def _resolve_item(self, item: dict, post_id: str) -> Optional[ResolvedItem]:
        reference = item.get("url") or item.get("data")
        if not reference:
            logger.warning("Media item has no content, dropping", post_id=post_id, file_name=item.get("file_name"))
            return None
        try:
            content, fetched_type = self._load(reference)
        except (StorageError, ValueError) as e:
            logger.warning(
                "Media item could not be fetched, dropping",
                post_id=post_id,
                file_name=item.get("file_name"),
                error_message=str(e),
            )
            return None

        mime_type = item.get("mime_type") or fetched_type
        kind = detect_kind(content, item.get("type"), mime_type)
        if kind is None:
            logger.warning(
                "Media item kind not recognised, dropping",
                post_id=post_id,
                file_name=item.get("file_name"),
                mime_type=mime_type,
            )
            return None
        return ResolvedItem(
            kind=kind,
            content=content,
            mime_type=mime_type,
            file_name=item.get("file_name"),
        )

    @timed(logger)
    def resolve(self, post: Post) -> ResolvedMedia:
        declared = list(post.media_items or [])
        if not declared and post.media:
            declared = [{"url": post.media} if not is_data_uri(post.media) else {"data": post.media}]

        resolved = ResolvedMedia()
        for item in declared:
            result = self._resolve_item(item, post.id)
            if result is None:
                resolved.dropped += 1
            else:
                resolved.items.append(result)

        logger.info(
            "Media resolved",
            post_id=post.id,
            declared=len(declared),
            dropped=resolved.dropped,
            **resolved.counts,
        )
        return resolved
