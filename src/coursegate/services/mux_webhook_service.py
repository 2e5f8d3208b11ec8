"""Video host status webhook — signature check and asset lifecycle.

Learn: The video host transcodes uploads asynchronously and reports
back through a signed webhook. The `Mux-Signature` header looks like
`t=<unix ts>,v1=<hex>` where v1 is HMAC-SHA256 over "<ts>.<raw body>"
keyed with the shared secret. Stale timestamps are rejected so a
captured delivery cannot be replayed later.

Unknown event types and assets we do not track are acknowledged and
ignored; the host would otherwise keep retrying them.
"""

import hashlib
import hmac
import time
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coursegate.db.models import Video
from coursegate.events.store import EventStore, stream_key
from coursegate.events.types import VIDEO_STATUS_CHANGED

logger = structlog.get_logger()


def parse_signature_header(header: str) -> tuple[Optional[str], list[str]]:
    """Split `t=..,v1=..[,v1=..]` into (timestamp, [signatures])."""
    timestamp = None
    signatures = []
    for part in header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            timestamp = value
        elif key == "v1" and value:
            signatures.append(value)
    return timestamp, signatures


def verify_signature(
    secret: str,
    payload: bytes,
    header: str,
    *,
    tolerance_seconds: int = 300,
    now: Optional[float] = None,
) -> bool:
    """Verify a Mux-Signature header against the raw request body."""
    timestamp, signatures = parse_signature_header(header or "")
    if not timestamp or not signatures:
        return False
    try:
        ts = int(timestamp)
    except ValueError:
        return False
    now = time.time() if now is None else now
    if tolerance_seconds and abs(now - ts) > tolerance_seconds:
        return False

    expected = hmac.new(
        secret.encode(),
        f"{timestamp}.".encode() + payload,
        hashlib.sha256,
    ).hexdigest()
    return any(hmac.compare_digest(expected, sig) for sig in signatures)


def select_playback_id(playback_ids: list[dict]) -> str:
    """Prefer a signed playback id, else the first one, else ""."""
    for playback in playback_ids:
        if playback.get("policy") == "signed" and playback.get("id"):
            return playback["id"]
    if playback_ids:
        return playback_ids[0].get("id") or ""
    return ""


class MuxWebhookService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.events = EventStore(db)

    async def handle(self, event: dict) -> Optional[Video]:
        """Apply one webhook event. Returns the updated video, if any."""
        event_type = event.get("type")
        data = event.get("data") or {}
        asset_id = data.get("id")
        logger.info("mux.webhook_received", event_type=event_type, asset_id=asset_id)

        handlers = {
            "video.asset.ready": self._asset_ready,
            "video.asset.errored": self._asset_errored,
            "video.asset.deleted": self._asset_deleted,
        }
        handler = handlers.get(event_type)
        if handler is None:
            logger.info("mux.unhandled_event", event_type=event_type)
            return None
        if not asset_id:
            return None

        video = await self._find_by_asset(asset_id)
        if video is None:
            logger.info("mux.unknown_asset", asset_id=asset_id)
            return None

        previous = video.status
        handler(video, data)
        await self.events.append(
            stream_id=stream_key("video", video.id),
            event_type=VIDEO_STATUS_CHANGED,
            data={"asset_id": asset_id, "from": previous, "to": video.status},
        )
        await self.db.commit()
        return video

    async def _find_by_asset(self, asset_id: str) -> Optional[Video]:
        result = await self.db.execute(select(Video).where(Video.asset_id == asset_id))
        return result.scalars().first()

    def _asset_ready(self, video: Video, data: dict) -> None:
        video.playback_id = select_playback_id(data.get("playback_ids") or [])
        video.duration = float(data.get("duration") or 0)
        video.status = data.get("status") or "ready"
        logger.info("mux.asset_ready", video_id=str(video.id), playback_id=video.playback_id)

    def _asset_errored(self, video: Video, data: dict) -> None:
        video.status = "errored"
        logger.warning("mux.asset_errored", video_id=str(video.id), errors=data.get("errors"))

    def _asset_deleted(self, video: Video, data: dict) -> None:
        video.asset_id = None
        video.playback_id = None
        video.status = "deleted"
        logger.info("mux.asset_deleted", video_id=str(video.id))
