import logging
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import parse_qs, urlparse
from uuid import UUID

import httpx

from dailycheck.config import Settings, get_settings
from dailycheck.constants import UPLOAD_PREFIXES
from dailycheck.exceptions import StorageUnavailable

logger = logging.getLogger(__name__)


def build_upload_path(user_id: UUID, kind: str = "checkin", now: Optional[datetime] = None) -> str:
    """Object path such as checkins/<user_id>/<epoch_ms>.jpg"""
    now = now or datetime.now(timezone.utc)
    prefix = UPLOAD_PREFIXES[kind]
    return f"{prefix}/{user_id}/{int(now.timestamp() * 1000)}.jpg"


class StorageService:
    """
    Object store client.

    Only issues signed upload slots; the client uploads the photo directly
    and later submits its public URL.
    """

    def __init__(self, client: httpx.AsyncClient, settings: Optional[Settings] = None):
        self.client = client
        self.settings = settings or get_settings()

    @property
    def storage_url(self) -> str:
        return f"{self.settings.supabase_url.rstrip('/')}/storage/v1"

    def public_url(self, path: str) -> str:
        return f"{self.storage_url}/object/public/{self.settings.storage_bucket}/{path}"

    async def create_upload_url(self, user_id: UUID, kind: str = "checkin") -> dict:
        path = build_upload_path(user_id, kind)
        key = self.settings.supabase_service_key
        endpoint = f"{self.storage_url}/object/upload/sign/{self.settings.storage_bucket}/{path}"

        try:
            response = await self.client.post(
                endpoint,
                json={},
                headers={"Authorization": f"Bearer {key}", "apikey": key},
            )
            response.raise_for_status()
            signed_path = response.json()["url"]
        except (httpx.HTTPError, KeyError, ValueError) as e:
            logger.error(f"Failed to create signed upload URL for {path}: {e}")
            raise StorageUnavailable("Failed to create upload URL")

        token = parse_qs(urlparse(signed_path).query).get("token", [None])[0]
        if not token:
            logger.error(f"Signed upload URL without token for {path}: {signed_path}")
            raise StorageUnavailable("Failed to create upload URL")

        return {
            "path": path,
            "token": token,
            "url": f"{self.storage_url}{signed_path}",
            "public_url": self.public_url(path),
        }
