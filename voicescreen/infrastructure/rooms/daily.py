"""
Video room provisioning through the Daily REST API.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests

from ...config import DAILY_API_URL, ROOM_REQUEST_TIMEOUT
from ...errors import RoomProvisioningError, RoomTimeoutError

logger = logging.getLogger("rooms")


@dataclass
class Room:
    url: Optional[str]
    name: Optional[str]
    id: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


class DailyRoomClient:
    """Creates public rooms with screenshare and chat enabled."""

    def __init__(self, api_key: str, domain: Optional[str] = None,
                 api_url: str = DAILY_API_URL, timeout: float = ROOM_REQUEST_TIMEOUT):
        if not api_key:
            raise RoomProvisioningError("Missing DAILY_API_KEY", status=500)
        self.api_key = api_key
        self.domain = domain
        self.api_url = api_url
        self.timeout = timeout

    def _room_url(self, name: Optional[str]) -> Optional[str]:
        if not name or not self.domain:
            return None
        base = self.domain if "http" in self.domain else f"https://{self.domain}"
        return f"{base.rstrip('/')}/{name}"

    def create_room(self, name: Optional[str] = None) -> Room:
        """
        Create a room.

        Raises:
            RoomProvisioningError: Upstream rejected the request (status 502)
            RoomTimeoutError: Upstream did not answer within the timeout
        """
        name = name.strip() if isinstance(name, str) and name.strip() else None
        body = {
            "name": name,
            "privacy": "public",
            "properties": {
                "enable_screenshare": True,
                "enable_chat": True,
            },
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            resp = requests.post(self.api_url, headers=headers, json=body, timeout=self.timeout)
        except requests.Timeout as e:
            logger.error(f"Room request timed out after {self.timeout}s")
            raise RoomTimeoutError() from e
        except requests.RequestException as e:
            logger.error(f"Room request failed: {e}")
            raise RoomProvisioningError("daily-request-failed", detail=str(e), status=500) from e

        if not resp.ok:
            try:
                detail = resp.json()
            except ValueError:
                detail = resp.text
            logger.error(f"Daily API error {resp.status_code}: {detail}")
            raise RoomProvisioningError("daily-api-error", upstream_status=resp.status_code, detail=detail)

        data = resp.json()
        room = Room(
            url=data.get("url") or self._room_url(data.get("name")),
            name=data.get("name"),
            id=data.get("id"),
            raw=data,
        )
        logger.info(f"Created room {room.name} at {room.url}")
        return room
