"""Video room provisioning."""

from .daily import DailyRoomClient, Room

__all__ = ["DailyRoomClient", "Room"]
