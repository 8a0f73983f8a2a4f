"""Named-source directory: resolves bare names like ``frontend-kit``."""

import logging

import httpx
from pydantic import TypeAdapter, ValidationError

from skill_relay.config import settings
from skill_relay.errors import DownloadFailure, InvalidSource
from skill_relay.models import DirectoryEntry

logger = logging.getLogger("skill-relay.directory")

_ENTRIES = TypeAdapter(list[DirectoryEntry])


class DirectoryClient:
    """Fetches the directory once per instance."""

    def __init__(self, url: str | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.url = url or settings.directory_url
        self._transport = transport
        self._entries: list[DirectoryEntry] | None = None

    async def list_entries(self) -> list[DirectoryEntry]:
        if self._entries is not None:
            return self._entries
        try:
            async with httpx.AsyncClient(
                timeout=settings.directory_timeout, follow_redirects=True, transport=self._transport
            ) as client:
                resp = await client.get(self.url, headers={"Accept": "application/json"})
                resp.raise_for_status()
                self._entries = _ENTRIES.validate_python(resp.json())
        except (httpx.HTTPError, ValueError, ValidationError) as e:
            raise DownloadFailure(f"Failed to fetch directory {self.url}: {e}") from e
        logger.info("Directory: %d entries", len(self._entries))
        return self._entries

    async def resolve(self, name: str) -> str:
        """Return the source string registered under ``name``."""
        entries = await self.list_entries()
        wanted = name.strip().lower()
        for entry in entries:
            if entry.name.lower() == wanted:
                logger.info("Directory: %s → %s", name, entry.source)
                return entry.source
        available = ", ".join(e.name for e in entries) or "(none)"
        raise InvalidSource(f"Directory entry '{name}' not found. Available: {available}")
