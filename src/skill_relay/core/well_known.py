"""Client for hosts serving skills under /.well-known/skills/."""

import asyncio
import logging
import re
import shutil
import tempfile
from pathlib import Path

import httpx
from pydantic import ValidationError

from skill_relay.config import settings
from skill_relay.core.cache import WellKnownIndexCache
from skill_relay.core.source import clean_host
from skill_relay.errors import DiscoveryEmpty, DownloadFailure
from skill_relay.models import WellKnownIndex, WellKnownSkill

logger = logging.getLogger("skill-relay.well-known")

WELL_KNOWN_PATH = "/.well-known/skills"


def index_url(host: str) -> str:
    return f"https://{clean_host(host)}{WELL_KNOWN_PATH}/index.json"


def skill_file_url(host: str, skill_name: str, file_path: str) -> str:
    return f"https://{clean_host(host)}{WELL_KNOWN_PATH}/{skill_name}/{file_path}"


def _safe_join(base: Path, relative: str) -> Path:
    root = base.resolve()
    target = (base / relative).resolve()
    if target == root or not target.is_relative_to(root):
        raise DownloadFailure(f"Refusing to write outside the skill directory: {relative}")
    return target


class WellKnownClient:
    """Fetches indexes (cached per session) and skill files concurrently."""

    def __init__(
        self,
        cache: WellKnownIndexCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.cache = cache or WellKnownIndexCache()
        self._transport = transport

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, follow_redirects=True, transport=self._transport)

    async def fetch_index(self, host: str) -> WellKnownIndex:
        host = clean_host(host)
        cached = self.cache.get(host)
        if cached is not None:
            return cached

        try:
            async with self._client(settings.index_timeout) as client:
                resp = await client.get(index_url(host), headers={"Accept": "application/json"})
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise DownloadFailure(f"Failed to fetch skill index from {host}: {e}") from e

        try:
            index = WellKnownIndex.model_validate(data)
        except ValidationError as e:
            raise DownloadFailure(f"Invalid skill index format from {host}: {e}") from e

        self.cache.set(host, index)
        logger.info("Well-known index %s: %d skills", host, len(index.skills))
        return index

    async def list_skills(self, host: str) -> list[WellKnownSkill]:
        return (await self.fetch_index(host)).skills

    async def download_skills(
        self,
        host: str,
        names: list[str] | None = None,
    ) -> tuple[Path, list[WellKnownSkill]]:
        """Download selected skills into a fresh temp dir laid out as <name>/<file>.

        Any failed file fails the whole download and removes the temp dir.
        """
        index = await self.fetch_index(host)
        selected = index.skills
        if names:
            wanted = {n.lower() for n in names}
            selected = [s for s in index.skills if s.name.lower() in wanted]
            if not selected:
                available = ", ".join(s.name for s in index.skills)
                raise DiscoveryEmpty(f"No matching skills found. Available: {available}")

        slug = re.sub(r"[^a-zA-Z0-9]", "-", clean_host(host))
        temp_dir = Path(tempfile.mkdtemp(prefix=f"skill-relay-wellknown-{slug}-"))
        try:
            async with self._client(settings.file_timeout) as client:
                await asyncio.gather(*(self._download_skill(client, host, s, temp_dir) for s in selected))
        except BaseException:
            shutil.rmtree(temp_dir, ignore_errors=True)
            raise

        logger.info("Downloaded %d skills from %s → %s", len(selected), host, temp_dir)
        return temp_dir, selected

    async def _download_skill(
        self,
        client: httpx.AsyncClient,
        host: str,
        skill: WellKnownSkill,
        target_dir: Path,
    ) -> None:
        skill_dir = _safe_join(target_dir, skill.name)
        skill_dir.mkdir(parents=True, exist_ok=True)

        async def fetch(file_path: str) -> None:
            local_path = _safe_join(skill_dir, file_path)
            local_path.parent.mkdir(parents=True, exist_ok=True)
            try:
                resp = await client.get(skill_file_url(host, skill.name, file_path))
                resp.raise_for_status()
            except httpx.HTTPError as e:
                raise DownloadFailure(f"Failed to download {skill.name}/{file_path}: {e}") from e
            local_path.write_bytes(resp.content)

        await asyncio.gather(*(fetch(f) for f in skill.files))


def cleanup_temp_dir(path: Path) -> None:
    shutil.rmtree(path, ignore_errors=True)
