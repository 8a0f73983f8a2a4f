"""Thin async wrapper around the git executable."""

import asyncio
import logging
import os
import shutil
import tempfile
from pathlib import Path

from skill_relay.config import settings
from skill_relay.errors import DownloadFailure, RemoteLookupFailure, SkillRelayError

logger = logging.getLogger("skill-relay.git")


class GitClient:
    """clone / rev-parse / ls-remote, each bounded by a timeout."""

    def __init__(self, git_path: str | None = None):
        self.git_path = git_path or settings.git_path

    async def _run(
        self,
        *args: str,
        cwd: Path | None = None,
        timeout: float,
        error: type[SkillRelayError],
    ) -> str:
        env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}
        try:
            process = await asyncio.create_subprocess_exec(
                self.git_path,
                *args,
                cwd=str(cwd) if cwd else None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                stdin=asyncio.subprocess.DEVNULL,
                env=env,
            )
        except OSError as e:
            raise error(f"Cannot run git: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise error(f"git {args[0]} timed out after {timeout:.0f}s") from None

        if process.returncode != 0:
            message = stderr.decode(errors="replace").strip()
            raise error(f"git {args[0]} failed: {message}")
        return stdout.decode(errors="replace").strip()

    async def clone(self, url: str, branch: str | None = None) -> Path:
        """Shallow-clone into a new temp directory and return it."""
        temp_dir = Path(tempfile.mkdtemp(prefix="skill-relay-"))
        args = ["clone", "--depth", "1"]
        if branch:
            args += ["--branch", branch]
        args += [url, str(temp_dir)]
        try:
            await self._run(*args, timeout=settings.git_clone_timeout, error=DownloadFailure)
        except DownloadFailure:
            self.cleanup(temp_dir)
            raise
        logger.info("Cloned: %s%s", url, f" @ {branch}" if branch else "")
        return temp_dir

    async def get_commit_hash(self, path: Path) -> str:
        return await self._run("rev-parse", "HEAD", cwd=path, timeout=settings.git_lookup_timeout, error=DownloadFailure)

    async def get_branch(self, path: Path) -> str:
        return await self._run(
            "rev-parse", "--abbrev-ref", "HEAD", cwd=path, timeout=settings.git_lookup_timeout, error=DownloadFailure
        )

    async def get_latest_commit(self, url: str, branch: str | None = None) -> str:
        """Tip commit of ``branch`` (or the remote default) without cloning."""
        ref = f"refs/heads/{branch}" if branch else "HEAD"
        output = await self._run(
            "ls-remote", url, ref, timeout=settings.git_lookup_timeout, error=RemoteLookupFailure
        )
        if not output:
            raise RemoteLookupFailure(f"Branch '{branch or 'HEAD'}' not found at {url}")
        return output.split()[0]

    def cleanup(self, path: Path) -> None:
        shutil.rmtree(path, ignore_errors=True)
