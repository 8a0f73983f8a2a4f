"""skill-relay MCP server.

Provides 6 tools for agent skill management:
- install_skills: Install skills/commands from a git repo, well-known host, or directory name
- skill_status: Compare tracked skills with their upstream commits
- update_skills: Reinstall skills that have an update available
- remove_skills: Remove skills and every file they installed
- list_skills: Tracked skills with installation health
- clean_orphaned: Forget skills whose installations are all gone
"""

import json
import logging
import sys

from mcp.server.fastmcp import FastMCP

from skill_relay.config import settings
from skill_relay.errors import SkillRelayError

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,
)

logger = logging.getLogger("skill-relay.server")

mcp = FastMCP(
    "skill-relay",
    instructions=(
        "Skill Relay installs agent skills (directories with SKILL.md) and commands "
        "from git repositories or hosts serving /.well-known/skills/. "
        "Use install_skills with list_only=true to see what a source offers, "
        "skill_status to find outdated skills, and update_skills to refresh them."
    ),
)


def _split(value: str) -> list[str] | None:
    items = [v.strip() for v in value.split(",") if v.strip()]
    return items or None


def _error(e: Exception) -> str:
    logger.error("%s: %s", type(e).__name__, e)
    return json.dumps({"success": False, "error": str(e), "error_type": type(e).__name__}, indent=2)


@mcp.tool()
async def install_skills(
    source: str,
    skills: str = "",
    agents: str = "",
    scope: str = "project",
    copy: bool = False,
    list_only: bool = False,
) -> str:
    """Install skills and commands from a source.

    Pipeline: resolve -> download -> discover -> plan -> install -> record state.

    Args:
        source: owner/repo, git URL (#subpath, @branch), well-known host, or directory name
        skills: Comma-separated names to install (default: all)
        agents: Comma-separated agent ids (default: detected agents)
        scope: "project" or "global"
        copy: Copy into each agent instead of symlinking shared storage
        list_only: Only list what the source offers
    """
    from skill_relay.models import Scope, Strategy
    from skill_relay.tools.install import install_source

    try:
        summary = await install_source(
            source,
            agents=_split(agents),
            skills=_split(skills),
            scope=Scope(scope),
            strategy=Strategy.COPY if copy else None,
            list_only=list_only,
            yes=True,
        )
    except (SkillRelayError, ValueError) as e:
        return _error(e)
    return summary.model_dump_json(indent=2)


@mcp.tool()
async def skill_status(names: str = "") -> str:
    """Status of tracked skills: latest, update-available, error, or orphaned.

    Args:
        names: Comma-separated skill names (default: all)
    """
    from skill_relay.tools.status import skill_status as _status

    results = await _status(_split(names))
    return json.dumps([r.model_dump(mode="json") for r in results], indent=2)


@mcp.tool()
async def update_skills(names: str = "") -> str:
    """Reinstall every selected skill that has an update available.

    Args:
        names: Comma-separated skill names (default: all)
    """
    from skill_relay.tools.status import update_skills as _update

    results = await _update(_split(names))
    return json.dumps([r.model_dump(mode="json") for r in results], indent=2)


@mcp.tool()
async def remove_skills(names: str) -> str:
    """Remove skills, their agent installations, and their shared copies.

    Args:
        names: Comma-separated skill names
    """
    from skill_relay.tools.inventory import remove_skills as _remove

    results = _remove(_split(names) or [])
    return json.dumps([r.model_dump(mode="json") for r in results], indent=2)


@mcp.tool()
async def list_skills() -> str:
    """List tracked skills (local shadows global) with installation health."""
    from skill_relay.tools.inventory import list_installed

    return json.dumps(list_installed(), indent=2)


@mcp.tool()
async def clean_orphaned() -> str:
    """Forget tracked skills none of whose installations still exist."""
    from skill_relay.tools.status import clean_orphaned as _clean

    removed = _clean()
    return json.dumps({"removed": removed, "count": len(removed)}, indent=2)


def main():
    """Entry point for the MCP server."""
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
