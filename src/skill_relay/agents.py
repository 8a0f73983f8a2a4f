"""Supported agents and where each one reads skills and commands from.

The table is closed: every ``AgentId`` has exactly one profile, checked
when the module loads. Home-relative paths are expanded at load time.
"""

import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from skill_relay.config import settings
from skill_relay.errors import UnknownAgent
from skill_relay.models import AgentId, InstallableKind, Scope

logger = logging.getLogger("skill-relay.agents")


class AgentProfile(BaseModel):
    """Static capability record for one agent."""

    model_config = ConfigDict(frozen=True)

    id: AgentId
    display_name: str
    project_skills_dir: str
    global_skills_dir: Path
    project_commands_dir: str | None = None
    global_commands_dir: Path | None = None
    install_dir: Path

    @property
    def supports_commands(self) -> bool:
        return self.project_commands_dir is not None and self.global_commands_dir is not None

    def scoped_dir(
        self,
        scope: Scope,
        kind: InstallableKind = InstallableKind.SKILL,
        project_dir: Path | None = None,
    ) -> Path:
        """Directory this agent reads ``kind`` from under ``scope``."""
        if kind is InstallableKind.COMMAND:
            if not self.supports_commands:
                raise ValueError(f"Agent '{self.id.value}' does not support commands")
            project_rel, global_dir = self.project_commands_dir, self.global_commands_dir
        else:
            project_rel, global_dir = self.project_skills_dir, self.global_skills_dir

        if scope is Scope.GLOBAL:
            return global_dir
        return (project_dir or Path.cwd()) / project_rel


# id -> (display name, project skills, global skills, project commands, global commands, install dir)
_AGENT_TABLE: dict[str, tuple[str, str, str, str | None, str | None, str]] = {
    "claude-code": ("Claude Code", ".claude/skills", "~/.claude/skills", ".claude/commands", "~/.claude/commands", "~/.claude"),
    "cursor": ("Cursor", ".cursor/skills", "~/.cursor/skills", ".cursor/commands", "~/.cursor/commands", "~/.cursor"),
    "copilot": ("GitHub Copilot", ".github/skills", "~/.copilot/skills", None, None, "~/.copilot"),
    "gemini": ("Gemini CLI", ".gemini/skills", "~/.gemini/skills", None, None, "~/.gemini"),
    "windsurf": ("Windsurf", ".windsurf/skills", "~/.codeium/windsurf/skills", None, None, "~/.codeium/windsurf"),
    "trae": ("Trae", ".trae/skills", "~/.trae/skills", None, None, "~/.trae"),
    "factory": ("Factory Droid", ".factory/skills", "~/.factory/skills", None, None, "~/.factory"),
    "letta": ("Letta", ".skills", "~/.letta/skills", None, None, "~/.letta"),
    "opencode": ("OpenCode", ".opencode/skill", "~/.config/opencode/skill", ".opencode/command", "~/.config/opencode/command", "~/.config/opencode"),
    "codex": ("Codex", ".codex/skills", "~/.codex/skills", None, None, "~/.codex"),
    "antigravity": ("Antigravity", ".agent/skills", "~/.gemini/antigravity/skills", None, None, "~/.gemini/antigravity"),
    "amp": ("Amp", ".agents/skills", "~/.config/agents/skills", None, None, "~/.config/amp"),
    "kilo": ("Kilo Code", ".kilocode/skills", "~/.kilocode/skills", None, None, "~/.kilocode"),
    "roo": ("Roo Code", ".roo/skills", "~/.roo/skills", None, None, "~/.roo"),
    "goose": ("Goose", ".goose/skills", "~/.config/goose/skills", None, None, "~/.config/goose"),
}


def _expand(path: str, home: Path) -> Path:
    if path == "~":
        return home
    if path.startswith("~/"):
        return home / path[2:]
    return Path(path)


def load_agents(home: Path) -> dict[AgentId, AgentProfile]:
    """Build the agent table, expanding ``~`` against ``home``."""
    profiles: dict[AgentId, AgentProfile] = {}
    for raw_id, (display, proj_skills, glob_skills, proj_cmds, glob_cmds, install) in _AGENT_TABLE.items():
        agent_id = AgentId(raw_id)
        profiles[agent_id] = AgentProfile(
            id=agent_id,
            display_name=display,
            project_skills_dir=proj_skills,
            global_skills_dir=_expand(glob_skills, home),
            project_commands_dir=proj_cmds,
            global_commands_dir=_expand(glob_cmds, home) if glob_cmds else None,
            install_dir=_expand(install, home),
        )

    missing = set(AgentId) - set(profiles)
    if missing:
        raise RuntimeError(f"Agent table incomplete: {sorted(a.value for a in missing)}")
    return profiles


AGENTS: dict[AgentId, AgentProfile] = load_agents(settings.home_dir)


def get_agent(agent: str | AgentId) -> AgentProfile:
    """Look up a profile, raising UnknownAgent for ids outside the table."""
    try:
        agent_id = AgentId(agent)
    except ValueError:
        valid = ", ".join(a.value for a in AgentId)
        raise UnknownAgent(f"Invalid agent '{agent}'. Valid agents: {valid}") from None
    return AGENTS[agent_id]


def resolve_agents(names: list[str]) -> list[AgentProfile]:
    """Validate a list of agent ids, reporting every invalid one at once."""
    invalid = []
    for name in names:
        try:
            AgentId(name)
        except ValueError:
            invalid.append(name)
    if invalid:
        valid = ", ".join(a.value for a in AgentId)
        raise UnknownAgent(f"Invalid agents: {', '.join(invalid)}. Valid agents: {valid}")
    return [AGENTS[AgentId(n)] for n in dict.fromkeys(names)]


def detect_installed_agents() -> list[AgentProfile]:
    """Agents whose install directory exists on this machine."""
    installed = [a for a in AGENTS.values() if a.install_dir.exists()]
    logger.debug("Detected agents: %s", [a.id.value for a in installed])
    return installed
