"""Data models for skill-relay."""

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field

WELL_KNOWN_PREFIX = "well-known:"


class SourceKind(str, Enum):
    GIT = "git"
    WELL_KNOWN = "well-known"


class InstallableKind(str, Enum):
    SKILL = "skill"
    COMMAND = "command"


class Scope(str, Enum):
    """Where an installation applies. The local store holds PROJECT entries."""

    PROJECT = "project"
    GLOBAL = "global"


class Strategy(str, Enum):
    SYMLINK = "symlink"
    COPY = "copy"


class Status(str, Enum):
    LATEST = "latest"
    UPDATE_AVAILABLE = "update-available"
    ERROR = "error"
    ORPHANED = "orphaned"


class AgentId(str, Enum):
    """The closed set of supported agents."""

    CLAUDE_CODE = "claude-code"
    CURSOR = "cursor"
    COPILOT = "copilot"
    GEMINI = "gemini"
    WINDSURF = "windsurf"
    TRAE = "trae"
    FACTORY = "factory"
    LETTA = "letta"
    OPENCODE = "opencode"
    CODEX = "codex"
    ANTIGRAVITY = "antigravity"
    AMP = "amp"
    KILO = "kilo"
    ROO = "roo"
    GOOSE = "goose"


class SourceDescriptor(BaseModel):
    """One upstream location at a point in time."""

    model_config = ConfigDict(frozen=True)

    kind: SourceKind = SourceKind.GIT
    url: str
    subpath: str | None = None
    branch: str | None = None  # None = remote default
    commit: str | None = None

    @property
    def host(self) -> str | None:
        if self.kind is SourceKind.WELL_KNOWN:
            return self.url.removeprefix(WELL_KNOWN_PREFIX)
        return None

    @property
    def display_name(self) -> str:
        if self.kind is SourceKind.WELL_KNOWN:
            return self.host or self.url
        return self.url


class Installable(BaseModel):
    """A skill directory or command file found during discovery."""

    model_config = ConfigDict(frozen=True)

    name: str
    kind: InstallableKind = InstallableKind.SKILL
    description: str = ""
    origin_path: Path
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def display_name(self) -> str:
        value = self.metadata.get("name")
        if isinstance(value, str) and value.strip():
            return value.strip()
        return self.name


class InstallationRecord(BaseModel):
    """One (skill, agent) installation. Project paths are project-relative."""

    model_config = ConfigDict(frozen=True)

    agent: AgentId
    scope: Scope
    path: str


class SkillEntry(BaseModel):
    """The unit of persisted state."""

    name: str
    kind: InstallableKind = InstallableKind.SKILL
    source: SourceDescriptor
    installations: list[InstallationRecord] = Field(default_factory=list)


class StateDocument(BaseModel):
    """On-disk layout of a state store."""

    version: str = "1.0.0"
    last_update: str = ""
    entries: dict[str, SkillEntry] = Field(default_factory=dict)


class WellKnownSkill(BaseModel):
    name: str
    description: str = ""
    files: list[str]


class WellKnownIndex(BaseModel):
    """Schema of /.well-known/skills/index.json."""

    skills: list[WellKnownSkill]


class DirectoryEntry(BaseModel):
    name: str
    description: str = ""
    source: str


class UpsertResult(BaseModel):
    updated: bool = False
    previous_branch: str | None = None


class OperationResult(BaseModel):
    """Outcome of one operation, addressed by (kind, skill, agent)."""

    skill: str
    kind: InstallableKind = InstallableKind.SKILL
    agent: AgentId | None = None  # None for shared-storage copies
    success: bool
    path: str = ""
    original_path: str = ""
    error: str | None = None
    source_url: str = ""


class InstallLedger(BaseModel):
    """Every per-agent result of a run plus the shared-storage copies."""

    results: list[OperationResult] = Field(default_factory=list)
    storage_results: list[OperationResult] = Field(default_factory=list)

    @computed_field
    @property
    def installed(self) -> int:
        return sum(1 for r in self.results if r.success)

    @computed_field
    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)


class ListedItem(BaseModel):
    """An installable offered by a source, shown by list mode."""

    name: str
    kind: InstallableKind = InstallableKind.SKILL
    description: str = ""


class BranchChange(BaseModel):
    name: str
    previous: str
    current: str


class InstallSummary(BaseModel):
    """What an install flow did, for the caller to report."""

    success: bool
    installed: int = 0
    failed: int = 0
    source: SourceDescriptor | None = None
    results: list[OperationResult] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    branch_changes: list[BranchChange] = Field(default_factory=list)
    listed: list[ListedItem] = Field(default_factory=list)


class InstallationCheck(BaseModel):
    agent: AgentId
    scope: Scope
    path: str  # resolved, absolute
    exists: bool


class StatusResult(BaseModel):
    name: str
    kind: InstallableKind = InstallableKind.SKILL
    scope: Scope  # which store the entry lives in
    current_commit: str = ""
    latest_commit: str = ""
    status: Status
    installations: list[InstallationCheck] = Field(default_factory=list)
    error: str | None = None


class UpdateResult(BaseModel):
    name: str
    success: bool
    updated: int = 0
    failed: int = 0
    error: str | None = None


class RemoveResult(BaseModel):
    name: str
    success: bool
    removed_paths: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
