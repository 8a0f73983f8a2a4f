"""Durable state: which skill came from where and where it was installed.

Two independent stores exist: a global one under the user's home and a
local one at the project root. Both are JSON documents read and written
whole; there is no file locking between processes.
"""

import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import NamedTuple

from pydantic import ValidationError

from skill_relay.config import settings
from skill_relay.core.installer import remove_path, resolve_record_path, storage_path
from skill_relay.errors import StateWriteFailure
from skill_relay.models import (
    InstallableKind,
    InstallationRecord,
    RemoveResult,
    Scope,
    SkillEntry,
    SourceDescriptor,
    StateDocument,
    UpsertResult,
)

logger = logging.getLogger("skill-relay.state")


class ScopedEntry(NamedTuple):
    entry: SkillEntry
    scope: Scope


def merge_views(local: Iterable[SkillEntry], global_: Iterable[SkillEntry]) -> list[ScopedEntry]:
    """Merged read view of both stores.

    Every local entry comes first, in store order. A global entry is
    included only if no local entry has the same name (case-insensitive);
    shadowed global entries are dropped whole, never merged field by field.
    """
    merged = [ScopedEntry(entry, Scope.PROJECT) for entry in local]
    local_names = {item.entry.name.lower() for item in merged}
    merged.extend(
        ScopedEntry(entry, Scope.GLOBAL) for entry in global_ if entry.name.lower() not in local_names
    )
    return merged


class StateStore:
    """One persisted store keyed by skill/command name."""

    def __init__(self, path: Path, scope: Scope, project_dir: Path | None = None):
        self.path = path
        self.scope = scope
        self.project_dir = project_dir or Path.cwd()
        self._document: StateDocument | None = None

    @classmethod
    def global_store(cls, project_dir: Path | None = None) -> "StateStore":
        return cls(settings.global_state_path, Scope.GLOBAL, project_dir)

    @classmethod
    def local_store(cls, project_dir: Path | None = None) -> "StateStore":
        project_dir = project_dir or Path.cwd()
        return cls(settings.local_state_path(project_dir), Scope.PROJECT, project_dir)

    @property
    def document(self) -> StateDocument:
        if self._document is None:
            self._document = self.load()
        return self._document

    def load(self) -> StateDocument:
        """Read the store from disk; a missing or unreadable file is an empty store."""
        if not self.path.exists():
            return StateDocument()
        try:
            return StateDocument.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.warning("Failed to load state %s: %s", self.path, e)
            return StateDocument()

    def save(self) -> Path:
        """Write the whole document atomically. Raises StateWriteFailure."""
        document = self.document
        document.last_update = datetime.now(timezone.utc).isoformat()
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(document.model_dump_json(indent=2, exclude_none=True) + "\n", encoding="utf-8")
            tmp.replace(self.path)
        except OSError as e:
            raise StateWriteFailure(f"Cannot write state {self.path}: {e}") from e
        logger.debug("Saved %s state: %d entries", self.scope.value, len(document.entries))
        return self.path

    def _key(self, name: str) -> str | None:
        if name in self.document.entries:
            return name
        lowered = name.lower()
        return next((k for k in self.document.entries if k.lower() == lowered), None)

    def get(self, name: str) -> SkillEntry | None:
        key = self._key(name)
        return self.document.entries[key] if key is not None else None

    def entries(self) -> list[SkillEntry]:
        return list(self.document.entries.values())

    def upsert(self, name: str, kind: InstallableKind, source: SourceDescriptor) -> UpsertResult:
        """Create or overwrite the source of an entry.

        A different incoming branch is a source change: the write still
        happens (last write wins) and the previous branch is reported.
        """
        key = self._key(name)
        if key is None:
            self.document.entries[name] = SkillEntry(name=name, kind=kind, source=source)
            return UpsertResult()

        entry = self.document.entries[key]
        previous = entry.source.branch
        entry.source = source
        entry.kind = kind
        if previous != source.branch:
            logger.warning("Source branch of '%s' changed: %s → %s", name, previous, source.branch)
            return UpsertResult(updated=True, previous_branch=previous)
        return UpsertResult()

    def add_installation(self, name: str, record: InstallationRecord) -> bool:
        """Append a record unless the same (agent, path) is already listed."""
        entry = self.get(name)
        if entry is None:
            raise KeyError(name)
        if any(r.agent == record.agent and r.path == record.path for r in entry.installations):
            return False
        entry.installations.append(record)
        return True

    def remove_installation(self, name: str, record: InstallationRecord) -> None:
        entry = self.get(name)
        if entry is None:
            return
        entry.installations = [
            r for r in entry.installations if not (r.agent == record.agent and r.path == record.path)
        ]

    def update_commit(self, name: str, commit: str) -> None:
        entry = self.get(name)
        if entry is None:
            raise KeyError(name)
        entry.source = entry.source.model_copy(update={"commit": commit})

    def drop(self, name: str) -> SkillEntry | None:
        """Delete an entry from the document without touching files."""
        key = self._key(name)
        return self.document.entries.pop(key) if key is not None else None

    def remove(self, name: str, delete_files: bool = True) -> RemoveResult:
        """Delete an entry and, best effort, every file it installed."""
        entry = self.drop(name)
        if entry is None:
            return RemoveResult(name=name, success=False, errors=[f"'{name}' is not installed"])

        result = RemoveResult(name=entry.name, success=True)
        if not delete_files:
            return result
        targets = [resolve_record_path(r, self.project_dir) for r in entry.installations]
        targets.append(storage_path(entry.name, entry.kind, self.scope, self.project_dir))
        for path in targets:
            try:
                if remove_path(path):
                    result.removed_paths.append(str(path))
            except OSError as e:
                logger.warning("Failed to remove %s: %s", path, e)
                result.errors.append(f"{path}: {e}")
        result.success = not result.errors
        return result


class StateStores:
    """The local and global store for one project directory."""

    def __init__(self, project_dir: Path | None = None, local: StateStore | None = None, global_: StateStore | None = None):
        self.project_dir = project_dir or Path.cwd()
        self.local = local or StateStore.local_store(self.project_dir)
        self.global_ = global_ or StateStore.global_store(self.project_dir)

    def for_scope(self, scope: Scope) -> StateStore:
        return self.global_ if scope is Scope.GLOBAL else self.local

    def merged(self) -> list[ScopedEntry]:
        return merge_views(self.local.entries(), self.global_.entries())

    def save(self, scope: Scope) -> bool:
        """Persist one store, logging instead of raising on failure."""
        try:
            self.for_scope(scope).save()
        except StateWriteFailure as e:
            logger.error("%s", e)
            return False
        return True
