"""Filesystem primitives: shared storage copies, agent copies and symlinks."""

import asyncio
import logging
import os
import shutil
from pathlib import Path

from skill_relay.agents import AgentProfile
from skill_relay.config import settings
from skill_relay.core.planner import CopyToStorage, InstallForAgent
from skill_relay.errors import InstallOperationFailure
from skill_relay.models import (
    Installable,
    InstallableKind,
    InstallationRecord,
    OperationResult,
    Scope,
    Strategy,
)

logger = logging.getLogger("skill-relay.installer")

SKILL_MARKER = "SKILL.md"


def storage_path(name: str, kind: InstallableKind, scope: Scope, project_dir: Path) -> Path:
    """Location of the shared copy used by the symlink strategy."""
    root = settings.storage_dir(scope, project_dir)
    if kind is InstallableKind.COMMAND:
        return root / settings.storage_commands_dirname / f"{name}.md"
    return root / name


def agent_target_path(item: Installable, agent: AgentProfile, scope: Scope, project_dir: Path) -> Path:
    base = agent.scoped_dir(scope, item.kind, project_dir)
    if item.kind is InstallableKind.COMMAND:
        return base / f"{item.name}.md"
    return base / item.name


def to_record(agent: AgentProfile, scope: Scope, path: Path, project_dir: Path) -> InstallationRecord:
    """Build a state record; project paths are stored relative to the project."""
    stored = str(path)
    if scope is Scope.PROJECT:
        try:
            stored = str(path.relative_to(project_dir))
        except ValueError:
            pass
    return InstallationRecord(agent=agent.id, scope=scope, path=stored)


def resolve_record_path(record: InstallationRecord, project_dir: Path) -> Path:
    path = Path(record.path)
    if record.scope is Scope.GLOBAL or path.is_absolute():
        return path
    return project_dir / path


def is_valid_installation(path: Path, kind: InstallableKind) -> bool:
    """Check existence and expected shape of an installed skill or command."""
    try:
        if not path.exists():
            return False
        if kind is InstallableKind.COMMAND:
            return path.is_file() and path.suffix == ".md"
        return path.is_dir() and (path / SKILL_MARKER).is_file()
    except OSError:
        return False


def remove_path(path: Path) -> bool:
    """Remove a file, directory or symlink. Returns False if nothing was there."""
    if path.is_symlink() or path.is_file():
        path.unlink()
        logger.info("Removed: %s", path)
        return True
    if path.is_dir():
        shutil.rmtree(path)
        logger.info("Removed directory: %s", path)
        return True
    return False


def _copy_item(source: Path, dest: Path) -> None:
    remove_path(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    if source.is_dir():
        shutil.copytree(source, dest, symlinks=True, ignore=shutil.ignore_patterns(".git"))
    else:
        shutil.copy2(source, dest)


def _link(target: Path, link_path: Path) -> None:
    """Create a relative symlink at link_path pointing to target."""
    if os.path.abspath(target) == os.path.abspath(link_path):
        # Agent reads straight from the shared storage
        return
    if not target.exists():
        raise InstallOperationFailure(f"Shared copy missing: {target}")
    remove_path(link_path)
    link_path.parent.mkdir(parents=True, exist_ok=True)
    relative = os.path.relpath(target, link_path.parent)
    link_path.symlink_to(relative, target_is_directory=target.is_dir())


async def copy_to_storage(op: CopyToStorage, project_dir: Path) -> OperationResult:
    item = op.installable
    dest = storage_path(item.name, item.kind, op.scope, project_dir)
    try:
        await asyncio.to_thread(_copy_item, item.origin_path, dest)
    except Exception as e:
        logger.error("Shared copy failed for '%s': %s", item.name, e)
        return OperationResult(
            skill=item.name,
            kind=item.kind,
            success=False,
            path=str(dest),
            original_path=str(item.origin_path),
            error=str(e),
        )
    logger.info("Stored '%s' → %s", item.name, dest)
    return OperationResult(
        skill=item.name,
        kind=item.kind,
        success=True,
        path=str(dest),
        original_path=str(item.origin_path),
    )


async def install_for_agent(op: InstallForAgent, project_dir: Path) -> OperationResult:
    """Copy or link one installable into one agent directory. Never raises."""
    item = op.installable
    target: Path | None = None
    try:
        target = agent_target_path(item, op.agent, op.scope, project_dir)
        if op.strategy is Strategy.SYMLINK:
            await asyncio.to_thread(_link, storage_path(item.name, item.kind, op.scope, project_dir), target)
        else:
            await asyncio.to_thread(_copy_item, item.origin_path, target)
    except Exception as e:
        logger.error("Install of '%s' for %s failed: %s", item.name, op.agent.id.value, e)
        return OperationResult(
            skill=item.name,
            kind=item.kind,
            agent=op.agent.id,
            success=False,
            path=str(target) if target else "",
            original_path=str(item.origin_path),
            error=str(e),
        )
    logger.info("Installed '%s' for %s → %s (%s)", item.name, op.agent.id.value, target, op.strategy.value)
    return OperationResult(
        skill=item.name,
        kind=item.kind,
        agent=op.agent.id,
        success=True,
        path=str(target),
        original_path=str(item.origin_path),
    )
