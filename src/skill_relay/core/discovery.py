"""Discovery: walk a downloaded tree and yield installable skills and commands."""

import logging
import os
import re
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import yaml

from skill_relay.config import settings
from skill_relay.errors import InvalidSource
from skill_relay.models import Installable, InstallableKind

logger = logging.getLogger("skill-relay.discovery")

SKILL_MARKER = "SKILL.md"
COMMANDS_DIRNAME = "commands"
COMMAND_SUFFIX = ".command.md"

_SKIP_DIRS = {".git", "node_modules", "__pycache__"}
_NON_COMMAND_FILES = {"README.MD", "CHANGELOG.MD", "LICENSE.MD", "CONTRIBUTING.MD", "CODE_OF_CONDUCT.MD"}
_FRONTMATTER_RE = re.compile(r"^---\s*\n(.*?)\n---", re.DOTALL)


def parse_frontmatter(content: str) -> dict[str, Any]:
    """Return the leading YAML header block as a dict, or {} if absent/malformed."""
    match = _FRONTMATTER_RE.match(content)
    if not match:
        return {}
    try:
        meta = yaml.safe_load(match.group(1))
    except yaml.YAMLError as e:
        logger.warning("Malformed frontmatter: %s", e)
        return {}
    return meta if isinstance(meta, dict) else {}


def read_metadata(path: Path) -> dict[str, Any]:
    try:
        return parse_frontmatter(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Failed to read %s: %s", path, e)
        return {}


def _description(meta: dict[str, Any]) -> str:
    value = meta.get("description", "")
    return value.strip() if isinstance(value, str) else ""


def discover(
    root: Path,
    subpath: str | None = None,
    max_depth: int | None = None,
) -> Iterator[Installable]:
    """Lazily yield skills and commands under ``root`` (optionally ``root/subpath``).

    Directories are visited in lexicographic order and symlinks are never
    followed. A directory holding ``SKILL.md`` is one skill and is not
    descended into. The first unit of each name wins per kind.
    """
    if max_depth is None:
        max_depth = settings.discovery_max_depth

    base = root
    if subpath:
        base = root / subpath
        if not base.resolve().is_relative_to(root.resolve()):
            raise InvalidSource(f"Subpath '{subpath}' escapes the source tree")

    if not base.is_dir():
        logger.warning("Discovery root does not exist: %s", base)
        return

    seen: dict[InstallableKind, set[str]] = {kind: set() for kind in InstallableKind}
    for item in _walk(base, depth=0, max_depth=max_depth, in_commands_dir=base.name == COMMANDS_DIRNAME):
        key = item.name.lower()
        if key in seen[item.kind]:
            logger.debug("Ignoring duplicate %s '%s' at %s", item.kind.value, item.name, item.origin_path)
            continue
        seen[item.kind].add(key)
        yield item


def _walk(directory: Path, depth: int, max_depth: int, in_commands_dir: bool) -> Iterator[Installable]:
    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as e:
        logger.warning("Cannot read directory %s: %s", directory, e)
        return

    marker = next((e for e in entries if e.name == SKILL_MARKER and e.is_file(follow_symlinks=False)), None)
    if marker is not None:
        yield _skill_from_dir(directory, Path(marker.path), is_root=depth == 0)
        return

    subdirs = []
    for entry in entries:
        if entry.is_symlink():
            continue
        if entry.is_dir(follow_symlinks=False):
            if entry.name not in _SKIP_DIRS:
                subdirs.append(entry)
        elif entry.is_file(follow_symlinks=False) and _is_command_file(entry.name, in_commands_dir):
            yield _command_from_file(Path(entry.path))

    if depth >= max_depth:
        return
    for entry in subdirs:
        yield from _walk(
            Path(entry.path),
            depth=depth + 1,
            max_depth=max_depth,
            in_commands_dir=entry.name == COMMANDS_DIRNAME,
        )


def _is_command_file(filename: str, in_commands_dir: bool) -> bool:
    if filename.endswith(COMMAND_SUFFIX):
        return True
    return in_commands_dir and filename.endswith(".md") and filename.upper() not in _NON_COMMAND_FILES


def _skill_from_dir(directory: Path, marker: Path, is_root: bool = False) -> Installable:
    meta = read_metadata(marker)
    name = directory.name
    # A SKILL.md at the download root sits in a temp dir; use its declared name
    declared = meta.get("name")
    if is_root and isinstance(declared, str) and declared.strip():
        name = declared.strip()
    return Installable(
        name=name,
        kind=InstallableKind.SKILL,
        description=_description(meta),
        origin_path=directory,
        metadata=meta,
    )


def _command_from_file(path: Path) -> Installable:
    meta = read_metadata(path)
    name = path.name.removesuffix(COMMAND_SUFFIX) if path.name.endswith(COMMAND_SUFFIX) else path.stem
    return Installable(
        name=name,
        kind=InstallableKind.COMMAND,
        description=_description(meta),
        origin_path=path,
        metadata=meta,
    )
