"""Inventory tools: list and remove tracked skills and commands."""

from pathlib import Path

from skill_relay.config import settings
from skill_relay.core.installer import is_valid_installation, resolve_record_path
from skill_relay.core.state import StateStores
from skill_relay.models import RemoveResult, Scope


def list_installed(project_dir: Path | None = None, stores: StateStores | None = None) -> dict:
    """List tracked entries with per-installation health.

    Local entries shadow global entries of the same name.

    Returns:
        Dictionary with totals, state file locations and one item per entry.
    """
    stores = stores or StateStores(project_dir)
    items = []
    for entry, scope in stores.merged():
        installations = []
        for record in entry.installations:
            path = resolve_record_path(record, stores.project_dir)
            if is_valid_installation(path, entry.kind):
                health = "symlink" if path.is_symlink() else "copy"
            else:
                health = "missing"
            installations.append({"agent": record.agent.value, "path": str(path), "status": health})

        items.append({
            "name": entry.name,
            "kind": entry.kind.value,
            "scope": scope.value,
            "source": entry.source.display_name,
            "branch": entry.source.branch,
            "commit": entry.source.commit,
            "installations": installations,
        })

    return {
        "total": len(items),
        "global_state": str(settings.global_state_path),
        "local_state": str(stores.local.path),
        "entries": items,
    }


def remove_skills(
    names: list[str],
    project_dir: Path | None = None,
    stores: StateStores | None = None,
    delete_files: bool = True,
) -> list[RemoveResult]:
    """Remove entries and their installed files.

    A name is looked up in the local store first, then the global one,
    matching what ``list_installed`` shows.
    """
    stores = stores or StateStores(project_dir)
    results: list[tuple[Scope | None, RemoveResult]] = []
    for name in names:
        scope = Scope.PROJECT if stores.local.get(name) is not None else Scope.GLOBAL
        found = stores.for_scope(scope).get(name) is not None
        result = stores.for_scope(scope).remove(name, delete_files=delete_files)
        results.append((scope if found else None, result))

    for scope in {s for s, _ in results if s is not None}:
        if not stores.save(scope):
            for s, result in results:
                if s is scope:
                    result.errors.append(f"Failed to write {scope.value} state")
                    result.success = False
    return [result for _, result in results]
