"""Status, update and clean tools over the reconciler."""

from collections.abc import Callable
from pathlib import Path

from skill_relay.core.git import GitClient
from skill_relay.core.reconciler import Reconciler
from skill_relay.core.state import StateStores
from skill_relay.models import StatusResult, UpdateResult


def _reconciler(project_dir: Path | None, stores: StateStores | None, git: GitClient | None) -> Reconciler:
    return Reconciler(stores or StateStores(project_dir), git)


async def skill_status(
    names: list[str] | None = None,
    project_dir: Path | None = None,
    stores: StateStores | None = None,
    git: GitClient | None = None,
) -> list[StatusResult]:
    """Check every tracked entry (or only ``names``) against disk and upstream.

    Args:
        names: Entry names to check, case-insensitive (default: all)
        project_dir: Project whose local state shadows the global state

    Returns:
        One StatusResult per entry in the merged local/global view.
    """
    return await _reconciler(project_dir, stores, git).check_status(names)


async def update_skills(
    names: list[str] | None = None,
    select: Callable[[list[StatusResult]], list[str]] | None = None,
    project_dir: Path | None = None,
    stores: StateStores | None = None,
    git: GitClient | None = None,
) -> list[UpdateResult]:
    """Reinstall entries that have an update available.

    Args:
        names: Restrict to these entries (default: all)
        select: Picks which candidates to update (default: all of them)
    """
    return await _reconciler(project_dir, stores, git).perform_update(names, select)


def clean_orphaned(project_dir: Path | None = None, stores: StateStores | None = None) -> list[str]:
    """Forget entries none of whose installations still exist."""
    return _reconciler(project_dir, stores, None).clean_orphaned()
