"""Install flow: source string in, InstallSummary out."""

import logging
from collections.abc import Callable
from pathlib import Path

from skill_relay.agents import AGENTS, AgentProfile, detect_installed_agents, resolve_agents
from skill_relay.config import settings
from skill_relay.core.directory import DirectoryClient
from skill_relay.core.discovery import SKILL_MARKER, discover
from skill_relay.core.executor import execute_plan
from skill_relay.core.git import GitClient
from skill_relay.core.installer import to_record
from skill_relay.core.matcher import describe_unmatched, select_by_name
from skill_relay.core.planner import InstallPlan, plan_install
from skill_relay.core.source import build_file_url, is_directory_name, resolve_source
from skill_relay.core.state import StateStores
from skill_relay.core.well_known import WellKnownClient, cleanup_temp_dir
from skill_relay.errors import DiscoveryEmpty
from skill_relay.models import (
    BranchChange,
    Installable,
    InstallableKind,
    InstallLedger,
    InstallSummary,
    ListedItem,
    Scope,
    SourceDescriptor,
    SourceKind,
    Strategy,
)

logger = logging.getLogger("skill-relay.install")


async def install_source(
    source: str,
    *,
    agents: list[str] | None = None,
    skills: list[str] | None = None,
    scope: Scope | None = None,
    strategy: Strategy | None = None,
    list_only: bool = False,
    yes: bool = False,
    confirm: Callable[[InstallPlan], bool] | None = None,
    project_dir: Path | None = None,
    stores: StateStores | None = None,
    git: GitClient | None = None,
    well_known: WellKnownClient | None = None,
    directory: DirectoryClient | None = None,
) -> InstallSummary:
    """Download a source and install its skills and commands for agents.

    Pipeline: resolve -> download -> discover -> select -> plan -> execute
    -> record state for every successful (installable, agent) pair.

    Args:
        source: owner/repo, git URL, well-known host, or directory name
        agents: Agent ids to install for (default: detected, else all)
        skills: Names to install (default: everything discovered)
        scope: PROJECT (default) or GLOBAL
        strategy: SYMLINK or COPY (default from settings)
        list_only: Only report what the source offers
        yes: Skip the confirmation callback
        confirm: Called with the plan before anything is written

    Raises:
        InvalidSource, DownloadFailure, DiscoveryEmpty, UnknownAgent,
        EnvironmentFailure: the run aborts before any state is written.
    """
    project_dir = project_dir or Path.cwd()
    scope = scope or Scope.PROJECT
    strategy = strategy or (Strategy.SYMLINK if settings.symlink else Strategy.COPY)
    stores = stores or StateStores(project_dir)
    git = git or GitClient()
    well_known = well_known or WellKnownClient()

    if is_directory_name(source):
        directory = directory or DirectoryClient()
        source = await directory.resolve(source)

    descriptor = resolve_source(source)
    logger.info("Source: %s%s", descriptor.display_name, f" ({descriptor.subpath})" if descriptor.subpath else "")

    if list_only and descriptor.kind is SourceKind.WELL_KNOWN:
        offered = await well_known.list_skills(descriptor.host)
        return InstallSummary(
            success=True,
            source=descriptor,
            listed=[ListedItem(name=s.name, description=s.description) for s in offered],
        )

    temp_dir: Path | None = None
    try:
        if descriptor.kind is SourceKind.WELL_KNOWN:
            temp_dir, _ = await well_known.download_skills(descriptor.host, skills)
            descriptor = descriptor.model_copy(update={"branch": "main", "commit": "well-known"})
            # Well-known hosts serve skills only
            found = [i for i in discover(temp_dir) if i.kind is InstallableKind.SKILL]
        else:
            temp_dir = await git.clone(descriptor.url, descriptor.branch)
            commit = await git.get_commit_hash(temp_dir)
            branch = descriptor.branch or await git.get_branch(temp_dir)
            descriptor = descriptor.model_copy(update={"branch": branch, "commit": commit})
            found = list(discover(temp_dir, descriptor.subpath))

        if list_only:
            return InstallSummary(
                success=True,
                source=descriptor,
                listed=[ListedItem(name=i.display_name, kind=i.kind, description=i.description) for i in found],
            )

        if not found:
            raise DiscoveryEmpty("No skills or commands found. Source must contain SKILL.md files.")

        warnings: list[str] = []
        selected = found
        if skills:
            selected, unmatched = select_by_name(found, skills)
            hints = describe_unmatched(unmatched, found)
            if not selected:
                available = ", ".join(sorted(i.display_name for i in found))
                raise DiscoveryEmpty(f"{'. '.join(hints)}. Available: {available}")
            warnings.extend(hints)

        profiles = _select_agents(agents)
        plan = plan_install(selected, profiles, scope, strategy)
        warnings.extend(plan.warnings)
        if not plan.agent_ops:
            return InstallSummary(success=False, source=descriptor, warnings=warnings)

        if not yes and confirm is not None and not confirm(plan):
            logger.info("Installation cancelled")
            return InstallSummary(success=False, source=descriptor, warnings=[*warnings, "Installation cancelled"])

        ledger = await execute_plan(plan, project_dir)
        base = temp_dir / descriptor.subpath if descriptor.subpath else temp_dir
        for result in ledger.results:
            result.source_url = _source_url(descriptor, base, result.original_path, result.kind)

        branch_changes = _record_state(ledger, selected, descriptor, scope, stores, project_dir)
        for change in branch_changes:
            warnings.append(f"'{change.name}' switched branch: {change.previous} → {change.current}")
        if ledger.installed and not stores.save(scope):
            warnings.append(f"Failed to write {scope.value} state")

        return InstallSummary(
            success=ledger.failed == 0 and ledger.installed > 0,
            installed=ledger.installed,
            failed=ledger.failed,
            source=descriptor,
            results=ledger.results,
            warnings=warnings,
            branch_changes=branch_changes,
        )
    finally:
        if temp_dir is not None:
            if descriptor.kind is SourceKind.WELL_KNOWN:
                cleanup_temp_dir(temp_dir)
            else:
                git.cleanup(temp_dir)


def _select_agents(agents: list[str] | None) -> list[AgentProfile]:
    if agents:
        return resolve_agents(agents)
    detected = detect_installed_agents()
    if detected:
        logger.info("Installing to detected agents: %s", ", ".join(a.display_name for a in detected))
        return detected
    logger.info("No agents detected, installing to all agents")
    return list(AGENTS.values())


def _source_url(descriptor: SourceDescriptor, base: Path, original_path: str, kind: InstallableKind) -> str:
    try:
        rel = Path(original_path).relative_to(base).as_posix()
    except ValueError:
        return descriptor.display_name
    if kind is InstallableKind.SKILL:
        rel = SKILL_MARKER if rel == "." else f"{rel}/{SKILL_MARKER}"
    # rel is relative to the subpath; build_file_url prefixes it again
    return build_file_url(descriptor, rel)


def _record_state(
    ledger: InstallLedger,
    selected: list[Installable],
    descriptor: SourceDescriptor,
    scope: Scope,
    stores: StateStores,
    project_dir: Path,
) -> list[BranchChange]:
    """Upsert an entry per installable with at least one success, then its records."""
    store = stores.for_scope(scope)
    kinds = {item.name: item.kind for item in selected}
    upserted: set[str] = set()
    changes: list[BranchChange] = []

    for result in ledger.results:
        if not result.success or result.agent is None:
            continue
        if result.skill not in upserted:
            outcome = store.upsert(result.skill, kinds.get(result.skill, result.kind), descriptor)
            upserted.add(result.skill)
            if outcome.updated:
                changes.append(
                    BranchChange(
                        name=result.skill,
                        previous=outcome.previous_branch or "(default)",
                        current=descriptor.branch or "(default)",
                    )
                )
        record = to_record(AGENTS[result.agent], scope, Path(result.path), project_dir)
        store.add_installation(result.skill, record)
    return changes
