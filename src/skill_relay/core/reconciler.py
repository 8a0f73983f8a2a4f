"""Reconciliation of stored state against the filesystem and upstream."""

import asyncio
import logging
import os
from collections.abc import Callable

from skill_relay.agents import AGENTS
from skill_relay.core.discovery import discover
from skill_relay.core.executor import execute_plan
from skill_relay.core.git import GitClient
from skill_relay.core.installer import is_valid_installation, resolve_record_path, storage_path
from skill_relay.core.planner import CopyToStorage, InstallForAgent, InstallPlan
from skill_relay.core.state import ScopedEntry, StateStores
from skill_relay.errors import DiscoveryEmpty, RemoteLookupFailure, SkillRelayError
from skill_relay.models import (
    InstallationCheck,
    Scope,
    SourceKind,
    Status,
    StatusResult,
    Strategy,
    UpdateResult,
)

logger = logging.getLogger("skill-relay.reconciler")


class Reconciler:
    """Detects drift and orphans, applies updates, cleans dead entries."""

    def __init__(self, stores: StateStores, git: GitClient | None = None):
        self.stores = stores
        self.git = git or GitClient()

    def _select(self, names: list[str] | None) -> list[ScopedEntry]:
        merged = self.stores.merged()
        if not names:
            return merged
        wanted = {n.lower() for n in names}
        return [item for item in merged if item.entry.name.lower() in wanted]

    def _checks(self, item: ScopedEntry) -> list[InstallationCheck]:
        checks = []
        for record in item.entry.installations:
            path = resolve_record_path(record, self.stores.project_dir)
            checks.append(
                InstallationCheck(
                    agent=record.agent,
                    scope=record.scope,
                    path=str(path),
                    exists=is_valid_installation(path, item.entry.kind),
                )
            )
        return checks

    async def _check_entry(self, item: ScopedEntry) -> StatusResult:
        entry = item.entry
        current = entry.source.commit or ""
        checks = self._checks(item)
        base = dict(
            name=entry.name,
            kind=entry.kind,
            scope=item.scope,
            current_commit=current,
            latest_commit=current,
            installations=checks,
        )

        if not any(c.exists for c in checks):
            return StatusResult(status=Status.ORPHANED, **base)

        if entry.source.kind is SourceKind.WELL_KNOWN:
            # Well-known hosts publish no commits to compare against
            return StatusResult(status=Status.LATEST, **base)

        try:
            latest = await self.git.get_latest_commit(entry.source.url, entry.source.branch)
        except RemoteLookupFailure as e:
            logger.warning("Status lookup failed for '%s': %s", entry.name, e)
            return StatusResult(status=Status.ERROR, error=str(e), **base)

        base["latest_commit"] = latest
        status = Status.LATEST if latest == current else Status.UPDATE_AVAILABLE
        return StatusResult(status=status, **base)

    async def check_status(self, names: list[str] | None = None) -> list[StatusResult]:
        """Status of every selected entry; lookups run concurrently."""
        items = self._select(names)
        return list(await asyncio.gather(*(self._check_entry(item) for item in items)))

    async def perform_update(
        self,
        names: list[str] | None = None,
        select: Callable[[list[StatusResult]], list[str]] | None = None,
    ) -> list[UpdateResult]:
        """Reinstall every selected entry that has an update available.

        ``select`` receives the update candidates and returns the names to
        update (all of them when omitted). Entries whose status is error or
        orphaned come back as failed results.
        """
        statuses = await self.check_status(names)
        candidates = [s for s in statuses if s.status is Status.UPDATE_AVAILABLE]
        if select is not None and candidates:
            chosen = {n.lower() for n in select(candidates)}
            candidates = [c for c in candidates if c.name.lower() in chosen]

        results: list[UpdateResult] = []
        for status in statuses:
            if status.status is Status.ERROR:
                results.append(UpdateResult(name=status.name, success=False, error=status.error or "status check failed"))
            elif status.status is Status.ORPHANED:
                results.append(UpdateResult(name=status.name, success=False, error="orphaned: no installation left"))

        by_key = {(item.entry.name.lower(), item.scope): item for item in self._select(names)}
        touched: set[Scope] = set()
        for status in candidates:
            item = by_key[(status.name.lower(), status.scope)]
            results.append(await self._update_entry(item))
            touched.add(item.scope)

        for scope in touched:
            self.stores.save(scope)
        return results

    async def _update_entry(self, item: ScopedEntry) -> UpdateResult:
        entry = item.entry
        store = self.stores.for_scope(item.scope)
        project_dir = self.stores.project_dir
        temp_dir = None
        updated = failed = 0
        try:
            temp_dir = await self.git.clone(entry.source.url, entry.source.branch)
            commit = await self.git.get_commit_hash(temp_dir)

            match = next(
                (
                    i
                    for i in discover(temp_dir, entry.source.subpath)
                    if i.kind is entry.kind and i.name.lower() == entry.name.lower()
                ),
                None,
            )
            if match is None:
                raise DiscoveryEmpty(f"'{entry.name}' not found in repository")

            plan = InstallPlan()
            stored_scopes: set[Scope] = set()
            for record in list(entry.installations):
                path = resolve_record_path(record, project_dir)
                if not is_valid_installation(path, entry.kind):
                    # Global entries heal themselves; local ones are project-controlled
                    if item.scope is Scope.GLOBAL:
                        store.remove_installation(entry.name, record)
                        logger.info("Dropped missing installation of '%s': %s", entry.name, path)
                    continue

                shared = storage_path(entry.name, entry.kind, record.scope, project_dir)
                # An agent that reads the shared copy directly is refreshed by CopyToStorage
                if path.is_symlink() or os.path.abspath(path) == os.path.abspath(shared):
                    strategy = Strategy.SYMLINK
                else:
                    strategy = Strategy.COPY
                if strategy is Strategy.SYMLINK and record.scope not in stored_scopes:
                    plan.storage_ops.append(CopyToStorage(installable=match, scope=record.scope))
                    stored_scopes.add(record.scope)
                plan.agent_ops.append(
                    InstallForAgent(
                        installable=match,
                        agent=AGENTS[record.agent],
                        scope=record.scope,
                        strategy=strategy,
                    )
                )

            ledger = await execute_plan(plan, project_dir)
            updated, failed = ledger.installed, ledger.failed
            store.update_commit(entry.name, commit)
            logger.info("Updated '%s' to %s (%d ok, %d failed)", entry.name, commit[:7], updated, failed)
            return UpdateResult(name=entry.name, success=failed == 0, updated=updated, failed=failed)
        except SkillRelayError as e:
            logger.error("Update of '%s' failed: %s", entry.name, e)
            return UpdateResult(name=entry.name, success=False, updated=updated, failed=failed + 1, error=str(e))
        finally:
            if temp_dir is not None:
                self.git.cleanup(temp_dir)

    def find_orphaned(self) -> list[ScopedEntry]:
        """Entries with no valid installation; filesystem only, no network."""
        return [item for item in self._select(None) if not any(c.exists for c in self._checks(item))]

    def clean_orphaned(self) -> list[str]:
        """Remove orphaned entries from persisted state. Returns their names."""
        removed: list[str] = []
        touched: set[Scope] = set()
        for item in self.find_orphaned():
            self.stores.for_scope(item.scope).drop(item.entry.name)
            removed.append(item.entry.name)
            touched.add(item.scope)
        for scope in touched:
            self.stores.save(scope)
        if removed:
            logger.info("Cleaned %d orphaned entries: %s", len(removed), ", ".join(removed))
        return removed
