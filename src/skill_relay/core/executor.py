"""Install execution: run a plan concurrently and collect a result ledger."""

import asyncio
import logging
from pathlib import Path

from skill_relay.config import settings
from skill_relay.core.installer import copy_to_storage, install_for_agent
from skill_relay.core.planner import InstallForAgent, InstallPlan
from skill_relay.errors import EnvironmentFailure
from skill_relay.models import InstallLedger, OperationResult, Scope, Strategy

logger = logging.getLogger("skill-relay.executor")


def _prepare_roots(plan: InstallPlan, project_dir: Path) -> None:
    """Fail the whole run when a destination root cannot exist."""
    scopes = {op.scope for op in plan.operations}
    if Scope.PROJECT in scopes and not project_dir.is_dir():
        raise EnvironmentFailure(f"Project directory does not exist: {project_dir}")

    for scope in {op.scope for op in plan.storage_ops}:
        root = settings.storage_dir(scope, project_dir)
        try:
            root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise EnvironmentFailure(f"Cannot create storage directory {root}: {e}") from e


async def execute_plan(plan: InstallPlan, project_dir: Path | None = None) -> InstallLedger:
    """Run every operation of a plan.

    Shared copies run first and are joined; then all agent operations are
    dispatched together and joined. A failed shared copy fails only the
    agent operations of that same installable. Individual failures never
    raise.
    """
    project_dir = project_dir or Path.cwd()
    _prepare_roots(plan, project_dir)

    storage_results = await asyncio.gather(*(copy_to_storage(op, project_dir) for op in plan.storage_ops))
    failed_storage = {(r.kind, r.skill): r for r in storage_results if not r.success}

    async def run(op: InstallForAgent) -> OperationResult:
        failure = failed_storage.get(op.storage_key) if op.strategy is Strategy.SYMLINK else None
        if failure is not None:
            return OperationResult(
                skill=op.installable.name,
                kind=op.installable.kind,
                agent=op.agent.id,
                success=False,
                original_path=str(op.installable.origin_path),
                error=f"Shared copy failed: {failure.error}",
            )
        return await install_for_agent(op, project_dir)

    results = await asyncio.gather(*(run(op) for op in plan.agent_ops))
    ledger = InstallLedger(results=list(results), storage_results=list(storage_results))
    logger.info("Executed plan: %d installed, %d failed", ledger.installed, ledger.failed)
    return ledger
