"""Install planning: turn a selection into an explicit operation list.

Planning never touches the filesystem. Every operation carries its own
identifying key so results never need positional decoding.
"""

from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, Field

from skill_relay.agents import AgentProfile
from skill_relay.models import AgentId, Installable, InstallableKind, Scope, Strategy


class CopyToStorage(BaseModel):
    """Materialize one shared copy of an installable (symlink strategy only)."""

    model_config = ConfigDict(frozen=True)

    installable: Installable
    scope: Scope

    @property
    def key(self) -> tuple[InstallableKind, str]:
        return (self.installable.kind, self.installable.name)


class InstallForAgent(BaseModel):
    """Copy into, or symlink from, one agent's scoped directory."""

    model_config = ConfigDict(frozen=True)

    installable: Installable
    agent: AgentProfile
    scope: Scope
    strategy: Strategy

    @property
    def storage_key(self) -> tuple[InstallableKind, str]:
        return (self.installable.kind, self.installable.name)

    @property
    def key(self) -> tuple[InstallableKind, str, AgentId]:
        return (self.installable.kind, self.installable.name, self.agent.id)


class InstallPlan(BaseModel):
    storage_ops: list[CopyToStorage] = Field(default_factory=list)
    agent_ops: list[InstallForAgent] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def operations(self) -> list[CopyToStorage | InstallForAgent]:
        """All operations, storage copies first."""
        return [*self.storage_ops, *self.agent_ops]


def plan_install(
    installables: Iterable[Installable],
    agents: Iterable[AgentProfile],
    scope: Scope,
    strategy: Strategy,
) -> InstallPlan:
    """Cartesian product of installables and agents.

    Commands only go to agents that declare command support; the rest are
    filtered out with a warning.
    """
    agent_list = list(dict.fromkeys(agents))
    plan = InstallPlan()
    skipped: dict[AgentId, list[str]] = {}

    for item in installables:
        targets = agent_list
        if item.kind is InstallableKind.COMMAND:
            targets = [a for a in agent_list if a.supports_commands]
            for agent in agent_list:
                if not agent.supports_commands:
                    skipped.setdefault(agent.id, []).append(item.name)

        if not targets:
            continue
        if strategy is Strategy.SYMLINK:
            plan.storage_ops.append(CopyToStorage(installable=item, scope=scope))
        for agent in targets:
            plan.agent_ops.append(
                InstallForAgent(installable=item, agent=agent, scope=scope, strategy=strategy)
            )

    for agent_id, names in skipped.items():
        plan.warnings.append(
            f"Agent '{agent_id.value}' does not support commands; skipped: {', '.join(names)}"
        )
    return plan
