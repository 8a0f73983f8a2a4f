"""Plain-text rendering of results for the CLI."""

from skill_relay.models import InstallSummary, RemoveResult, Status, StatusResult, UpdateResult

SHORT_COMMIT = 7

_ICONS = {
    Status.LATEST: "✓",
    Status.UPDATE_AVAILABLE: "↓",
    Status.ERROR: "✗",
    Status.ORPHANED: "○",
}

_LABELS = {
    Status.LATEST: "latest",
    Status.UPDATE_AVAILABLE: "update available",
    Status.ERROR: "error",
    Status.ORPHANED: "orphaned",
}


def plural(count: int, singular: str, plural_form: str | None = None) -> str:
    return singular if count == 1 else (plural_form or f"{singular}s")


def short_commit(commit: str) -> str:
    return commit[:SHORT_COMMIT]


def format_status(results: list[StatusResult], verbose: bool = False) -> list[str]:
    """One line per entry, or a block per entry when verbose."""
    if not results:
        return [
            "No skills tracked. Install skills with:",
            "  skill-relay install <repo>            # install in the current project",
            "  skill-relay install <repo> --global   # install globally",
        ]

    lines = ["Skills Status"]
    for result in results:
        icon, label = _ICONS[result.status], _LABELS[result.status]
        valid = [i for i in result.installations if i.exists]
        missing = [i for i in result.installations if not i.exists]

        if not verbose:
            suffix = f" ({len(valid)} {plural(len(valid), 'installation')})" if valid else ""
            lines.append(f"{icon} {result.name}{suffix} - {label}")
            continue

        lines.append(f"{icon} {result.name}")
        lines.append(f"    Status: {label}")
        if result.status is Status.UPDATE_AVAILABLE:
            lines.append(f"    Commit: {short_commit(result.current_commit)} → {short_commit(result.latest_commit)}")
        elif result.status is Status.LATEST:
            lines.append(f"    Commit: {short_commit(result.current_commit)}")
        if result.error:
            lines.append(f"    {result.error}")
        if valid:
            lines.append("    Installed in:")
            lines.extend(f"      • {i.agent.value}: {i.path}" for i in valid)
        if missing:
            lines.append("    Missing:")
            lines.extend(f"      • {i.agent.value}: {i.path}" for i in missing)
    return lines


def format_install(summary: InstallSummary) -> list[str]:
    lines = []
    if summary.listed:
        lines.append(f"Available from {summary.source.display_name if summary.source else 'source'}:")
        for item in summary.listed:
            lines.append(f"  {item.name} ({item.kind.value})")
            if item.description:
                lines.append(f"    {item.description}")
        return lines

    for result in summary.results:
        agent = result.agent.value if result.agent else "storage"
        if result.success:
            lines.append(f"✓ {result.skill} → {agent}: {result.path}")
        else:
            lines.append(f"✗ {result.skill} → {agent}: {result.error}")
    lines.extend(f"! {w}" for w in summary.warnings)
    lines.append(
        f"{summary.installed} {plural(summary.installed, 'installation')} succeeded, {summary.failed} failed"
    )
    return lines


def format_updates(results: list[UpdateResult], cancelled: bool = False) -> list[str]:
    if not results and not cancelled:
        return ["All skills are up to date"]
    lines = []
    for result in results:
        if result.success:
            lines.append(f"✓ {result.name}: updated {result.updated} {plural(result.updated, 'installation')}")
        else:
            lines.append(f"✗ {result.name}: {result.error or f'{result.failed} failed'}")
    if cancelled:
        lines.append("Update cancelled; nothing was reinstalled")
    return lines


def format_removals(results: list[RemoveResult]) -> list[str]:
    lines = []
    for result in results:
        if result.success:
            count = len(result.removed_paths)
            lines.append(f"✓ Removed {result.name} ({count} {plural(count, 'path')})")
        else:
            lines.append(f"✗ {result.name}: {'; '.join(result.errors)}")
    return lines
