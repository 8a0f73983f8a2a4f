"""skill-relay command line interface."""

import argparse
import asyncio
import json
import logging
import sys
import textwrap
from pathlib import Path

from skill_relay.config import settings
from skill_relay.errors import SkillRelayError
from skill_relay.formatting import format_install, format_removals, format_status, format_updates, plural
from skill_relay.models import Scope, Status, StatusResult, Strategy


def _confirm(question: str) -> bool:
    try:
        answer = input(f"{question} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def _print(lines: list[str]) -> None:
    for line in lines:
        print(line)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="skill-relay",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description="Install agent skills and commands from git repositories and well-known hosts.",
        epilog=textwrap.dedent(
            """\
            Sources:
              owner/repo, owner/repo/path, https://github.com/o/r/tree/branch/path,
              git@host:o/r.git, any of these with #subpath or @branch,
              example.com (well-known index), or a directory name

            Environment variables:
              SKILL_RELAY_STATE_DIR, SKILL_RELAY_GLOBAL_STORAGE_DIR, SKILL_RELAY_LOG_LEVEL
            """
        ),
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    p.add_argument("--project", type=Path, help="Project directory (default: current directory)")

    sub = p.add_subparsers(dest="cmd", required=True)

    install = sub.add_parser("install", aliases=["add"], help="Install skills from a source")
    install.add_argument("source")
    install.add_argument("-g", "--global", dest="global_", action="store_true", help="Install for all projects")
    install.add_argument("-a", "--agent", action="append", default=[], help="Agent id (repeatable)")
    install.add_argument("-s", "--skill", action="append", default=[], help="Skill or command name (repeatable)")
    install.add_argument("-l", "--list", action="store_true", help="List what the source offers")
    install.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")
    install.add_argument("--copy", action="store_true", help="Copy into each agent instead of symlinking")
    install.add_argument("--json", action="store_true", help="Output JSON")

    update = sub.add_parser("update", help="Update installed skills")
    update.add_argument("names", nargs="*")
    update.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")

    status = sub.add_parser("status", help="Check installed skills for updates")
    status.add_argument("names", nargs="*")
    status.add_argument("--verbose", dest="detail", action="store_true", help="Show installations and commits")
    status.add_argument("--json", action="store_true", help="Output JSON")

    remove = sub.add_parser("remove", aliases=["rm"], help="Remove installed skills")
    remove.add_argument("names", nargs="*")
    remove.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")

    listing = sub.add_parser("list", aliases=["ls"], help="List tracked skills")
    listing.add_argument("--json", action="store_true", help="Output JSON")

    sub.add_parser("clean", help="Forget skills whose installations are gone")
    sub.add_parser("serve", help="Run the MCP server on stdio")
    return p


def cmd_install(args: argparse.Namespace) -> int:
    from skill_relay.tools.install import install_source

    def confirm(plan) -> bool:
        print(f"About to run {len(plan.agent_ops)} {plural(len(plan.agent_ops), 'installation')}:")
        for op in plan.agent_ops:
            print(f"  {op.installable.display_name} → {op.agent.display_name}")
        return _confirm("Proceed?")

    summary = asyncio.run(
        install_source(
            args.source,
            agents=args.agent or None,
            skills=args.skill or None,
            scope=Scope.GLOBAL if args.global_ else Scope.PROJECT,
            strategy=Strategy.COPY if args.copy else None,
            list_only=args.list,
            yes=args.yes,
            confirm=confirm,
            project_dir=args.project,
        )
    )
    if args.json:
        print(summary.model_dump_json(indent=2))
    else:
        _print(format_install(summary))
    return 0 if summary.success else 1


def cmd_status(args: argparse.Namespace) -> int:
    from skill_relay.tools.status import skill_status

    results = asyncio.run(skill_status(args.names or None, project_dir=args.project))
    if args.json:
        print(json.dumps([r.model_dump(mode="json") for r in results], indent=2))
    else:
        _print(format_status(results, verbose=args.detail or bool(args.names)))
    return 1 if any(r.status is Status.ERROR for r in results) else 0


def cmd_update(args: argparse.Namespace) -> int:
    from skill_relay.tools.status import update_skills

    declined = []

    def select(candidates: list[StatusResult]) -> list[str]:
        if args.yes:
            return [c.name for c in candidates]
        _print(format_status(candidates, verbose=True))
        if _confirm("Update these?"):
            return [c.name for c in candidates]
        declined.append(True)
        return []

    results = asyncio.run(update_skills(args.names or None, select=select, project_dir=args.project))
    _print(format_updates(results, cancelled=bool(declined)))
    return 0 if all(r.success for r in results) else 1


def cmd_remove(args: argparse.Namespace) -> int:
    from skill_relay.tools.inventory import remove_skills

    if not args.names:
        print("error: name at least one skill to remove", file=sys.stderr)
        return 1
    if not args.yes and not _confirm(f"Remove {', '.join(args.names)}?"):
        return 1
    results = remove_skills(args.names, project_dir=args.project)
    _print(format_removals(results))
    return 0 if all(r.success for r in results) else 1


def cmd_list(args: argparse.Namespace) -> int:
    from skill_relay.tools.inventory import list_installed

    inventory = list_installed(project_dir=args.project)
    if args.json:
        print(json.dumps(inventory, indent=2))
        return 0
    if not inventory["entries"]:
        print("No skills tracked")
        return 0
    for item in inventory["entries"]:
        print(f"{item['name']} ({item['kind']}, {item['scope']}) from {item['source']}")
        for info in item["installations"]:
            print(f"  {info['agent']}: {info['path']} [{info['status']}]")
    return 0


def cmd_clean(args: argparse.Namespace) -> int:
    from skill_relay.tools.status import clean_orphaned

    removed = clean_orphaned(project_dir=args.project)
    if removed:
        print(f"Cleaned {len(removed)} orphaned {plural(len(removed), 'entry', 'entries')}: {', '.join(removed)}")
    else:
        print("No orphaned entries")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    try:
        if args.cmd in ("install", "add"):
            return cmd_install(args)
        if args.cmd == "status":
            return cmd_status(args)
        if args.cmd == "update":
            return cmd_update(args)
        if args.cmd in ("remove", "rm"):
            return cmd_remove(args)
        if args.cmd in ("list", "ls"):
            return cmd_list(args)
        if args.cmd == "clean":
            return cmd_clean(args)
        if args.cmd == "serve":
            from skill_relay.server import main as serve

            serve()
            return 0
        raise AssertionError("unreachable")
    except SkillRelayError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("cancelled", file=sys.stderr)
        return 130


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
