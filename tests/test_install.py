"""Install tests: executor ledger, the install flow, well-known and directory sources."""

import asyncio
import shutil
import tempfile
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import httpx
import pytest

from fakes import COMMIT_A, FakeGit, make_repo, make_stores, write_skill
from skill_relay.agents import AGENTS
from skill_relay.core.directory import DirectoryClient
from skill_relay.core.executor import execute_plan
from skill_relay.core.planner import plan_install
from skill_relay.core.well_known import WellKnownClient
from skill_relay.errors import DiscoveryEmpty, DownloadFailure, EnvironmentFailure, InvalidSource
from skill_relay.models import AgentId, Installable, InstallableKind, Scope, SourceKind, Strategy
from skill_relay.tools.install import install_source

THREE_AGENTS = [AgentId.CLAUDE_CODE, AgentId.CURSOR, AgentId.GEMINI]


def _block_gemini(project: Path) -> None:
    # A file where .gemini/ should be makes every gemini install fail
    (project / ".gemini").write_text("not a directory")


def test_execute_two_of_three():
    """One failing agent is isolated; the other two succeed via shared storage."""
    with tempfile.TemporaryDirectory() as tmp:
        project = Path(tmp) / "project"
        project.mkdir()
        origin = write_skill(Path(tmp) / "src" / "pdf", "name: pdf")
        _block_gemini(project)

        item = Installable(name="pdf", origin_path=origin)
        plan = plan_install([item], [AGENTS[a] for a in THREE_AGENTS], Scope.PROJECT, Strategy.SYMLINK)
        ledger = asyncio.run(execute_plan(plan, project))

        assert ledger.installed == 2
        assert ledger.failed == 1
        by_agent = {r.agent: r for r in ledger.results}
        assert by_agent[AgentId.GEMINI].success is False
        assert by_agent[AgentId.GEMINI].error

        link = project / ".claude" / "skills" / "pdf"
        assert link.is_symlink()
        assert (link / "SKILL.md").is_file()
        assert (project / ".agents" / "skills" / "pdf" / "SKILL.md").is_file()
        print(f"  PASS: {ledger.installed} installed, {ledger.failed} failed")


def test_failed_storage_copy_fails_dependents():
    with tempfile.TemporaryDirectory() as tmp:
        project = Path(tmp)
        item = Installable(name="ghost", origin_path=project / "does-not-exist")
        agents = [AGENTS[AgentId.CLAUDE_CODE], AGENTS[AgentId.CURSOR]]
        ledger = asyncio.run(execute_plan(plan_install([item], agents, Scope.PROJECT, Strategy.SYMLINK), project))

        assert ledger.storage_results[0].success is False
        assert ledger.failed == 2
        assert all(r.error.startswith("Shared copy failed") for r in ledger.results)


def test_execute_missing_project_dir():
    with tempfile.TemporaryDirectory() as tmp:
        item = Installable(name="pdf", origin_path=Path(tmp))
        plan = plan_install([item], [AGENTS[AgentId.CURSOR]], Scope.PROJECT, Strategy.COPY)
        with pytest.raises(EnvironmentFailure):
            asyncio.run(execute_plan(plan, Path(tmp) / "missing"))


def test_install_records_only_successes():
    """2-of-3 install: state holds exactly the two successful installations."""
    with tempfile.TemporaryDirectory() as tmp:
        tmp = Path(tmp)
        repo = make_repo(tmp / "repo")
        stores = make_stores(tmp)
        _block_gemini(stores.project_dir)
        git = FakeGit(repo)

        summary = asyncio.run(
            install_source(
                "acme/skills",
                agents=[a.value for a in THREE_AGENTS],
                skills=["alpha"],
                yes=True,
                project_dir=stores.project_dir,
                stores=stores,
                git=git,
            )
        )

        assert summary.success is False
        assert (summary.installed, summary.failed) == (2, 1)
        assert git.clones == [("https://github.com/acme/skills", None)]
        ok = next(r for r in summary.results if r.success)
        assert ok.source_url == "https://github.com/acme/skills/blob/main/skills/alpha/SKILL.md"

        reloaded = make_stores(tmp).local
        entry = reloaded.get("alpha")
        assert entry.source.branch == "main"
        assert entry.source.commit == COMMIT_A
        assert sorted((r.agent, r.path) for r in entry.installations) == [
            (AgentId.CLAUDE_CODE, ".claude/skills/alpha"),
            (AgentId.CURSOR, ".cursor/skills/alpha"),
        ]
        assert reloaded.get("beta") is None


def test_install_branch_change_is_reported():
    with tempfile.TemporaryDirectory() as tmp:
        tmp = Path(tmp)
        stores = make_stores(tmp)
        git = FakeGit(make_repo(tmp / "repo"))
        kwargs = dict(agents=["cursor"], skills=["alpha"], yes=True, project_dir=stores.project_dir, stores=stores, git=git)

        first = asyncio.run(install_source("acme/skills", **kwargs))
        assert first.success and first.branch_changes == []

        second = asyncio.run(install_source("acme/skills@dev", **kwargs))
        assert second.success
        (change,) = second.branch_changes
        assert (change.name, change.previous, change.current) == ("alpha", "main", "dev")
        assert any("switched branch" in w for w in second.warnings)
        assert stores.local.get("alpha").source.branch == "dev"


def test_install_commands_and_copy_strategy():
    with tempfile.TemporaryDirectory() as tmp:
        tmp = Path(tmp)
        stores = make_stores(tmp)
        git = FakeGit(make_repo(tmp / "repo"))
        summary = asyncio.run(
            install_source(
                "acme/skills",
                agents=["claude-code", "gemini"],
                skills=["deploy", "Gamma Tools"],
                strategy=Strategy.COPY,
                yes=True,
                project_dir=stores.project_dir,
                stores=stores,
                git=git,
            )
        )
        project = stores.project_dir
        assert summary.success
        assert (project / ".claude" / "commands" / "deploy.md").is_file()
        assert not (project / ".gemini" / "commands").exists()
        gamma = project / ".gemini" / "skills" / "gamma"
        assert gamma.is_dir() and not gamma.is_symlink()
        assert not (project / ".agents").exists()
        assert any("does not support commands" in w for w in summary.warnings)
        assert stores.local.get("deploy").kind is InstallableKind.COMMAND


def test_install_unmatched_skill_suggests():
    with tempfile.TemporaryDirectory() as tmp:
        tmp = Path(tmp)
        stores = make_stores(tmp)
        git = FakeGit(make_repo(tmp / "repo"))
        with pytest.raises(DiscoveryEmpty) as exc:
            asyncio.run(
                install_source("acme/skills", agents=["cursor"], skills=["alpah"], yes=True,
                               project_dir=stores.project_dir, stores=stores, git=git)
            )
        assert "did you mean 'alpha'" in str(exc.value)
        assert not stores.local.path.exists()


def test_install_list_mode_writes_nothing():
    with tempfile.TemporaryDirectory() as tmp:
        tmp = Path(tmp)
        stores = make_stores(tmp)
        git = FakeGit(make_repo(tmp / "repo"))
        summary = asyncio.run(
            install_source("acme/skills", list_only=True, project_dir=stores.project_dir, stores=stores, git=git)
        )
        assert summary.success
        assert [i.name for i in summary.listed] == ["deploy", "alpha", "beta", "Gamma Tools", "lint"]
        assert summary.installed == 0
        assert not stores.local.path.exists()
        assert list(stores.project_dir.iterdir()) == []


def test_install_cancelled_by_confirm():
    with tempfile.TemporaryDirectory() as tmp:
        tmp = Path(tmp)
        stores = make_stores(tmp)
        git = FakeGit(make_repo(tmp / "repo"))
        seen = []
        summary = asyncio.run(
            install_source("acme/skills", agents=["cursor"], confirm=lambda plan: seen.append(plan) and False,
                           project_dir=stores.project_dir, stores=stores, git=git)
        )
        assert summary.success is False
        assert len(seen[0].agent_ops) == 5
        assert not (stores.project_dir / ".cursor").exists()


# ─── Well-known hosts ──────────────────────────────────────────────────────

INDEX = {
    "skills": [
        {"name": "pdf", "description": "PDF tools", "files": ["SKILL.md", "scripts/run.py"]},
        {"name": "csv", "description": "CSV tools", "files": ["SKILL.md"]},
    ]
}


def _well_known_transport(requests: list[str], index=INDEX) -> httpx.MockTransport:
    files = {
        "/.well-known/skills/pdf/SKILL.md": "---\nname: pdf\ndescription: PDF tools\n---\n# PDF\n",
        "/.well-known/skills/pdf/scripts/run.py": "print('run')\n",
        "/.well-known/skills/csv/SKILL.md": "---\nname: csv\n---\n# CSV\n",
    }

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request.url.path)
        if request.url.path == "/.well-known/skills/index.json":
            return httpx.Response(200, json=index)
        if request.url.path in files:
            return httpx.Response(200, text=files[request.url.path])
        return httpx.Response(404)

    return httpx.MockTransport(handler)


def test_well_known_index_is_cached():
    requests: list[str] = []
    client = WellKnownClient(transport=_well_known_transport(requests))

    async def run():
        first = await client.list_skills("example.com")
        second = await client.list_skills("https://example.com/")
        return first, second

    first, second = asyncio.run(run())
    assert [s.name for s in first] == ["pdf", "csv"]
    assert first == second
    assert requests == ["/.well-known/skills/index.json"]


def test_well_known_download_selected():
    requests: list[str] = []
    client = WellKnownClient(transport=_well_known_transport(requests))
    temp_dir, selected = asyncio.run(client.download_skills("example.com", ["PDF"]))
    try:
        assert [s.name for s in selected] == ["pdf"]
        assert (temp_dir / "pdf" / "scripts" / "run.py").read_text() == "print('run')\n"
        assert not (temp_dir / "csv").exists()
    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    with pytest.raises(DiscoveryEmpty) as exc:
        asyncio.run(client.download_skills("example.com", ["nope"]))
    assert "pdf, csv" in str(exc.value)


def test_well_known_bad_index_and_missing_file():
    client = WellKnownClient(transport=_well_known_transport([], index={"skills": "nope"}))
    with pytest.raises(DownloadFailure):
        asyncio.run(client.fetch_index("example.com"))

    broken = {"skills": [{"name": "pdf", "files": ["SKILL.md", "missing.txt"]}]}
    client = WellKnownClient(transport=_well_known_transport([], index=broken))
    with pytest.raises(DownloadFailure):
        asyncio.run(client.download_skills("example.com"))


def test_install_from_well_known_host():
    with tempfile.TemporaryDirectory() as tmp:
        stores = make_stores(Path(tmp))
        client = WellKnownClient(transport=_well_known_transport([]))
        summary = asyncio.run(
            install_source(
                "example.com",
                agents=["claude-code"],
                skills=["pdf"],
                strategy=Strategy.COPY,
                yes=True,
                project_dir=stores.project_dir,
                stores=stores,
                well_known=client,
                git=FakeGit(),
            )
        )
        assert summary.success
        assert summary.results[0].source_url == "https://example.com/.well-known/skills/pdf/SKILL.md"
        assert (stores.project_dir / ".claude" / "skills" / "pdf" / "scripts" / "run.py").is_file()

        entry = stores.local.get("pdf")
        assert entry.source.kind is SourceKind.WELL_KNOWN
        assert entry.source.url == "well-known:example.com"
        assert (entry.source.branch, entry.source.commit) == ("main", "well-known")


# ─── Directory names ───────────────────────────────────────────────────────

def _directory_transport() -> httpx.MockTransport:
    entries = [
        {"name": "frontend-kit", "description": "UI skills", "source": "acme/skills"},
        {"name": "data-kit", "description": "Data skills", "source": "acme/data"},
    ]
    return httpx.MockTransport(lambda request: httpx.Response(200, json=entries))


def test_directory_resolve():
    client = DirectoryClient(url="https://dir.test/directory.json", transport=_directory_transport())
    assert asyncio.run(client.resolve("Frontend-Kit")) == "acme/skills"
    with pytest.raises(InvalidSource) as exc:
        asyncio.run(client.resolve("backend-kit"))
    assert "frontend-kit, data-kit" in str(exc.value)


def test_install_directory_name():
    with tempfile.TemporaryDirectory() as tmp:
        tmp = Path(tmp)
        stores = make_stores(tmp)
        git = FakeGit(make_repo(tmp / "repo"))
        directory = DirectoryClient(url="https://dir.test/directory.json", transport=_directory_transport())
        summary = asyncio.run(
            install_source("frontend-kit", agents=["cursor"], skills=["alpha"], yes=True,
                           project_dir=stores.project_dir, stores=stores, git=git, directory=directory)
        )
        assert summary.success
        assert git.clones == [("https://github.com/acme/skills", None)]
