"""Core tests for skill-relay: source resolver, discovery, planner, cache, matcher."""

import tempfile
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest

from fakes import make_repo, write_skill
from skill_relay.agents import AGENTS, get_agent, resolve_agents
from skill_relay.core.cache import WellKnownIndexCache
from skill_relay.core.discovery import discover, parse_frontmatter
from skill_relay.core.matcher import describe_unmatched, select_by_name, suggest
from skill_relay.core.planner import plan_install
from skill_relay.core.source import build_file_url, is_directory_name, resolve_source
from skill_relay.errors import InvalidSource, UnknownAgent
from skill_relay.models import (
    AgentId,
    Installable,
    InstallableKind,
    Scope,
    SourceKind,
    Strategy,
    WellKnownIndex,
)


def test_resolve_shorthand_with_subpath():
    """owner/repo/path should become a GitHub URL plus subpath."""
    source = resolve_source("acme/skills/tools/pdf")
    assert source.kind is SourceKind.GIT
    assert source.url == "https://github.com/acme/skills"
    assert source.subpath == "tools/pdf"
    assert source.branch is None


def test_resolve_tree_url():
    source = resolve_source("https://github.com/acme/skills/tree/dev/skills/pdf")
    assert source.url == "https://github.com/acme/skills"
    assert source.branch == "dev"
    assert source.subpath == "skills/pdf"


def test_resolve_fragment_and_branch():
    source = resolve_source("git@github.com:acme/skills.git#packages/core@release")
    assert source.url == "git@github.com:acme/skills.git"
    assert source.subpath == "packages/core"
    assert source.branch == "release"

    source = resolve_source("acme/skills@v2")
    assert source.url == "https://github.com/acme/skills"
    assert source.branch == "v2"


def test_resolve_well_known_host():
    source = resolve_source("https://docs.example.com/")
    assert source.kind is SourceKind.WELL_KNOWN
    assert source.url == "well-known:docs.example.com"
    assert source.host == "docs.example.com"


@pytest.mark.parametrize("value", ["", "   ", "github.com", "not a source", "acme/skills#../../etc", "https://github.com/acme"])
def test_resolve_invalid(value):
    with pytest.raises(InvalidSource):
        resolve_source(value)


def test_directory_names():
    assert is_directory_name("frontend-kit")
    assert not is_directory_name("acme/skills")
    assert not is_directory_name("example.com")


def test_build_file_url():
    source = resolve_source("acme/skills#tools")
    assert build_file_url(source, "pdf/SKILL.md") == "https://github.com/acme/skills/blob/main/tools/pdf/SKILL.md"
    wk = resolve_source("example.com")
    assert build_file_url(wk, "pdf/SKILL.md") == "https://example.com/.well-known/skills/pdf/SKILL.md"


def test_parse_frontmatter():
    """Should parse the leading YAML block; malformed headers give {}."""
    meta = parse_frontmatter("---\nname: pdf\ndescription: Parse PDFs\n---\n\n# PDF\n")
    assert meta == {"name": "pdf", "description": "Parse PDFs"}
    assert parse_frontmatter("---\nname: [broken\n---\n") == {}
    assert parse_frontmatter("# no header\n") == {}


def test_discovery_fixture():
    """Three skills (one malformed) and two commands, in lexicographic walk order."""
    with tempfile.TemporaryDirectory() as tmp:
        root = make_repo(Path(tmp))
        found = list(discover(root))

        assert [(i.kind.value, i.name) for i in found] == [
            ("command", "deploy"),
            ("skill", "alpha"),
            ("skill", "beta"),
            ("skill", "gamma"),
            ("command", "lint"),
        ]
        beta = found[2]
        assert beta.metadata == {}
        assert beta.description == ""
        assert found[3].display_name == "Gamma Tools"
        assert found[0].description == "Deploy it"
        print(f"  PASS: discovered {len(found)} installables")


def test_discovery_subpath_and_depth():
    with tempfile.TemporaryDirectory() as tmp:
        root = make_repo(Path(tmp))
        assert [i.name for i in discover(root, "skills")] == ["alpha", "beta", "gamma"]
        assert [(i.kind, i.name) for i in discover(root, "commands")] == [(InstallableKind.COMMAND, "deploy")]
        # Depth 1 reaches command files but not the skill directories
        assert [i.name for i in discover(root, max_depth=1)] == ["deploy", "lint"]
        with pytest.raises(InvalidSource):
            list(discover(root, "../outside"))


def test_discovery_root_skill_uses_declared_name():
    with tempfile.TemporaryDirectory() as tmp:
        write_skill(Path(tmp), "name: single-skill")
        (found,) = discover(Path(tmp))
        assert found.name == "single-skill"


def test_discovery_first_wins_and_skips_nested():
    with tempfile.TemporaryDirectory() as tmp:
        root = Path(tmp)
        write_skill(root / "a" / "dup", "name: dup\ndescription: first")
        write_skill(root / "b" / "dup", "name: dup\ndescription: second")
        write_skill(root / "a" / "dup" / "inner", "name: inner")
        found = list(discover(root))
        assert [i.name for i in found] == ["dup"]
        assert found[0].description == "first"


def _item(name: str, kind: InstallableKind = InstallableKind.SKILL) -> Installable:
    return Installable(name=name, kind=kind, origin_path=Path("/tmp") / name)


def test_plan_symlink_vs_copy():
    agents = [AGENTS[AgentId.CLAUDE_CODE], AGENTS[AgentId.CURSOR], AGENTS[AgentId.GEMINI]]

    plan = plan_install([_item("pdf")], agents, Scope.PROJECT, Strategy.SYMLINK)
    assert len(plan.storage_ops) == 1
    assert [op.key for op in plan.agent_ops] == [
        (InstallableKind.SKILL, "pdf", AgentId.CLAUDE_CODE),
        (InstallableKind.SKILL, "pdf", AgentId.CURSOR),
        (InstallableKind.SKILL, "pdf", AgentId.GEMINI),
    ]

    plan = plan_install([_item("pdf")], agents, Scope.PROJECT, Strategy.COPY)
    assert plan.storage_ops == []
    assert len(plan.agent_ops) == 3
    assert all(op.strategy is Strategy.COPY for op in plan.agent_ops)


def test_plan_commands_only_for_supporting_agents():
    agents = [AGENTS[AgentId.CLAUDE_CODE], AGENTS[AgentId.GEMINI]]
    plan = plan_install([_item("deploy", InstallableKind.COMMAND)], agents, Scope.PROJECT, Strategy.COPY)
    assert [op.agent.id for op in plan.agent_ops] == [AgentId.CLAUDE_CODE]
    assert len(plan.warnings) == 1
    assert "gemini" in plan.warnings[0]


def test_agent_table_is_closed():
    assert set(AGENTS) == set(AgentId)
    assert get_agent("cursor").id is AgentId.CURSOR
    with pytest.raises(UnknownAgent):
        get_agent("notepad")
    with pytest.raises(UnknownAgent) as exc:
        resolve_agents(["cursor", "vim", "emacs"])
    assert "vim" in str(exc.value) and "emacs" in str(exc.value)
    assert [a.id for a in resolve_agents(["cursor", "cursor"])] == [AgentId.CURSOR]


def test_agent_project_dirs():
    project = Path("/work/app")
    claude = AGENTS[AgentId.CLAUDE_CODE]
    assert claude.scoped_dir(Scope.PROJECT, project_dir=project) == project / ".claude" / "skills"
    assert claude.scoped_dir(Scope.PROJECT, InstallableKind.COMMAND, project) == project / ".claude" / "commands"
    with pytest.raises(ValueError):
        AGENTS[AgentId.GEMINI].scoped_dir(Scope.PROJECT, InstallableKind.COMMAND, project)


def test_cache_expiry_with_fake_clock():
    now = [100.0]
    cache = WellKnownIndexCache(ttl=300, clock=lambda: now[0])
    index = WellKnownIndex(skills=[])
    cache.set("example.com", index)
    now[0] += 299
    assert cache.get("example.com") is index
    now[0] += 1
    assert cache.get("example.com") is None
    assert len(cache) == 0


def test_matcher_select_and_suggest():
    found = [
        _item("alpha"),
        Installable(name="gamma", origin_path=Path("/tmp/gamma"), metadata={"name": "Gamma Tools"}),
    ]
    selected, unmatched = select_by_name(found, ["ALPHA", "gamma tools", "alpah"])
    assert [i.name for i in selected] == ["alpha", "gamma"]
    assert unmatched == ["alpah"]
    assert suggest("alpah", ["alpha", "Gamma Tools"]) == "alpha"
    assert suggest("zzzz", ["alpha"]) is None
    (line,) = describe_unmatched(["alpah"], found)
    assert "did you mean 'alpha'" in line


if __name__ == "__main__":
    print("=" * 60)
    print("skill-relay core tests")
    print("=" * 60)

    tests = [
        ("Source: shorthand", test_resolve_shorthand_with_subpath),
        ("Source: tree URL", test_resolve_tree_url),
        ("Source: fragment + branch", test_resolve_fragment_and_branch),
        ("Source: well-known", test_resolve_well_known_host),
        ("Discovery: fixture", test_discovery_fixture),
        ("Planner: symlink vs copy", test_plan_symlink_vs_copy),
        ("Cache: expiry", test_cache_expiry_with_fake_clock),
    ]

    passed = 0
    failed = 0

    for name, test_fn in tests:
        try:
            print(f"\n[TEST] {name}")
            test_fn()
            passed += 1
        except Exception as e:
            print(f"  FAIL: {e}")
            failed += 1

    print(f"\n{'=' * 60}")
    print(f"Results: {passed} passed, {failed} failed, {passed + failed} total")
    print(f"{'=' * 60}")

    exit(1 if failed > 0 else 0)
