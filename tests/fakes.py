"""Test doubles and fixture builders shared by the test modules."""

import shutil
import tempfile
from pathlib import Path

from skill_relay.core.state import StateStore, StateStores
from skill_relay.errors import RemoteLookupFailure
from skill_relay.models import Scope

COMMIT_A = "a" * 40
COMMIT_B = "b" * 40


class FakeGit:
    """Serves a local directory as every clone; ls-remote answers from a dict."""

    def __init__(self, repo: Path | None = None, commit: str = COMMIT_A, latest: dict[str, str] | None = None):
        self.repo = repo
        self.commit = commit
        self.latest = latest or {}
        self.clones: list[tuple[str, str | None]] = []
        self.lookups: list[str] = []

    async def clone(self, url, branch=None):
        self.clones.append((url, branch))
        dest = Path(tempfile.mkdtemp(prefix="fake-clone-"))
        if self.repo is not None:
            shutil.copytree(self.repo, dest, dirs_exist_ok=True)
        return dest

    async def get_commit_hash(self, path):
        return self.commit

    async def get_branch(self, path):
        return "main"

    async def get_latest_commit(self, url, branch=None):
        self.lookups.append(url)
        if url not in self.latest:
            raise RemoteLookupFailure(f"git ls-remote failed: repository '{url}' not found")
        return self.latest[url]

    def cleanup(self, path):
        shutil.rmtree(path, ignore_errors=True)


def write_skill(directory: Path, header: str, body: str = "# Skill\n") -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "SKILL.md").write_text(f"---\n{header}\n---\n\n{body}", encoding="utf-8")
    return directory


def make_repo(root: Path) -> Path:
    """Three skills (one with a malformed header) and two commands."""
    write_skill(root / "skills" / "alpha", "name: alpha\ndescription: First skill")
    write_skill(root / "skills" / "beta", "name: [unclosed\ndescription: broken")
    write_skill(root / "skills" / "gamma", "name: Gamma Tools\ndescription: Third skill")
    (root / "skills" / "alpha" / "helper.py").write_text("print('alpha')\n")
    (root / "commands").mkdir()
    (root / "commands" / "deploy.md").write_text("---\ndescription: Deploy it\n---\nRun deploy.\n")
    (root / "commands" / "README.md").write_text("# Commands\n")
    (root / "tools").mkdir()
    (root / "tools" / "lint.command.md").write_text("Lint everything.\n")
    return root


def make_stores(tmp: Path) -> StateStores:
    """Stores for a fresh project; the global store lives inside ``tmp`` too."""
    project = tmp / "project"
    project.mkdir(exist_ok=True)
    return StateStores(project, global_=StateStore(tmp / "global-state.json", Scope.GLOBAL, project))
