"""Configuration for skill-relay."""

from pathlib import Path

from pydantic_settings import BaseSettings

from skill_relay.models import Scope


class Settings(BaseSettings):
    """Skill-relay configuration loaded from environment and .env file."""

    # Home directory used to expand "~" in agent paths
    home_dir: Path = Path.home()

    # Global state lives under the user's home
    state_dir: Path = Path.home() / ".skill-relay"
    global_state_file: str = "state.json"

    # Local state lives at the project root
    local_state_file: str = "skill-relay.lock.json"

    # Shared storage for the symlink strategy
    global_storage_dir: Path = Path.home() / ".agents" / "skills"
    project_storage_dir: str = ".agents/skills"  # relative to the project root
    storage_commands_dirname: str = ".commands"

    # Discovery
    discovery_max_depth: int = 5

    # Well-known index settings
    index_cache_ttl: float = 300.0  # 5 minutes
    index_timeout: float = 10.0
    file_timeout: float = 30.0

    # Git settings
    git_path: str = "git"
    git_clone_timeout: float = 120.0
    git_lookup_timeout: float = 30.0

    # Directory of named sources (bare-name shorthand)
    directory_url: str = "https://flins.tech/directory.json"
    directory_timeout: float = 10.0

    # Install defaults
    symlink: bool = True

    log_level: str = "INFO"

    model_config = {"env_prefix": "SKILL_RELAY_", "env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @property
    def global_state_path(self) -> Path:
        return self.state_dir / self.global_state_file

    def local_state_path(self, project_dir: Path) -> Path:
        return project_dir / self.local_state_file

    def storage_dir(self, scope: Scope, project_dir: Path) -> Path:
        """Return the shared storage root for a scope."""
        if scope is Scope.GLOBAL:
            return self.global_storage_dir
        return project_dir / self.project_storage_dir


settings = Settings()
