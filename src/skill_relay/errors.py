"""Error taxonomy for skill-relay.

Only conditions that abort a whole flow are raised. Per-item failures
(one agent install, one status lookup) are captured in result models.
"""


class SkillRelayError(Exception):
    """Base class for all skill-relay errors."""


class InvalidSource(SkillRelayError):
    """The source string could not be parsed into a descriptor."""


class DownloadFailure(SkillRelayError):
    """Cloning a repository or fetching a well-known index failed."""


class DiscoveryEmpty(SkillRelayError):
    """No installable units were found (or none matched the selection)."""


class InstallOperationFailure(SkillRelayError):
    """A single copy/symlink operation failed."""


class StateWriteFailure(SkillRelayError):
    """A state file could not be written."""


class RemoteLookupFailure(SkillRelayError):
    """Resolving the latest remote commit failed."""


class EnvironmentFailure(SkillRelayError):
    """The destination root for a run could not be prepared."""


class UnknownAgent(SkillRelayError):
    """An agent id outside the supported set was requested."""
