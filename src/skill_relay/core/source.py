"""Source resolution: turn a free-form source string into a SourceDescriptor.

Accepted forms:
    owner/repo                       -> https://github.com/owner/repo
    owner/repo/some/path             -> same, subpath "some/path"
    https://host/owner/repo(.git)    -> as given
    git@host:owner/repo.git          -> as given
    https://github.com/o/r/tree/b/p  -> branch "b", subpath "p"
    any of the above + "#sub/path" and/or "@branch"
    example.com, https://example.com -> well-known index host
"""

import logging
import re
from pathlib import PurePosixPath
from urllib.parse import urlsplit

from skill_relay.errors import InvalidSource
from skill_relay.models import WELL_KNOWN_PREFIX, SourceDescriptor, SourceKind

logger = logging.getLogger("skill-relay.source")

# Hosts that serve repositories, never a well-known index
GIT_HOSTS = {"github.com", "gitlab.com", "bitbucket.org", "codeberg.org"}

_SCP_RE = re.compile(r"^[A-Za-z0-9_.-]+@[A-Za-z0-9.-]+:")
_SHORTHAND_RE = re.compile(r"^[A-Za-z0-9_-][A-Za-z0-9_.-]*/[A-Za-z0-9_.-]+(?:/[^\s]*)?$")
_HOST_RE = re.compile(r"^(?:https?://)?([A-Za-z0-9-]+(?:\.[A-Za-z0-9-]+)+)(?::\d+)?/?$")
_DIRECTORY_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def is_directory_name(value: str) -> bool:
    """True for bare names ("frontend-kit") resolved through the directory."""
    return bool(_DIRECTORY_NAME_RE.match(value.strip()))


def is_well_known_source(value: str) -> bool:
    """True when the string is a bare host (no repository path)."""
    match = _HOST_RE.match(value.strip())
    if not match:
        return False
    return match.group(1).lower() not in GIT_HOSTS


def clean_host(host: str) -> str:
    return re.sub(r"^https?://", "", host.strip()).rstrip("/")


def resolve_source(value: str) -> SourceDescriptor:
    """Parse and normalize a source string.

    Raises InvalidSource when the string is neither a git location nor a
    well-known host.
    """
    raw = (value or "").strip()
    if not raw:
        raise InvalidSource("Source must not be empty")

    if is_well_known_source(raw):
        host = clean_host(raw)
        logger.debug("Recognized well-known host '%s'", host)
        return SourceDescriptor(kind=SourceKind.WELL_KNOWN, url=f"{WELL_KNOWN_PREFIX}{host}")

    base, fragment = (raw.split("#", 1) + [None])[:2]
    base, branch = _split_branch(base)
    if fragment is not None and branch is None and "@" in fragment:
        fragment, branch = fragment.rsplit("@", 1)
        if not branch:
            raise InvalidSource(f"Empty branch in source '{value}'")

    url, tree_branch, tree_subpath = _parse_location(base, value)

    subpath = tree_subpath
    if fragment:
        subpath = f"{tree_subpath}/{fragment}" if tree_subpath else fragment

    return SourceDescriptor(
        kind=SourceKind.GIT,
        url=url,
        subpath=_normalize_subpath(subpath, value),
        branch=branch or tree_branch,
    )


def _split_branch(value: str) -> tuple[str, str | None]:
    """Split a trailing "@branch" off the repository part of a source."""
    scp = _SCP_RE.match(value)
    if scp:
        offset = scp.end()
    elif "://" in value:
        netloc_start = value.index("://") + 3
        slash = value.find("/", netloc_start)
        offset = slash if slash != -1 else len(value)
    else:
        offset = 0

    at = value.find("@", offset)
    if at == -1:
        return value, None
    branch = value[at + 1 :].strip()
    if not branch:
        raise InvalidSource(f"Empty branch in source '{value}'")
    return value[:at], branch


def _parse_location(base: str, original: str) -> tuple[str, str | None, str | None]:
    """Return (url, branch, subpath) for the repository part of a source."""
    base = base.strip().rstrip("/")
    if not base:
        raise InvalidSource(f"Invalid source '{original}'")

    scp = _SCP_RE.match(base)
    if scp:
        path = base[scp.end() :]
        if "/" not in path.strip("/"):
            raise InvalidSource(f"Invalid git URL '{original}'")
        return base, None, None

    if "://" in base:
        return _parse_url(base, original)

    if _SHORTHAND_RE.match(base):
        first, _, rest = base.partition("/")
        if "." in first:
            # example.com/owner/repo: a host without scheme
            return _parse_url(f"https://{base}", original)
        repo, _, subpath = rest.partition("/")
        return f"https://github.com/{first}/{repo}", None, subpath or None

    raise InvalidSource(f"Invalid source '{original}': expected owner/repo, a git URL, or a host")


def _parse_url(url: str, original: str) -> tuple[str, str | None, str | None]:
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https", "ssh", "git") or not parts.hostname:
        raise InvalidSource(f"Invalid git URL '{original}'")

    segments = [s for s in parts.path.split("/") if s]
    if not segments:
        raise InvalidSource(f"Git URL '{original}' has no repository path")

    host = parts.hostname.lower()
    prefix = f"{parts.scheme}://{parts.netloc}"

    # GitHub: /owner/repo/tree/<branch>/<path>
    if host == "github.com" and len(segments) >= 4 and segments[2] == "tree":
        repo_url = f"{prefix}/{segments[0]}/{segments[1]}"
        return repo_url, segments[3], "/".join(segments[4:]) or None

    # GitLab: /group/repo/-/tree/<branch>/<path>
    if "-" in segments:
        dash = segments.index("-")
        if dash >= 2 and len(segments) > dash + 2 and segments[dash + 1] == "tree":
            repo_url = f"{prefix}/{'/'.join(segments[:dash])}"
            return repo_url, segments[dash + 2], "/".join(segments[dash + 3 :]) or None

    if host in ("github.com", "codeberg.org", "bitbucket.org") and len(segments) < 2:
        raise InvalidSource(f"Git URL '{original}' is missing owner/repo")

    return f"{prefix}/{'/'.join(segments)}", None, None


def _normalize_subpath(subpath: str | None, original: str) -> str | None:
    if subpath is None:
        return None
    cleaned = subpath.strip().strip("/")
    if not cleaned:
        return None
    if any(part == ".." for part in PurePosixPath(cleaned).parts):
        raise InvalidSource(f"Subpath in '{original}' must stay inside the repository")
    return cleaned


def build_file_url(source: SourceDescriptor, relative_path: str) -> str:
    """Browsable URL for a file inside a git source (best effort)."""
    if source.kind is SourceKind.WELL_KNOWN:
        return f"https://{source.host}/.well-known/skills/{relative_path}"

    rel = relative_path.strip("/")
    if source.subpath:
        rel = f"{source.subpath}/{rel}" if rel else source.subpath

    repo = source.url.removesuffix(".git")
    branch = source.branch or "main"
    if repo.startswith("https://github.com/"):
        return f"{repo}/blob/{branch}/{rel}"
    if repo.startswith("https://gitlab.com/"):
        return f"{repo}/-/blob/{branch}/{rel}"
    return source.url
