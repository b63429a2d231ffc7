"""Repository URL transformation utilities.

Libraries installed from a remote repository are fetched as a source archive
instead of a git clone. This module turns repository locators into archive
download URLs and derives the library name from them.

Supported locators:
    - https://github.com/owner/repo(.git)
    - https://github.com/owner/repo(.git)#ref         (branch, tag or commit)
    - https://github.com/owner/repo/tree/branch-or-tag
    - https://github.com/owner/repo/commit/hash
    - https://github.com/owner/repo/releases/download/v1.0.0/file.zip
    - Any http(s) URL ending in .zip / .tar.gz / .tgz (passed through)
"""

import re
from typing import Optional
from urllib.parse import urlparse

_ARCHIVE_SUFFIXES = (".zip", ".tar.gz", ".tgz", ".tar.bz2", ".tar.xz")
_TAG_RE = re.compile(r"^v?\d+(\.\d+)*")
_COMMIT_RE = re.compile(r"^[0-9a-f]{7,40}$")


class GitHubURLError(Exception):
    """Raised when a repository URL cannot be transformed."""

    pass


def is_archive_url(url: str) -> bool:
    return urlparse(url).path.lower().endswith(_ARCHIVE_SUFFIXES)


def split_ref(url: str) -> tuple[str, Optional[str]]:
    """Split "https://host/owner/repo#ref" into (url, ref)."""
    base, sep, ref = url.partition("#")
    return base, (ref or None) if sep else None


def transform_github_url(url: str, prefer_zip: bool = True) -> str:
    """Transform a repository URL into a direct archive download URL.

    Args:
        url: Repository locator (see module docstring)
        prefer_zip: If True, use .zip format; if False, use .tar.gz format

    Returns:
        Archive download URL

    Raises:
        GitHubURLError: If URL cannot be transformed

    Examples:
        >>> transform_github_url("https://github.com/owner/repo")
        'https://github.com/owner/repo/archive/refs/heads/main.zip'

        >>> transform_github_url("https://github.com/owner/repo#v1.0.0")
        'https://github.com/owner/repo/archive/refs/tags/v1.0.0.zip'

        >>> transform_github_url("https://github.com/owner/repo/commit/abc123")
        'https://github.com/owner/repo/archive/abc123.zip'
    """
    url, ref = split_ref(url.strip())
    if is_archive_url(url) and urlparse(url).netloc != "github.com":
        return url

    url = url.rstrip("/")
    if url.endswith(".git"):
        url = url[:-4]

    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise GitHubURLError(f"Unsupported URL scheme: {url}")
    if parsed.netloc != "github.com":
        raise GitHubURLError(f"Not a GitHub URL: {url}")

    path_parts = [p for p in parsed.path.split("/") if p]
    if len(path_parts) < 2:
        raise GitHubURLError(f"Invalid GitHub URL format: {url}")

    owner = path_parts[0]
    repo = path_parts[1]
    ext = "zip" if prefer_zip else "tar.gz"

    if len(path_parts) == 2:
        if ref is None:
            return f"https://github.com/{owner}/{repo}/archive/refs/heads/main.{ext}"
        return _ref_archive_url(owner, repo, ref, ext)

    elif len(path_parts) >= 4 and path_parts[2] == "tree":
        return _ref_archive_url(owner, repo, "/".join(path_parts[3:]), ext)

    elif len(path_parts) >= 4 and path_parts[2] == "commit":
        return f"https://github.com/{owner}/{repo}/archive/{path_parts[3]}.{ext}"

    elif len(path_parts) >= 5 and path_parts[2] == "releases" and path_parts[3] == "download":
        return f"https://github.com/{owner}/{repo}/archive/refs/tags/{path_parts[4]}.{ext}"

    else:
        raise GitHubURLError(f"Unsupported GitHub URL format: {url}")


def repository_name(url: str) -> str:
    """Library directory name implied by a repository locator.

    Examples:
        >>> repository_name("https://github.com/arduino-libraries/Servo.git#1.2.1")
        'Servo'
        >>> repository_name("https://example.com/downloads/Servo-1.2.1.zip")
        'Servo-1.2.1'
    """
    base, _ref = split_ref(url.strip())
    parsed = urlparse(base.rstrip("/"))
    path_parts = [p for p in parsed.path.split("/") if p]
    if not path_parts:
        raise GitHubURLError(f"Cannot derive a library name from {url}")

    if parsed.netloc == "github.com" and len(path_parts) >= 2:
        name = path_parts[1]
    else:
        name = path_parts[-1]

    for suffix in (".git",) + _ARCHIVE_SUFFIXES:
        if name.lower().endswith(suffix):
            name = name[: -len(suffix)]
            break
    if not name:
        raise GitHubURLError(f"Cannot derive a library name from {url}")
    return name


def _ref_archive_url(owner: str, repo: str, ref: str, ext: str) -> str:
    # Heuristic: hex strings are commits, version-looking refs are tags, the rest branches
    if _COMMIT_RE.match(ref) and not ref.isdigit():
        return f"https://github.com/{owner}/{repo}/archive/{ref}.{ext}"
    if _TAG_RE.match(ref):
        return f"https://github.com/{owner}/{repo}/archive/refs/tags/{ref}.{ext}"
    return f"https://github.com/{owner}/{repo}/archive/refs/heads/{ref}.{ext}"
