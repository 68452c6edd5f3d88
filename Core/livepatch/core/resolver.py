from __future__ import annotations

import logging
import re
from pathlib import Path

from livepatch.core.exceptions import PathResolutionError, SelfPatchBlockedError

log = logging.getLogger(__name__)

ABSOLUTE_PREFIXES = (
    "/Users/",
    "/home/",
    "/var/",
    "/private/",
    "/tmp/",
    "/opt/",
    "/srv/",
    "/root/",
    "/mnt/",
    "/Volumes/",
)

_WINDOWS_DRIVE = re.compile(r"^[A-Za-z]:[\\/]")
_URL_PREFIX = re.compile(r"^[a-z][a-z0-9+.-]*://[^/]+(?=/|$)", re.IGNORECASE)
_BUNDLER_PREFIX = re.compile(r"^(?:webpack-internal://|webpack://[^/]*)/")
_FILE_SCHEME = re.compile(r"^file://", re.IGNORECASE)
_DEV_SERVER_FS = re.compile(r"^/@fs(?=/)")

PACKAGE_ROOT = Path(__file__).resolve().parents[1]


def is_absolute_filesystem_path(path: str) -> bool:
    return path.startswith(ABSOLUTE_PREFIXES) or bool(_WINDOWS_DRIVE.match(path))


def clean_file_reference(file_ref: str) -> str:
    """Strips dev-server and bundler artifacts from a source-map file reference."""

    cleaned = file_ref.strip()
    cleaned = cleaned.split("?", 1)[0].split("#", 1)[0]
    if _FILE_SCHEME.match(cleaned):
        cleaned = _FILE_SCHEME.sub("", cleaned)
        if re.match(r"^/[A-Za-z]:[\\/]", cleaned):
            cleaned = cleaned[1:]
        return cleaned
    if _BUNDLER_PREFIX.match(cleaned):
        cleaned = _BUNDLER_PREFIX.sub("", cleaned)
    else:
        cleaned = _URL_PREFIX.sub("", cleaned)
    cleaned = _DEV_SERVER_FS.sub("", cleaned)
    if cleaned.startswith("./"):
        cleaned = cleaned[2:]
    return cleaned


def _join(root: str, relative: str) -> str:
    relative = relative.lstrip("/")
    if relative.startswith("./"):
        relative = relative[2:]
    return f"{root.rstrip('/')}/{relative}"


class PathResolver:
    """Maps source-map file references to absolute paths on disk."""

    def __init__(
        self,
        protected_segments: list[str] | tuple[str, ...] = ("ai-cluso",),
        allowed_subfolder: str = "website",
        protected_roots: list[Path] | None = None,
    ) -> None:
        self.protected_segments = tuple(protected_segments)
        self.allowed_subfolder = allowed_subfolder
        self.protected_roots = [PACKAGE_ROOT] if protected_roots is None else list(protected_roots)

    def resolve(self, file_ref: str, project_path: str | None = None, cwd: str | None = None) -> str:
        if not file_ref or not file_ref.strip():
            raise PathResolutionError("Source location has no file reference")
        cleaned = clean_file_reference(file_ref)
        if is_absolute_filesystem_path(cleaned):
            resolved = cleaned
        elif project_path:
            resolved = _join(project_path, cleaned)
        elif cwd:
            log.info("No project path, resolving %s against cwd %s", cleaned, cwd)
            resolved = _join(cwd, cleaned)
        else:
            raise PathResolutionError(f"Cannot resolve relative path without a project path: {cleaned}")
        self.ensure_patchable(resolved)
        return resolved

    def needs_root(self, file_ref: str) -> bool:
        return not is_absolute_filesystem_path(clean_file_reference(file_ref))

    def ensure_patchable(self, path: str) -> None:
        normalized = path.replace("\\", "/")
        for segment in self.protected_segments:
            marker = f"/{segment}/"
            if marker in normalized and f"{marker}{self.allowed_subfolder}/" not in normalized:
                raise SelfPatchBlockedError(f"Refusing to patch application source: {path}")
        for root in self.protected_roots:
            if normalized.startswith(f"{root.as_posix().rstrip('/')}/"):
                raise SelfPatchBlockedError(f"Refusing to patch application source: {path}")
