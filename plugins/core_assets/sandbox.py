# plugins/core_assets/sandbox.py

import logging
import os
import posixpath
from pathlib import Path

from .contracts import AssetValidationError, SandboxViolationError

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".glb": "model/gltf-binary",
    ".json": "application/json",
    ".js": "text/javascript",
    ".html": "text/html",
    ".css": "text/css",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def content_type_for(path) -> str:
    return CONTENT_TYPES.get(os.path.splitext(str(path))[1].lower(), DEFAULT_CONTENT_TYPE)


class PathSandbox:
    """
    Resolves sandbox-relative paths and rejects anything that escapes the root.

    The check runs in two steps: a purely lexical one (no filesystem access, so
    `../../etc/passwd` is refused before anything is touched) and a resolved one
    that follows symlinks already inside the tree.
    """
    def __init__(self, root: Path):
        self.root = Path(root).resolve()

    def normalize(self, relative: str) -> str:
        """Normalize to a POSIX path relative to the root, or raise SandboxViolationError."""
        if relative is None or not str(relative).strip():
            raise AssetValidationError("No file specified")
        candidate = str(relative).replace("\\", "/")
        if candidate.startswith("/") or (len(candidate) > 1 and candidate[1] == ":"):
            raise SandboxViolationError("Invalid path")
        normalized = posixpath.normpath(candidate)
        if normalized == ".." or normalized.startswith("../"):
            logger.warning(f"Rejected path outside the asset root: {relative!r}")
            raise SandboxViolationError("Invalid path")
        return normalized

    def resolve(self, relative: str) -> Path:
        normalized = self.normalize(relative)
        target = (self.root / normalized).resolve()
        if target != self.root and not target.is_relative_to(self.root):
            logger.warning(f"Rejected path resolving outside the asset root: {relative!r}")
            raise SandboxViolationError("Invalid path")
        return target


def safe_filename(filename: str) -> str:
    """
    Reduce an uploaded file name to a plain name. Browsers send bare names,
    anything carrying a directory part is cut down to its last component.
    """
    name = posixpath.basename((filename or "").replace("\\", "/")).strip()
    if name in ("", ".", "..") or "\x00" in name:
        raise AssetValidationError(f"Invalid file name: {filename!r}")
    return name
