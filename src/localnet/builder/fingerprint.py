"""
Source fingerprinting for build freshness checks.
"""

import hashlib
import os
from pathlib import Path
from typing import Iterable, Iterator

# Build outputs and tool caches never affect the compiled result
SKIPPED_DIRS = frozenset({"target", ".git", "__pycache__", "node_modules", "artifacts", ".localnet"})

_CHUNK = 1 << 16


def _iter_files(root: Path) -> Iterator[Path]:
    if root.is_file():
        yield root
        return
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in SKIPPED_DIRS)
        for filename in sorted(filenames):
            yield Path(dirpath) / filename


def file_sha256(path: Path) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK), b""):
            digest.update(chunk)
    return digest.hexdigest()


def fingerprint_sources(inputs: Iterable[Path], base: Path, salt: Iterable[str] = ()) -> str:
    """
    Digest a set of files and directories.

    Paths are hashed relative to `base` together with their contents, so
    renames change the fingerprint. Missing inputs are recorded as missing
    rather than raising, letting a later build report the real error.

    Args:
        inputs: Files or directories to include
        base: Directory paths are made relative to
        salt: Extra strings (e.g. expanded build commands) mixed into the digest
    """
    digest = hashlib.sha256()
    for item in salt:
        digest.update(b"salt\0" + item.encode("utf-8") + b"\0")

    for root in sorted(Path(p) for p in inputs):
        if not root.exists():
            digest.update(b"missing\0" + str(root).encode("utf-8") + b"\0")
            continue
        for path in _iter_files(root):
            try:
                rel = path.relative_to(base)
            except ValueError:
                rel = path
            digest.update(b"file\0" + rel.as_posix().encode("utf-8") + b"\0")
            with open(path, "rb") as f:
                for chunk in iter(lambda: f.read(_CHUNK), b""):
                    digest.update(chunk)
    return digest.hexdigest()
