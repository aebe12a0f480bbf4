"""Utility helpers for working with files."""

from __future__ import annotations

import hashlib
import os
from pathlib import Path
from typing import Iterator

DOCUMENT_EXTENSION = ".md"


def _raise(error: OSError) -> None:
    raise error


def iter_document_paths(directory: Path, extension: str = DOCUMENT_EXTENSION) -> Iterator[Path]:
    """Yield files with ``extension`` below ``directory`` in sorted order.

    Symlinked directories are followed, each real directory once. A missing
    directory yields nothing. Errors raised while walking an existing directory
    are propagated.
    """
    if not directory.is_dir():
        return
    visited: set[tuple[int, int]] = set()
    for root, dirnames, filenames in os.walk(directory, onerror=_raise, followlinks=True):
        info = os.stat(root)
        if (info.st_dev, info.st_ino) in visited:
            dirnames[:] = []
            continue
        visited.add((info.st_dev, info.st_ino))
        dirnames.sort()
        for name in sorted(filenames):
            if name.endswith(extension):
                yield Path(root) / name


def content_id(bucket: str, source: str, text: str) -> str:
    """Deterministic SHA256 id for a chunk; changes whenever any field changes."""
    payload = "\0".join((bucket, source, text))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
