"""Adapter: LocalFileSystem implements FileSystemPort.

Saved runs are written atomically: the JSON goes to a temporary file next
to the target and is renamed over it, so an interrupted save never leaves
a truncated result file behind.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger("microbench.adapters")


class LocalFileSystem:
    """Concrete FileSystemPort backed by the local filesystem.

    Relative paths are resolved against *base_dir*; absolute paths are used
    as given.
    """

    def __init__(self, base_dir: str) -> None:
        self._base = Path(base_dir).resolve()

    def _resolve(self, path: str) -> Path:
        return self._base / path

    def read_file(self, path: str) -> str:
        return self._resolve(path).read_text(encoding="utf-8")

    def write_file(self, path: str, content: str) -> None:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as tmp:
                tmp.write(content)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("Wrote %d characters to %s", len(content), target)

    def file_exists(self, path: str) -> bool:
        return self._resolve(path).is_file()
