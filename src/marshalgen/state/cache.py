"""
Generation cache.

Rendered marshaller factories are written to ``<cache_dir>/<ClassName>.java``
next to a ``manifest.json`` recording a digest of each unit, so callers can
skip rebuilding when the generated source did not change.
"""

import hashlib
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Any

import orjson

logger = logging.getLogger(__name__)

MANIFEST_FILE = "manifest.json"


def _digest(source: str) -> str:
    return hashlib.sha256(source.encode("utf-8")).hexdigest()


def _write_atomic(path: Path, data: bytes) -> None:
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class GenerationCache:
    """Cache directory holding generated compilation units."""

    def __init__(self, cache_dir: Path | str):
        self.cache_dir = Path(cache_dir)

    @property
    def manifest_file(self) -> Path:
        return self.cache_dir / MANIFEST_FILE

    def cache_file(self, class_name: str) -> Path:
        """Deterministic location of the unit generated for ``class_name``."""
        return self.cache_dir / f"{class_name}.java"

    # =========================================================================
    # Manifest
    # =========================================================================

    def load_manifest(self) -> dict[str, Any]:
        if not self.manifest_file.exists():
            return {}
        with open(self.manifest_file, "rb") as f:
            return orjson.loads(f.read())

    def _save_manifest(self, manifest: dict[str, Any]) -> None:
        _write_atomic(
            self.manifest_file,
            orjson.dumps(manifest, option=orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS),
        )

    # =========================================================================
    # Units
    # =========================================================================

    def is_current(self, class_name: str, source: str) -> bool:
        """Whether the cached unit for ``class_name`` already equals ``source``."""
        entry = self.load_manifest().get(class_name)
        if entry is None or not self.cache_file(class_name).exists():
            return False
        return entry.get("sha256") == _digest(source)

    def write(self, class_name: str, source: str) -> Path:
        """
        Persist a generated unit.

        An unchanged unit is left untouched.

        Returns:
            Path to the cached source file
        """
        path = self.cache_file(class_name)
        if self.is_current(class_name, source):
            logger.debug(f"Cached {path.name} is up to date")
            return path

        self.cache_dir.mkdir(parents=True, exist_ok=True)
        data = source.encode("utf-8")
        _write_atomic(path, data)

        manifest = self.load_manifest()
        manifest[class_name] = {
            "sha256": _digest(source),
            "size": len(data),
            "written_at": time.time(),
        }
        self._save_manifest(manifest)
        logger.info(f"Wrote {path}")
        return path

    def read(self, class_name: str) -> str | None:
        path = self.cache_file(class_name)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")
