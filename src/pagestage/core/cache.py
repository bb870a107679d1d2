"""File-based build cache with mtime invalidation.

Cache structure:
    .cache/
    └── meta/
        └── blog/
            └── post.md.json     # Source mtime, options fingerprint, dependency mtimes

A page is rebuilt when its source mtime, the mtime of any template it
depends on, or its render options change.
"""

import hashlib
import json
import shutil
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypedDict


class CachedBuildMeta(TypedDict):
    """Cached build metadata structure."""

    source_mtime: float
    fingerprint: str
    dependencies: dict[str, float]


@dataclass
class CacheEntry:
    """Result of cache lookup."""

    meta: CachedBuildMeta

    def is_fresh(self, source_mtime: float, fingerprint: str) -> bool:
        """Check the entry against the current source and its dependencies."""
        if self.meta["source_mtime"] != source_mtime:
            return False
        if self.meta["fingerprint"] != fingerprint:
            return False
        for dependency, mtime in self.meta["dependencies"].items():
            path = Path(dependency)
            if not path.exists() or path.stat().st_mtime != mtime:
                return False
        return True


def compute_fingerprint(loaders: list[tuple[str, Mapping[str, Any]]]) -> str:
    """Compute a hash of a loader pipeline and its options.

    Args:
        loaders: (name, options) pairs in pipeline order

    Returns:
        SHA-256 hash of the pipeline
    """
    content = json.dumps([[name, dict(options)] for name, options in loaders], sort_keys=True)
    return hashlib.sha256(content.encode()).hexdigest()


class BuildCache:
    """File-based cache of per-page build metadata.

    Entries are keyed by the source path relative to the project root.
    """

    _GITIGNORE_CONTENT = "# Ignore everything in this directory\n*\n"

    def __init__(self, cache_dir: Path) -> None:
        """Initialize cache with directory path.

        Args:
            cache_dir: Root directory for cache files (e.g., .cache/)
        """
        self._cache_dir = cache_dir
        self._meta_dir = cache_dir / "meta"

    @property
    def cache_dir(self) -> Path:
        """Root cache directory."""
        return self._cache_dir

    def _ensure_cache_dir(self) -> None:
        """Create cache directory with .gitignore if it doesn't exist."""
        if not self._cache_dir.exists():
            self._cache_dir.mkdir(parents=True, exist_ok=True)
            gitignore_path = self._cache_dir / ".gitignore"
            gitignore_path.write_text(self._GITIGNORE_CONTENT, encoding="utf-8")

    def get(self, key: str) -> CacheEntry | None:
        """Retrieve cached entry.

        Args:
            key: Source path relative to the project root (e.g., "src/pages/about.md")

        Returns:
            CacheEntry if present and readable, None otherwise
        """
        meta_path = self._meta_path(key)
        if not meta_path.exists():
            return None

        meta = self._read_meta(meta_path)
        if meta is None:
            return None

        return CacheEntry(meta=meta)

    def set(
        self,
        key: str,
        source_mtime: float,
        fingerprint: str,
        dependencies: dict[str, float],
    ) -> None:
        """Store entry in cache.

        Args:
            key: Source path relative to the project root
            source_mtime: Source file mtime for invalidation
            fingerprint: Loader pipeline fingerprint
            dependencies: Dependency file paths mapped to their mtimes
        """
        self._ensure_cache_dir()

        meta_path = self._meta_path(key)
        meta_path.parent.mkdir(parents=True, exist_ok=True)

        meta: CachedBuildMeta = {
            "source_mtime": source_mtime,
            "fingerprint": fingerprint,
            "dependencies": dependencies,
        }
        meta_path.write_text(json.dumps(meta), encoding="utf-8")

    def invalidate(self, key: str) -> None:
        """Remove entry from cache.

        Args:
            key: Source path to invalidate
        """
        meta_path = self._meta_path(key)
        if meta_path.exists():
            meta_path.unlink()

    def clear(self) -> None:
        """Remove all cached entries."""
        if self._meta_dir.exists():
            shutil.rmtree(self._meta_dir)

    def _meta_path(self, key: str) -> Path:
        return self._meta_dir / f"{key}.json"

    def _read_meta(self, meta_path: Path) -> CachedBuildMeta | None:
        """Read and validate metadata file.

        Args:
            meta_path: Path to metadata JSON file

        Returns:
            CachedBuildMeta if valid, None otherwise
        """
        try:
            data = json.loads(meta_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return None

        if not isinstance(data, dict):
            return None
        if "source_mtime" not in data:
            return None
        if not isinstance(data.get("dependencies"), dict):
            return None

        return CachedBuildMeta(
            source_mtime=data["source_mtime"],
            fingerprint=str(data.get("fingerprint", "")),
            dependencies=data["dependencies"],
        )
