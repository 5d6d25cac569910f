# cache.py
# Transform-result cache, the gulp-cache role: an output is reused when the
# same bytes went through the same transform with the same options.
#
#   <root>/<namespace>/<key>.bin            transformed bytes
#   <root>/<namespace>/<key>.manifest.json  label, options, size, time
from __future__ import annotations

import hashlib
import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = ".assetflow/cache"
KEY_VERSION = 1


@dataclass(frozen=True)
class CacheHit:
    hit: bool
    key: str
    reason: str


def compute_cache_key(namespace: str, contents: bytes, options: Optional[Dict] = None) -> str:
    """sha256 over (format version, namespace, options, sha256 of contents)."""
    payload = json.dumps(
        [KEY_VERSION, namespace, options or {}, hashlib.sha256(contents).hexdigest()],
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class FileCache:
    """Content-addressed store of transform outputs, one directory per namespace."""

    def __init__(self, root: str | Path = DEFAULT_CACHE_DIR):
        self.root = Path(root).resolve()

    def _namespace_dir(self, namespace: str) -> Path:
        path = self.root / namespace
        path.mkdir(parents=True, exist_ok=True)
        return path

    def artifact_path(self, namespace: str, key: str) -> Path:
        return self._namespace_dir(namespace) / f"{key}.bin"

    def manifest_path(self, namespace: str, key: str) -> Path:
        return self._namespace_dir(namespace) / f"{key}.manifest.json"

    def lookup(self, namespace: str, key: str) -> CacheHit:
        hit = self.artifact_path(namespace, key).is_file()
        return CacheHit(hit=hit, key=key, reason="cache hit" if hit else "cache miss")

    def get(self, namespace: str, key: str) -> Optional[bytes]:
        path = self.artifact_path(namespace, key)
        return path.read_bytes() if path.is_file() else None

    def put(self, namespace: str, key: str, data: bytes, *, manifest: Optional[Dict] = None) -> Path:
        """Store `data` under `key`. Parallel writers of the same key are harmless."""
        artifact = self.artifact_path(namespace, key)
        partial = artifact.with_name(f"{artifact.name}.{time.monotonic_ns()}.part")
        partial.write_bytes(data)
        partial.replace(artifact)

        info = {"namespace": namespace, "key": key, "size": len(data), "stored_at": int(time.time())}
        info.update(manifest or {})
        self.manifest_path(namespace, key).write_text(json.dumps(info, sort_keys=True, indent=2), encoding="utf-8")
        return artifact

    def cached(
        self,
        namespace: str,
        contents: bytes,
        transform: Callable[[bytes], bytes],
        *,
        options: Optional[Dict] = None,
        label: str = "",
    ) -> bytes:
        """Return transform(contents), from the cache when possible."""
        key = compute_cache_key(namespace, contents, options)
        data = self.get(namespace, key)
        if data is not None:
            logger.debug("%s %s: cache hit (%s...)", namespace, label, key[:12])
            return data

        data = transform(contents)
        self.put(namespace, key, data, manifest={"label": label, "options": options or {}})
        logger.debug("%s %s: cache saved (%s...)", namespace, label, key[:12])
        return data

    def prune(self, namespace: str, keep: int = 100) -> int:
        """Drop all but the `keep` most recently stored entries. Returns the number dropped."""
        directory = self._namespace_dir(namespace)
        entries = sorted(directory.glob("*.bin"), key=lambda p: p.stat().st_mtime, reverse=True)
        stale = entries[keep:]
        for artifact in stale:
            artifact.unlink(missing_ok=True)
            directory.joinpath(f"{artifact.stem}.manifest.json").unlink(missing_ok=True)
        if stale:
            logger.info("%s: pruned %d cache entries", namespace, len(stale))
        return len(stale)
