# config.py
from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional


class BuildMode(str, Enum):
    DEV = "dev"
    PRODUCTION = "production"

    @classmethod
    def from_node_env(cls, value: Optional[str]) -> "BuildMode":
        # NODE_ENV=prod assetflow build ; unset or "dev" means development
        if not value or value == "dev":
            return cls.DEV
        return cls.PRODUCTION


@dataclass(frozen=True)
class BuildConfig:
    """
    Everything the build file needs to know, fixed at startup.

    Paths are relative to `root` unless absolute.
    """
    mode: BuildMode = BuildMode.DEV
    root: Path = field(default_factory=Path.cwd)

    src_dir: str = "src"
    public_dir: str = "public"
    cache_dir: str = ".assetflow/cache"

    host: str = "127.0.0.1"
    port: int = 3000
    livereload_port: int = 35729

    @property
    def is_dev(self) -> bool:
        return self.mode is BuildMode.DEV

    def path(self, rel: str) -> Path:
        p = Path(rel)
        return p if p.is_absolute() else self.root / p

    @property
    def public_path(self) -> Path:
        return self.path(self.public_dir)

    @property
    def cache_path(self) -> Path:
        return self.path(self.cache_dir)

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        *,
        root: str | Path = ".",
    ) -> "BuildConfig":
        """Read NODE_ENV and the ASSETFLOW_* knobs once."""
        env = os.environ if environ is None else environ

        def _int(key: str, default: int) -> int:
            raw = env.get(key)
            if raw is None or raw == "":
                return default
            try:
                return int(raw)
            except ValueError:
                raise ValueError(f"{key} must be an integer, got {raw!r}") from None

        return cls(
            mode=BuildMode.from_node_env(env.get("NODE_ENV")),
            root=Path(root).expanduser().resolve(),
            host=env.get("ASSETFLOW_HOST", "127.0.0.1"),
            port=_int("ASSETFLOW_PORT", 3000),
            livereload_port=_int("ASSETFLOW_LIVERELOAD_PORT", 35729),
        )
