# pipeline.py
from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from .errors import StepFailure

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------
# Core idea
# ---------------------------------------------------------------------
# A pipeline is plain function composition over a list of files:
#
#   files = src("src/js/*.js", cwd=root)
#   run_pipeline(files, babel(), concat("script.js"), dest("public", cwd=root))
#
# Every step takes the list and returns a new list. run_pipeline() runs
# the steps in order and turns any exception into a StepFailure that
# names the step.
# ---------------------------------------------------------------------

Step = Callable[[List["SourceFile"]], List["SourceFile"]]

GLOB_MAGIC = set("*?[{")


@dataclass
class SourceFile:
    """
    One file in flight.

    `relative` is the path below `base`; dest() writes it below the target
    directory. `source_map` is None when maps are not tracked; a dict
    (possibly empty) once init_sourcemaps() ran.
    """
    base: Path
    relative: Path
    contents: bytes
    source_map: Optional[dict] = None
    mtime: Optional[float] = None

    @property
    def path(self) -> Path:
        return self.base / self.relative

    @property
    def text(self) -> str:
        return self.contents.decode("utf-8")

    def with_text(self, text: str) -> "SourceFile":
        return replace(self, contents=text.encode("utf-8"))

    def copy(self) -> "SourceFile":
        return replace(self, source_map=copy.deepcopy(self.source_map))


def named(name: str):
    """Label a step function so failures can say which step broke."""
    def deco(fn: Step) -> Step:
        fn.step_name = name
        return fn
    return deco


def step_name(step: Step) -> str:
    return getattr(step, "step_name", None) or getattr(step, "__name__", repr(step))


def run_pipeline(files: Sequence[SourceFile], *steps: Step, task: Optional[str] = None) -> List[SourceFile]:
    current = list(files)
    for step in steps:
        name = step_name(step)
        try:
            current = list(step(current))
        except StepFailure as e:
            if e.task is None:
                e.task = task
            raise
        except Exception as e:
            raise StepFailure(task=task, step=name, message=str(e) or type(e).__name__) from e
        logger.debug("[%s] %s -> %d file(s)", task or "-", name, len(current))
    return current


# ---------------------------------------------------------------------
# Sources and destinations
# ---------------------------------------------------------------------

def glob_base(pattern: str) -> str:
    """Leading path segments of `pattern` that contain no glob magic."""
    parts = pattern.replace("\\", "/").split("/")
    static: List[str] = []
    for part in parts:
        if any(ch in GLOB_MAGIC for ch in part):
            break
        static.append(part)
    else:
        # no magic at all: the pattern names a file, its parent is the base
        static = static[:-1]
    return "/".join(static)


def src(pattern: str, *, cwd: str | Path = ".", since: Optional[float] = None) -> List[SourceFile]:
    """
    Read every file matching `pattern` (relative to cwd, `**` allowed).

    With `since`, files not modified after that timestamp are skipped.
    """
    root = Path(cwd)
    base = root / glob_base(pattern)

    files: List[SourceFile] = []
    for p in sorted(root.glob(pattern)):
        if not p.is_file():
            continue
        mtime = p.stat().st_mtime
        if since is not None and mtime <= since:
            continue
        files.append(
            SourceFile(
                base=base,
                relative=p.relative_to(base),
                contents=p.read_bytes(),
                mtime=mtime,
            )
        )
    logger.debug("src(%s) matched %d file(s)", pattern, len(files))
    return files


def dest(directory: str | Path, *, cwd: str | Path = ".") -> Step:
    out_dir = Path(cwd) / directory

    @named("dest")
    def step(files: List[SourceFile]) -> List[SourceFile]:
        written: List[SourceFile] = []
        for f in files:
            target = out_dir / f.relative
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(f.contents)
            written.append(replace(f, base=out_dir))
        return written

    return step


# ---------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------

def combine(*steps: Step) -> Step:
    @named("+".join(step_name(s) for s in steps) or "combine")
    def step(files: List[SourceFile]) -> List[SourceFile]:
        return run_pipeline(files, *steps)

    return step


def _identity(files: List[SourceFile]) -> List[SourceFile]:
    return files


def when(condition: bool, step: Step, otherwise: Optional[Step] = None) -> Step:
    """Pick a step once, at construction time."""
    if condition:
        return step
    return otherwise or named("noop")(_identity)


def branch(*steps: Step) -> Step:
    """Pass files through unchanged and add what `steps` make of copies."""
    inner = combine(*steps)

    @named(f"branch({step_name(inner)})")
    def step(files: List[SourceFile]) -> List[SourceFile]:
        derived = inner([f.copy() for f in files])
        return list(files) + list(derived)

    return step


# ---------------------------------------------------------------------
# Naming and bundling
# ---------------------------------------------------------------------

def rename(
    *,
    suffix: str = "",
    prefix: str = "",
    extname: Optional[str] = None,
    basename: Optional[str] = None,
) -> Step:
    """rename(suffix=".min"): style.css -> style.min.css"""

    @named("rename")
    def step(files: List[SourceFile]) -> List[SourceFile]:
        out: List[SourceFile] = []
        for f in files:
            stem = basename if basename is not None else f.relative.stem
            ext = extname if extname is not None else f.relative.suffix
            new_rel = f.relative.with_name(f"{prefix}{stem}{suffix}{ext}")
            out.append(replace(f, relative=new_rel))
        return out

    return step


def concat(filename: str, *, newline: str = "\n") -> Step:
    """
    Join all files into one. Tracked source maps are combined into an
    index map whose sections start at the first line of each part.
    """

    @named("concat")
    def step(files: List[SourceFile]) -> List[SourceFile]:
        if not files:
            return []

        parts = [f.text for f in files]
        tracked = any(f.source_map is not None for f in files)

        source_map = None
        if tracked:
            sections = []
            line = 0
            for f, text in zip(files, parts):
                if f.source_map and f.source_map.get("mappings"):
                    sections.append({"offset": {"line": line, "column": 0}, "map": f.source_map})
                line += text.count("\n") + newline.count("\n")
            source_map = {"version": 3, "file": filename, "sections": sections}

        first = files[0]
        return [
            SourceFile(
                base=first.base,
                relative=Path(filename),
                contents=newline.join(parts).encode("utf-8"),
                source_map=source_map,
                mtime=max((f.mtime or 0.0) for f in files) or None,
            )
        ]

    return step


# ---------------------------------------------------------------------
# Source maps
# ---------------------------------------------------------------------

def init_sourcemaps() -> Step:
    @named("sourcemaps.init")
    def step(files: List[SourceFile]) -> List[SourceFile]:
        return [f if f.source_map is not None else replace(f, source_map={}) for f in files]

    return step


def _map_comment(relative: Path, map_name: str) -> str:
    if relative.suffix == ".css":
        return f"\n/*# sourceMappingURL={map_name} */\n"
    return f"\n//# sourceMappingURL={map_name}\n"


def write_sourcemaps() -> Step:
    """Emit `<name>.map` beside every tracked file and link it from the file."""

    @named("sourcemaps.write")
    def step(files: List[SourceFile]) -> List[SourceFile]:
        out: List[SourceFile] = []
        for f in files:
            if f.source_map is None:
                out.append(f)
                continue

            smap = dict(f.source_map)
            smap.setdefault("version", 3)
            smap["file"] = f.relative.name
            if "sections" not in smap:
                smap.setdefault("sources", [f.relative.name])
                smap.setdefault("names", [])
                smap.setdefault("mappings", "")

            map_name = f.relative.name + ".map"
            text = f.text.rstrip("\n") + _map_comment(f.relative, map_name)
            out.append(replace(f, contents=text.encode("utf-8"), source_map=smap))
            out.append(
                SourceFile(
                    base=f.base,
                    relative=f.relative.with_name(map_name),
                    contents=json.dumps(smap, ensure_ascii=False).encode("utf-8"),
                    mtime=f.mtime,
                )
            )
        return out

    return step
