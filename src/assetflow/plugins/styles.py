# plugins/styles.py
from __future__ import annotations

import json
import re
from dataclasses import replace
from typing import Dict, List, Sequence, Tuple

import rcssmin
import sass

from ..pipeline import SourceFile, Step, named


# ---------------------------------------------------------------------
# Sass
# ---------------------------------------------------------------------

SASS_SUFFIXES = {".scss", ".sass"}


def _compile_one(f: SourceFile, output_style: str, include_paths: List[str]) -> SourceFile:
    css_rel = f.relative.with_suffix(".css")
    indented = f.relative.suffix == ".sass"

    if f.source_map is None:
        css = sass.compile(
            string=f.text,
            output_style=output_style,
            include_paths=[str(f.path.parent), *include_paths],
            indented=indented,
        )
        return replace(f, relative=css_rel, contents=css.encode("utf-8"))

    # libsass only produces maps when compiling from a file on disk
    css_path = f.base / css_rel
    css, smap = sass.compile(
        filename=str(f.path),
        output_style=output_style,
        include_paths=include_paths,
        source_map_filename=str(css_path) + ".map",
        output_filename_hint=str(css_path),
        source_map_contents=True,
        omit_source_map_url=True,
    )
    return replace(f, relative=css_rel, contents=css.encode("utf-8"), source_map=json.loads(smap))


def sass_compile(*, output_style: str = "expanded", include_paths: Sequence[str] = ()) -> Step:
    """Compile .scss/.sass to .css. Partials (_name.scss) are not emitted."""
    includes = [str(p) for p in include_paths]

    @named("sass")
    def step(files: List[SourceFile]) -> List[SourceFile]:
        out: List[SourceFile] = []
        for f in files:
            if f.relative.suffix not in SASS_SUFFIXES:
                out.append(f)
                continue
            if f.relative.name.startswith("_"):
                continue
            out.append(_compile_one(f, output_style, includes))
        return out

    return step


# ---------------------------------------------------------------------
# Vendor prefixes
# ---------------------------------------------------------------------

# Properties that still need vendor prefixes when targeting the last 15
# versions of the major browsers (and anything above 1% usage).
LEGACY_PREFIXES: Dict[str, Tuple[str, ...]] = {
    "animation": ("-webkit-",),
    "appearance": ("-webkit-", "-moz-"),
    "backdrop-filter": ("-webkit-",),
    "backface-visibility": ("-webkit-",),
    "box-decoration-break": ("-webkit-",),
    "clip-path": ("-webkit-",),
    "column-count": ("-webkit-", "-moz-"),
    "column-gap": ("-webkit-", "-moz-"),
    "columns": ("-webkit-", "-moz-"),
    "filter": ("-webkit-",),
    "hyphens": ("-webkit-", "-ms-"),
    "mask": ("-webkit-",),
    "mask-image": ("-webkit-",),
    "perspective": ("-webkit-",),
    "tab-size": ("-moz-", "-o-"),
    "text-size-adjust": ("-webkit-", "-moz-", "-ms-"),
    "transform": ("-webkit-", "-ms-"),
    "transform-origin": ("-webkit-", "-ms-"),
    "transform-style": ("-webkit-",),
    "transition": ("-webkit-", "-o-"),
    "user-select": ("-webkit-", "-moz-", "-ms-"),
}

# `prop: value;` not preceded by a dash (already prefixed / custom property).
# Quoted strings and (...) groups in the value may contain `;`.
DECLARATION = re.compile(
    r"(?<![-\w])(?P<prop>[a-z][a-z-]*)\s*:\s*"
    r"(?P<value>(?:\"[^\"]*\"|'[^']*'|\([^)]*\)|[^;{}\"'(])+?)\s*;"
)


def prefix_css(css: str, table: Dict[str, Tuple[str, ...]] = LEGACY_PREFIXES) -> str:
    """
    Add prefixed copies of declarations listed in `table`.

    Copies go on the same line, in front of the original declaration, so
    line numbers (and the source map lines) do not move.
    """
    def sub(m: re.Match) -> str:
        prop = m.group("prop")
        prefixes = table.get(prop)
        if not prefixes:
            return m.group(0)
        value = m.group("value")
        extra = "".join(f"{p}{prop}: {value}; " for p in prefixes)
        return extra + m.group(0)

    return DECLARATION.sub(sub, css)


def autoprefix(table: Dict[str, Tuple[str, ...]] = LEGACY_PREFIXES) -> Step:
    @named("autoprefixer")
    def step(files: List[SourceFile]) -> List[SourceFile]:
        return [f.with_text(prefix_css(f.text, table)) if f.relative.suffix == ".css" else f for f in files]

    return step


# ---------------------------------------------------------------------
# Minification
# ---------------------------------------------------------------------

def clean_css(*, keep_bang_comments: bool = False) -> Step:
    @named("clean-css")
    def step(files: List[SourceFile]) -> List[SourceFile]:
        return [
            f.with_text(rcssmin.cssmin(f.text, keep_bang_comments=keep_bang_comments))
            if f.relative.suffix == ".css" else f
            for f in files
        ]

    return step
