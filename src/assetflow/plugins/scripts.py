# plugins/scripts.py
from __future__ import annotations

from dataclasses import replace
from typing import List, Sequence

import dukpy
import rjsmin

from ..pipeline import SourceFile, Step, named


def babel(*, presets: Sequence[str] = ("es2015",)) -> Step:
    """
    Transpile each .js file to ES5 with the Babel build bundled in dukpy.

    Tracked files get Babel's source map.
    """
    preset_list = list(presets)

    @named("babel")
    def step(files: List[SourceFile]) -> List[SourceFile]:
        out: List[SourceFile] = []
        for f in files:
            if f.relative.suffix != ".js":
                out.append(f)
                continue

            tracked = f.source_map is not None
            result = dukpy.babel_compile(
                f.text,
                presets=preset_list,
                filename=f.relative.as_posix(),
                sourceMaps=tracked,
            )
            smap = result.get("map") if tracked else None
            out.append(
                replace(
                    f,
                    contents=result["code"].encode("utf-8"),
                    source_map=dict(smap) if smap else f.source_map,
                )
            )
        return out

    return step


def uglify(*, keep_bang_comments: bool = False) -> Step:
    @named("uglify")
    def step(files: List[SourceFile]) -> List[SourceFile]:
        return [
            f.with_text(rjsmin.jsmin(f.text, keep_bang_comments=keep_bang_comments))
            if f.relative.suffix == ".js" else f
            for f in files
        ]

    return step
