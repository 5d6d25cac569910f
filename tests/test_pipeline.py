from __future__ import annotations

import json
import os
import time
from pathlib import Path

import pytest

from assetflow.errors import StepFailure
from assetflow.pipeline import (
    SourceFile,
    branch,
    combine,
    concat,
    dest,
    glob_base,
    init_sourcemaps,
    named,
    rename,
    run_pipeline,
    src,
    when,
    write_sourcemaps,
)


def _file(name: str, text: str, base: Path = Path("/virtual")) -> SourceFile:
    return SourceFile(base=base, relative=Path(name), contents=text.encode("utf-8"))


@pytest.mark.parametrize(
    ("pattern", "expected"),
    [
        ("src/assets/img/**/*.*", "src/assets/img"),
        ("src/js/*.js", "src/js"),
        ("src/styles/style.scss", "src/styles"),
        ("*.html", ""),
    ],
)
def test_glob_base(pattern: str, expected: str) -> None:
    assert glob_base(pattern) == expected


def test_src_keeps_paths_relative_to_glob_base(project: Path) -> None:
    files = src("src/assets/img/**/*.*", cwd=project)

    rels = sorted(f.relative.as_posix() for f in files)
    assert rels == ["dot.png", "icons/logo.svg"]
    assert all(f.base == project / "src/assets/img" for f in files)


def test_src_since_skips_unchanged_files(project: Path) -> None:
    html = project / "src/assets/index.html"
    old = time.time() - 100
    os.utime(html, (old, old))

    assert src("src/assets/*.html", cwd=project, since=old + 10) == []
    assert len(src("src/assets/*.html", cwd=project, since=old - 10)) == 1


def test_dest_writes_nested_files(tmp_path: Path) -> None:
    files = [_file("a.txt", "a"), _file("deep/b.txt", "b")]

    written = run_pipeline(files, dest("public/img", cwd=tmp_path))

    assert (tmp_path / "public/img/a.txt").read_text() == "a"
    assert (tmp_path / "public/img/deep/b.txt").read_text() == "b"
    assert all(f.base == tmp_path / "public/img" for f in written)


def test_rename_suffix() -> None:
    out = run_pipeline([_file("css/style.css", "x")], rename(suffix=".min"))
    assert out[0].relative == Path("css/style.min.css")


def test_rename_basename_and_extname() -> None:
    out = run_pipeline([_file("style.scss", "x")], rename(basename="main", extname=".css"))
    assert out[0].relative == Path("main.css")


def test_concat_joins_in_order() -> None:
    out = run_pipeline([_file("a.js", "var a;"), _file("b.js", "var b;")], concat("script.js"))

    assert len(out) == 1
    assert out[0].relative == Path("script.js")
    assert out[0].text == "var a;\nvar b;"
    assert out[0].source_map is None


def test_concat_of_nothing_is_nothing() -> None:
    assert run_pipeline([], concat("script.js")) == []


def test_concat_builds_index_map_with_line_offsets() -> None:
    a = _file("a.js", "line1\nline2\n")
    a.source_map = {"version": 3, "sources": ["a.js"], "mappings": "AAAA"}
    b = _file("b.js", "other")
    b.source_map = {"version": 3, "sources": ["b.js"], "mappings": "AAAA"}

    (out,) = run_pipeline([a, b], concat("script.js"))

    sections = out.source_map["sections"]
    assert [s["offset"]["line"] for s in sections] == [0, 3]
    assert out.text.split("\n")[3] == "other"


def test_when_is_decided_at_construction() -> None:
    upper = named("upper")(lambda files: [f.with_text(f.text.upper()) for f in files])

    assert run_pipeline([_file("a.txt", "a")], when(True, upper))[0].text == "A"
    assert run_pipeline([_file("a.txt", "a")], when(False, upper))[0].text == "a"


def test_branch_keeps_originals_and_adds_derived() -> None:
    upper = named("upper")(lambda files: [f.with_text(f.text.upper()) for f in files])

    out = run_pipeline([_file("style.css", "a{}")], branch(upper, rename(suffix=".min")))

    assert [(f.relative.name, f.text) for f in out] == [("style.css", "a{}"), ("style.min.css", "A{}")]


def test_write_sourcemaps_emits_map_files_and_links() -> None:
    css = _file("style.css", "a{color:red}\n")
    js = _file("script.js", "var a;\n")
    plain = _file("index.html", "<p>")

    tracked = run_pipeline([css, js], init_sourcemaps())
    out = run_pipeline(tracked + [plain], write_sourcemaps())

    names = [f.relative.name for f in out]
    assert names == ["style.css", "style.css.map", "script.js", "script.js.map", "index.html"]
    assert out[0].text.endswith("/*# sourceMappingURL=style.css.map */\n")
    assert out[2].text.endswith("//# sourceMappingURL=script.js.map\n")

    smap = json.loads(out[1].contents)
    assert smap["version"] == 3
    assert smap["file"] == "style.css"


def test_step_exceptions_become_step_failures() -> None:
    @named("explode")
    def explode(files):
        raise ValueError("bad input")

    with pytest.raises(StepFailure) as exc:
        run_pipeline([_file("a.txt", "a")], explode, task="styles")

    assert exc.value.task == "styles"
    assert exc.value.step == "explode"
    assert exc.value.message == "bad input"
    assert isinstance(exc.value.__cause__, ValueError)


def test_nested_failure_names_the_inner_step() -> None:
    @named("inner")
    def inner(files):
        raise RuntimeError("nope")

    with pytest.raises(StepFailure) as exc:
        run_pipeline([_file("a.txt", "a")], combine(rename(suffix=".x"), inner), task="scripts")

    assert exc.value.step == "inner"
    assert exc.value.task == "scripts"
