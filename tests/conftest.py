from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest
from PIL import Image

from assetflow.config import BuildConfig, BuildMode
from assetflow.notify import Notifier
from assetflow.runner import TaskRunner
from assetflow.tasks import build_runner
from assetflow.ui.console import Console

VALID_SCSS = """\
$accent: #c0ffee;

.button {
  color: $accent;
  transition: opacity 0.2s;

  &:hover {
    opacity: 0.5;
  }
}
"""

SCRIPT_A = "const greet = (name) => `hello ${name}`;\n"
SCRIPT_B = "function shout(text) {\n  return text.toUpperCase();\n}\n"


class RecordingConsole(Console):
    """Console that also keeps (event, task) pairs in call order."""

    def __init__(self) -> None:
        super().__init__(debug=False)
        self.events: list[tuple[str, str]] = []

    def print_task_start(self, name: str) -> None:
        self.events.append(("start", name))
        super().print_task_start(name)

    def print_task_finished(self, name: str, duration: float) -> None:
        self.events.append(("finish", name))
        super().print_task_finished(name, duration)

    def print_task_failed(self, name: str, reason: str, duration: float | None = None) -> None:
        self.events.append(("fail", name))
        super().print_task_failed(name, reason, duration)


def _write_png(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    im = Image.new("RGB", (64, 64))
    im.putdata([((x * 4) % 256, (y * 4) % 256, 128) for y in range(64) for x in range(64)])
    im.save(path, format="PNG")


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A minimal front-end source tree."""
    src = tmp_path / "src"
    (src / "styles").mkdir(parents=True)
    (src / "js").mkdir()
    (src / "assets" / "img").mkdir(parents=True)

    (src / "styles" / "style.scss").write_text(VALID_SCSS, encoding="utf-8")
    (src / "js" / "a.js").write_text(SCRIPT_A, encoding="utf-8")
    (src / "js" / "b.js").write_text(SCRIPT_B, encoding="utf-8")
    (src / "assets" / "index.html").write_text("<!doctype html><title>x</title>\n", encoding="utf-8")
    _write_png(src / "assets" / "img" / "dot.png")
    (src / "assets" / "img" / "icons").mkdir()
    (src / "assets" / "img" / "icons" / "logo.svg").write_text("<svg xmlns='http://www.w3.org/2000/svg'/>", encoding="utf-8")
    return tmp_path


@pytest.fixture
def make_runner(project: Path) -> Callable[..., TaskRunner]:
    def _make(mode: BuildMode = BuildMode.DEV) -> TaskRunner:
        config = BuildConfig(mode=mode, root=project)
        console = RecordingConsole()
        return build_runner(config, console=console, notifier=Notifier(console))

    return _make
