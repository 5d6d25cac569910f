# tasks.py
# The build file: clean, assets, img, styles, scripts, build, watch, serve
# and default. The dev/production choice is made here, once, while the
# pipelines are assembled.
from __future__ import annotations

import logging
import shutil
from typing import Optional

from .cache import FileCache
from .config import BuildConfig
from .dag import validate
from .dsl import TaskRegistry, parallel, series
from .errors import TaskExecutionError
from .model import TaskName
from .notify import Notifier
from .pipeline import (
    branch,
    concat,
    dest,
    init_sourcemaps,
    rename,
    run_pipeline,
    src,
    when,
    write_sourcemaps,
)
from .plugins.images import imagemin
from .plugins.scripts import babel, uglify
from .plugins.styles import autoprefix, clean_css, sass_compile
from .runner import TaskRunner
from .serve import LiveServer
from .ui.console import Console
from .watch import Watcher

logger = logging.getLogger(__name__)

# Source globs, relative to BuildConfig.src_dir
HTML_GLOB = "assets/*.html"
IMG_GLOB = "assets/img/**/*.*"
STYLES_ENTRY = "styles/style.scss"
SCRIPTS_GLOB = "js/*.js"

# Watched globs, relative to BuildConfig.src_dir
WATCH_STYLES = "styles/*.*"
WATCH_SCRIPTS = "js/*.js"
WATCH_ASSETS = "assets/**/*.*"

SCRIPT_BUNDLE = "script.js"
IMG_CACHE_ENTRIES = 500


def register_tasks(
    registry: TaskRegistry,
    config: BuildConfig,
    runner: TaskRunner,
    *,
    cache: Optional[FileCache] = None,
) -> TaskRegistry:
    root = config.root
    source = config.src_dir
    public = config.public_dir
    dev = config.is_dev
    cache = cache or FileCache(config.cache_path)

    styles_pipeline = [
        when(dev, init_sourcemaps()),
        sass_compile(output_style="expanded"),
        autoprefix(),
        when(not dev, branch(clean_css(), rename(suffix=".min"))),
        when(dev, write_sourcemaps()),
        dest(public, cwd=root),
    ]

    scripts_pipeline = [
        when(dev, init_sourcemaps()),
        babel(presets=("es2015",)),
        concat(SCRIPT_BUNDLE),
        when(not dev, branch(uglify(), rename(suffix=".min"))),
        when(dev, write_sourcemaps()),
        dest(public, cwd=root),
    ]

    img_pipeline = [
        imagemin(cache=cache, interlaced=True, progressive=True, quantize=True),
        dest(f"{public}/img", cwd=root),
    ]

    @registry.task(TaskName.CLEAN)
    def clean():
        """Delete the public directory."""
        target = config.public_path
        if target.exists():
            shutil.rmtree(target)

    @registry.task(TaskName.ASSETS)
    def assets():
        """Copy html pages to the public directory (changed files only)."""
        files = src(f"{source}/{HTML_GLOB}", cwd=root, since=runner.last_run(TaskName.ASSETS))
        run_pipeline(files, dest(public, cwd=root), task=TaskName.ASSETS.value)

    @registry.task(TaskName.IMG)
    def img():
        """Compress images into public/img."""
        files = src(f"{source}/{IMG_GLOB}", cwd=root)
        run_pipeline(files, *img_pipeline, task=TaskName.IMG.value)
        cache.prune("imagemin", keep=IMG_CACHE_ENTRIES)

    @registry.task(TaskName.STYLES, notify_title="Styles")
    def styles():
        """Compile style.scss (minified style.min.css in production)."""
        files = src(f"{source}/{STYLES_ENTRY}", cwd=root)
        run_pipeline(files, *styles_pipeline, task=TaskName.STYLES.value)

    @registry.task(TaskName.SCRIPTS, notify_title="Scripts")
    def scripts():
        """Transpile and concatenate scripts into script.js."""
        files = src(f"{source}/{SCRIPTS_GLOB}", cwd=root)
        run_pipeline(files, *scripts_pipeline, task=TaskName.SCRIPTS.value)

    registry.register(
        TaskName.BUILD,
        needs=series(TaskName.CLEAN, parallel(TaskName.STYLES, TaskName.SCRIPTS, TaskName.IMG, TaskName.ASSETS)),
        description="Build the project.",
    )

    @registry.task(TaskName.WATCH)
    def watch():
        """Re-run styles, scripts and assets when their sources change."""
        watcher = Watcher(root)
        watcher.on([f"{source}/{WATCH_STYLES}"], _rerun(runner, TaskName.STYLES), name="styles")
        watcher.on([f"{source}/{WATCH_SCRIPTS}"], _rerun(runner, TaskName.SCRIPTS), name="scripts")
        watcher.on([f"{source}/{WATCH_ASSETS}"], _rerun(runner, TaskName.ASSETS), name="assets")
        watcher.run(runner.stop_event)

    @registry.task(TaskName.SERVE)
    def serve():
        """Serve the public directory with live reload."""
        server = LiveServer(
            config.public_path,
            host=config.host,
            port=config.port,
            livereload_port=config.livereload_port,
        )
        runner.console.print_info(f"Serving {config.public_path} at {server.url}")
        server.serve(runner.stop_event)

    registry.register(
        TaskName.DEFAULT,
        needs=series(TaskName.BUILD, parallel(TaskName.WATCH, TaskName.SERVE)),
        description="Build, then watch and serve.",
    )

    validate(registry)
    return registry


def _rerun(runner: TaskRunner, name: TaskName):
    def callback() -> bool:
        try:
            runner.run(name)
        except TaskExecutionError as e:
            # already reported by the runner/notifier; keep watching
            logger.warning("%s failed during watch: %s", name.value, e)
            return False
        return True

    callback.__name__ = f"rerun_{name.value}"
    return callback


def build_runner(
    config: BuildConfig,
    *,
    console: Optional[Console] = None,
    notifier: Optional[Notifier] = None,
    max_workers: Optional[int] = None,
) -> TaskRunner:
    """Registry + runner with the built-in tasks registered."""
    registry = TaskRegistry()
    runner = TaskRunner(
        registry,
        console=console,
        notifier=notifier if notifier is not None else Notifier(console),
        max_workers=max_workers,
    )
    register_tasks(registry, config, runner)
    return runner
