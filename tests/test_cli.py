from __future__ import annotations

from pathlib import Path

from click.testing import CliRunner

from assetflow.cli import cli


def test_tasks_lists_composition(project: Path) -> None:
    result = CliRunner().invoke(cli, ["--tasks", "--cwd", str(project)])

    assert result.exit_code == 0
    assert "build  <- series(clean, parallel(styles, scripts, img, assets))" in result.output
    assert "default  <- series(build, parallel(watch, serve))" in result.output
    assert "Delete the public directory." in result.output


def test_unknown_task_exits_1(project: Path) -> None:
    result = CliRunner().invoke(cli, ["deploy", "--cwd", str(project)])

    assert result.exit_code == 1
    assert "Unknown task" in result.output
    assert "Task 'deploy' is not registered." in result.output


def test_production_build(project: Path) -> None:
    result = CliRunner().invoke(cli, ["build", "--cwd", str(project)], env={"NODE_ENV": "prod"})

    assert result.exit_code == 0, result.output
    assert "Mode: production" in result.output
    assert "Finished 'build'" in result.output
    assert (project / "public/style.min.css").is_file()
    assert (project / "public/script.min.js").is_file()


def test_failing_build_exits_1(project: Path) -> None:
    (project / "src/styles/style.scss").write_text("a { color: red", encoding="utf-8")

    result = CliRunner().invoke(cli, ["build", "--cwd", str(project)], env={"NODE_ENV": "dev"})

    assert result.exit_code == 1
    assert "Build failed" in result.output
    assert "Task 'styles' failed" in result.output


def test_bad_port_is_a_configuration_error(project: Path) -> None:
    result = CliRunner().invoke(
        cli, ["build", "--cwd", str(project)], env={"ASSETFLOW_PORT": "eighty"}
    )

    assert result.exit_code == 1
    assert "Invalid configuration" in result.output
    assert not (project / "public").exists()
