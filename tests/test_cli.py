"""Tests for the command line interface."""

import json
import os

from click.testing import CliRunner

from editorbridge.backend.runtime import BridgeRuntime
from editorbridge.cli.main import main
from editorbridge.cli.util import (
    INSTANCE_FLAG,
    get_pid_file,
    is_initialized,
    is_running,
    load_config,
    process_alive,
    read_pid,
)


def test_init_creates_instance(tmp_path):
    instance = tmp_path / "instance"
    result = CliRunner().invoke(main, ["init", str(instance)])

    assert result.exit_code == 0, result.output
    assert is_initialized(instance)
    assert (instance / "logs").is_dir()
    flag = json.loads((instance / INSTANCE_FLAG).read_text())
    assert flag["instance_path"] == str(instance.resolve())


def test_default_config_builds_runtime(tmp_path):
    CliRunner().invoke(main, ["init", str(tmp_path / "instance")])
    config = load_config(tmp_path / "instance")

    assert config["server"] == {"host": "127.0.0.1", "port": 18890}

    runtime = BridgeRuntime(config)
    assert set(runtime.servers) == {"rust", "go"}
    assert runtime.lsp_manager.host == "127.0.0.1"
    assert runtime.terminal_manager.shell is None
    assert (runtime.terminal_manager.rows, runtime.terminal_manager.cols) == (24, 80)


def test_init_twice_aborts(tmp_path):
    runner = CliRunner()
    runner.invoke(main, ["init", str(tmp_path)])
    result = runner.invoke(main, ["init", str(tmp_path)])

    assert result.exit_code != 0
    assert "Already initialized" in result.output


def test_init_refuses_non_empty_directory(tmp_path):
    (tmp_path / "something.txt").write_text("")
    result = CliRunner().invoke(main, ["init", str(tmp_path)])

    assert result.exit_code != 0
    assert not (tmp_path / INSTANCE_FLAG).exists()


def test_start_requires_init(tmp_path):
    result = CliRunner().invoke(main, ["start", str(tmp_path)])
    assert result.exit_code != 0
    assert "Not initialized" in result.output


def test_stop_when_not_running(tmp_path):
    runner = CliRunner()
    runner.invoke(main, ["init", str(tmp_path)])
    result = runner.invoke(main, ["stop", str(tmp_path)])

    assert result.exit_code == 0
    assert "not running" in result.output


def test_stop_removes_stale_pid_file(tmp_path):
    runner = CliRunner()
    runner.invoke(main, ["init", str(tmp_path)])

    # A pid that cannot belong to a live process
    get_pid_file(tmp_path).write_text(str(2 ** 22 + os.getpid()))
    assert is_running(tmp_path)

    result = runner.invoke(main, ["stop", str(tmp_path)])
    assert result.exit_code == 0
    assert "Stale PID file" in result.output
    assert not is_running(tmp_path)


def test_start_rejects_bad_language_table(tmp_path):
    runner = CliRunner()
    runner.invoke(main, ["init", str(tmp_path)])
    with open(tmp_path / "config.toml", "a") as f:
        f.write('\n[lsp.servers.python]\nargs = ["--stdio"]\n')

    result = runner.invoke(main, ["start", str(tmp_path)])

    assert result.exit_code != 0
    assert "language server config" in result.output
    assert not is_running(tmp_path)


def test_process_alive():
    assert process_alive(os.getpid())
    assert not process_alive(2 ** 22 + os.getpid())


def test_read_pid(tmp_path):
    assert read_pid(tmp_path) is None

    get_pid_file(tmp_path).write_text("not-a-pid")
    assert read_pid(tmp_path) is None

    get_pid_file(tmp_path).write_text(f"{os.getpid()}\n")
    assert read_pid(tmp_path) == os.getpid()
