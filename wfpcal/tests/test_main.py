import logging
from pathlib import Path

from click.testing import CliRunner

import wfpcal.__main__ as main


def test_cli():
    runner = CliRunner()
    result = runner.invoke(main.cli)
    assert "init" in result.output
    assert "process" in result.output


def test_debug(tmp_path):
    runner = CliRunner()
    with runner.isolated_filesystem(temp_dir=tmp_path):
        Path("deployment.yaml").touch()

        # default options
        result = runner.invoke(main.cli, ["process", "-c", "deployment.yaml"])
        assert "Debug mode off" in result.output

        # debug (run last so Logger("wfpcal").level=NOTSET for other tests)
        result_debug = runner.invoke(
            main.cli, ["--debug", "process", "-c", "deployment.yaml"]
        )
        assert "Debug mode on" in result_debug.output


def test_init(tmp_path, caplog):
    runner = CliRunner()
    with runner.isolated_filesystem(temp_dir=tmp_path):
        with caplog.at_level(logging.INFO):
            result = runner.invoke(main.init)
        assert "Building default /data/ directories" in caplog.messages[0]
        assert result.exit_code == 0
        assert Path("data/processed").is_dir()

        # existing folders are fine
        result_rerun = runner.invoke(main.init)
        assert result_rerun.exit_code == 0


def test_process(tmp_path):
    runner = CliRunner()
    with runner.isolated_filesystem(temp_dir=tmp_path):
        # default config file does not exist
        result = runner.invoke(main.process)
        assert result.exit_code == 2
        assert "deployment.yaml" in result.output
