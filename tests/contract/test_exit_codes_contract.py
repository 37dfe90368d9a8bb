from __future__ import annotations

from pathlib import Path

from roster_import.cli import main as cli_main
from roster_import.cli.__main__ import EXIT_BLOCKED, EXIT_COMPLETE, EXIT_FATAL

"""Exit code contract: 0 complete, 2 blocked on user input, 1 fatal."""


def test_exit_zero_when_everything_resolves(write_config: Path):
    assert cli_main(["--config", str(write_config)]) == EXIT_COMPLETE


def test_exit_two_when_corrections_are_missing(write_config: Path, sample_config_yaml: str):
    text = sample_config_yaml.replace("corrections:\n  departments:\n    Kichen: Kitchen\n", "")
    write_config.write_text(text, encoding="utf-8")
    assert cli_main(["--config", str(write_config)]) == EXIT_BLOCKED


def test_exit_one_when_config_missing(temp_workdir: Path, capsys):
    code = cli_main(["--config", str(temp_workdir / "config" / "missing.yml")])
    assert code == EXIT_FATAL
    assert "ERROR config: config file not found" in capsys.readouterr().out


def test_exit_one_when_schema_file_missing(write_config: Path, write_inputs: Path, capsys):
    (write_inputs / "schema.json").unlink()
    assert cli_main(["--config", str(write_config)]) == EXIT_FATAL
    assert "ERROR processing: schema file not found" in capsys.readouterr().out


def test_exit_one_when_source_unsupported(write_config: Path, sample_config_yaml: str, write_inputs: Path):
    (write_inputs / "employees.txt").write_text("x\n", encoding="utf-8")
    write_config.write_text(sample_config_yaml.replace("employees.csv", "employees.txt"), encoding="utf-8")
    assert cli_main(["--config", str(write_config)]) == EXIT_FATAL
