from __future__ import annotations

import re
from pathlib import Path

from roster_import.cli import main as cli_main

SUMMARY_RE = re.compile(
    r"^SUMMARY rows=\d+ mapped=\d+/\d+ patterns=\d+ corrected=\d+ errors=\d+ warnings=\d+ "
    r"phase=(mapping|bulk-correction|date-disambiguation|individual-correction|complete)$"
)
LABEL_RE = re.compile(r"^(DEBUG|INFO|WARN|ERROR|SUMMARY) ")


def _run(argv: list[str], capsys) -> list[str]:
    cli_main(argv)
    return capsys.readouterr().out.splitlines()


def test_summary_is_last_line(write_config: Path, capsys):
    lines = _run(["--config", str(write_config)], capsys)
    assert SUMMARY_RE.match(lines[-1])
    assert lines[-1] == "SUMMARY rows=3 mapped=6/7 patterns=0 corrected=1 errors=0 warnings=0 phase=complete"
    assert sum(1 for line in lines if line.startswith("SUMMARY")) == 1


def test_every_line_is_labeled(write_config: Path, capsys):
    lines = _run(["--config", str(write_config), "--debug"], capsys)
    assert lines
    assert all(LABEL_RE.match(line) for line in lines)
    assert any(line.startswith("DEBUG ") for line in lines)


def test_blocked_summary_names_the_phase(write_config: Path, sample_config_yaml: str, capsys):
    write_config.write_text(sample_config_yaml.replace("  order: DD/MM/YYYY\n", "  order: null\n"), encoding="utf-8")
    lines = _run(["--config", str(write_config)], capsys)
    assert lines[-1].endswith("phase=date-disambiguation")
    assert any(line.startswith("WARN blocked: ambiguous dates") for line in lines)


def test_config_from_environment(write_config: Path, monkeypatch, capsys):
    monkeypatch.setenv("ROSTER_IMPORT_CONFIG", str(write_config))
    lines = _run([], capsys)
    assert lines[-1].endswith("phase=complete")


def test_config_from_dotenv_file(temp_workdir: Path, write_config: Path, monkeypatch, capsys):
    other = temp_workdir / "config" / "other.yml"
    other.write_text(write_config.read_text(encoding="utf-8"), encoding="utf-8")
    write_config.unlink()
    monkeypatch.setenv("ROSTER_IMPORT_CONFIG", "config/missing.yml")
    (temp_workdir / ".env").write_text("ROSTER_IMPORT_CONFIG=config/other.yml\n", encoding="utf-8")
    lines = _run([], capsys)
    assert lines[-1].endswith("phase=complete")
