from __future__ import annotations

import importlib

import pytest

import burrow


def test_dunder_main_imports_cli_main() -> None:
    import burrow.__main__ as entry
    import burrow.cli as cli

    importlib.reload(entry)

    assert entry.main is cli.main


def test_version_flag_reports_package_version(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    import burrow.cli as cli
    from burrow.config import AppConfig

    monkeypatch.setattr(cli, "load_config", AppConfig)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["-V"])

    assert excinfo.value.code == 0
    assert burrow.__version__ in capsys.readouterr().out
