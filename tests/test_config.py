import io
from pathlib import Path
from typing import Any

import pytest

import dirserve.__main__ as cli
from dirserve.model import RenderMode, ServerConfig
from dirserve.utils import logging
from dirserve.utils.limits import LimitType, limit, unlimit


def test_config_normalization(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
	monkeypatch.chdir(tmp_path)
	config = ServerConfig.Make("www", " .env, ,.git,,Cargo.lock ", "Styled", 2)
	assert config.basePath == tmp_path / "www"
	assert config.restrictedPatterns == (".env", ".git", "Cargo.lock")
	assert config.renderMode is RenderMode.Styled
	assert config.readTimeout == 2
	assert ServerConfig.Make(tmp_path, [".env", ""]).restrictedPatterns == (".env",)


def test_render_mode() -> None:
	assert RenderMode.Parse("PLAIN") is RenderMode.Plain
	assert RenderMode.Parse(RenderMode.Styled) is RenderMode.Styled
	with pytest.raises(ValueError):
		RenderMode.Parse("fancy")


def test_logging_levels(monkeypatch: pytest.MonkeyPatch) -> None:
	stream = io.StringIO()
	monkeypatch.setattr(logging, "ERR", stream)
	monkeypatch.setattr(logging, "LOG_LEVEL", logging.LogLevel.Info)
	monkeypatch.setattr(logging.Term, "BOLD", "")
	monkeypatch.setattr(logging.Term, "RESET", "")
	logging.debug("Hidden")
	logging.info("Shown", Path="/a b")
	logging.error("Failed", "FSERR", Path="/x")
	assert not logging.logged(logging.debug)
	assert logging.logged(logging.warning)
	out = stream.getvalue()
	assert "Hidden" not in out
	assert "Shown" in out and "Path='/a b'" in out
	assert "[FSERR] Failed" in out
	assert logging.setLevel("debug") is logging.LogLevel.Debug
	assert logging.logged(logging.debug)


def test_cli_missing_base(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
	monkeypatch.setattr(logging, "ERR", io.StringIO())
	monkeypatch.setattr(cli, "run", lambda *args, **kwargs: pytest.fail("Started"))
	assert cli.main([str(tmp_path / "missing")]) == 1
	(tmp_path / "file").write_text("")
	assert cli.main([str(tmp_path / "file")]) == 1


def test_cli_options(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
	calls: list[tuple[ServerConfig, dict[str, Any]]] = []
	monkeypatch.setattr(logging, "ERR", io.StringIO())
	monkeypatch.setattr(cli, "run", lambda config, **kwargs: calls.append((config, kwargs)))
	assert (
		cli.main(
			[str(tmp_path), "-p", "9000", "-r", "styled", "-x", ".secret", "-t", "5", "-q"]
		)
		== 0
	)
	((config, options),) = calls
	assert config.basePath == tmp_path
	assert config.renderMode is RenderMode.Styled
	assert config.restrictedPatterns == (".secret",)
	assert config.readTimeout == 5.0
	assert options["port"] == 9000
	assert options["logRequests"] is False


def test_cli_render_mode_is_case_insensitive(
	tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
	calls: list[ServerConfig] = []
	monkeypatch.setattr(logging, "ERR", io.StringIO())
	monkeypatch.setattr(cli, "run", lambda config, **kwargs: calls.append(config))
	assert cli.main([str(tmp_path), "-r", "Styled"]) == 0
	assert calls[0].renderMode is RenderMode.Styled


def test_open_files_limit() -> None:
	before = limit(LimitType.Files)
	res = unlimit(LimitType.Files)
	if res is not False:
		assert res >= before.soft
		assert limit(LimitType.Files).soft == res


# EOF
