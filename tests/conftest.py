import asyncio
import os
import time
from pathlib import Path
from typing import Callable

import pytest

from dirserve.dispatcher import RequestDispatcher
from dirserve.http.model import HTTPHeaders, HTTPRequest, HTTPResponse
from dirserve.model import RenderMode, ServerConfig

RESTRICTED: tuple[str, ...] = (".env", ".git", "Cargo.toml", "Cargo.lock")

# 2024-03-05 14:07:09, local time
MTIME: float = time.mktime((2024, 3, 5, 14, 7, 9, 0, 0, -1))

TFetch = Callable[..., HTTPResponse]


def request(
	path: str, method: str = "GET", headers: dict[str, str] | None = None
) -> HTTPRequest:
	return HTTPRequest(method, path, headers=HTTPHeaders(dict(headers or {})))


@pytest.fixture
def mtime() -> float:
	return MTIME


@pytest.fixture
def base(tmp_path: Path) -> Path:
	"""A served directory, with an `outside.txt` sibling that must never be
	reachable."""
	root = tmp_path / "www"
	root.mkdir()
	(tmp_path / "outside.txt").write_text("outside")
	(root / "index.txt").write_text("hello, world\n")
	(root / "data.bin").write_bytes(b"\x00" * 10_000)
	(root / "sub").mkdir()
	(root / "sub" / "nested.txt").write_text("nested")
	(root / "sub" / "deeper").mkdir()
	(root / "sub" / "deeper" / "leaf.md").write_text("# Leaf")
	for p in root.rglob("*"):
		os.utime(p, (MTIME, MTIME))
	return root


@pytest.fixture
def config(base: Path) -> ServerConfig:
	return ServerConfig.Make(base, RESTRICTED, RenderMode.Plain, readTimeout=5.0)


@pytest.fixture
def dispatcher(config: ServerConfig) -> RequestDispatcher:
	return RequestDispatcher(config)


@pytest.fixture
def fetch(dispatcher: RequestDispatcher) -> TFetch:
	"""Returns a function that runs a request through the dispatcher."""

	def f(
		path: str, method: str = "GET", headers: dict[str, str] | None = None
	) -> HTTPResponse:
		return asyncio.run(dispatcher.process(request(path, method, headers)))

	return f


# EOF
