import asyncio
import io
import socket

import pytest

from dirserve.dispatcher import RequestDispatcher
from dirserve.model import ServerConfig
from dirserve.server import AIOSocketServer, ServerOptions
from dirserve.utils import logging


def freePort() -> int:
	with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
		s.bind(("127.0.0.1", 0))
		return s.getsockname()[1]


def exchange(config: ServerConfig, *payloads: bytes) -> list[bytes]:
	"""Starts a server, sends each payload on its own connection and returns
	everything received until the server closes the connection."""

	async def main() -> list[bytes]:
		done = asyncio.Event()
		options = ServerOptions(
			host="127.0.0.1",
			port=freePort(),
			polling=0.05,
			keepalive=2.0,
			logRequests=False,
			condition=lambda: not done.is_set(),
			stopSignals=False,
		)
		server = asyncio.create_task(
			AIOSocketServer.Serve(RequestDispatcher(config), options)
		)
		received: list[bytes] = []
		try:
			for payload in payloads:
				for _ in range(50):
					try:
						reader, writer = await asyncio.open_connection(
							options.host, options.port
						)
						break
					except OSError:
						await asyncio.sleep(0.05)
				writer.write(payload)
				await writer.drain()
				received.append(await asyncio.wait_for(reader.read(), 5.0))
				writer.close()
		finally:
			done.set()
			await server
		return received

	return asyncio.run(main())


def test_pipelined_requests(config: ServerConfig) -> None:
	(data,) = exchange(
		config,
		b"GET /index.txt HTTP/1.1\r\nHost: localhost\r\n\r\n"
		b"GET /missing HTTP/1.1\r\n\r\n"
		b"HEAD /index.txt HTTP/1.1\r\nConnection: close\r\n\r\n",
	)
	assert data.startswith(b"HTTP/1.1 200 OK\r\n")
	assert data.count(b"hello, world\n") == 1
	assert b"HTTP/1.1 404 Not Found\r\n" in data
	head = data[data.rindex(b"HTTP/1.1 200 OK") :]
	assert b"Content-Length: 13\r\n" in head
	assert b"Connection: close\r\n" in head
	assert head.endswith(b"\r\n\r\n")


def test_http10_closes(config: ServerConfig) -> None:
	(data,) = exchange(config, b"GET / HTTP/1.0\r\n\r\n")
	assert data.startswith(b"HTTP/1.0 200 OK\r\n")
	assert b"Index of /" in data


def test_bad_request(config: ServerConfig) -> None:
	(data,) = exchange(config, b"NONSENSE\r\n\r\n")
	assert data.startswith(b"HTTP/1.1 400 Bad Request\r\n")



def test_unavailable_address(
	config: ServerConfig, monkeypatch: pytest.MonkeyPatch
) -> None:
	stream = io.StringIO()
	monkeypatch.setattr(logging, "ERR", stream)
	# TEST-NET-1 is never assigned to a local interface
	options = ServerOptions(host="192.0.2.1", port=freePort(), stopSignals=False)
	with pytest.raises(OSError) as failure:
		asyncio.run(AIOSocketServer.Serve(RequestDispatcher(config), options))
	assert failure.value.__cause__ is None
	assert "Unable to bind" in stream.getvalue()


# EOF
