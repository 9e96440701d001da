from dirserve.http.model import (
	HTTPHeaders,
	HTTPProcessingStatus,
	HTTPRequest,
	HTTPRequestLine,
	HTTPResponse,
	headername,
)
from dirserve.http.parser import HTTPParser
from dirserve.utils.io import LineParser


def atoms(parser: HTTPParser, *chunks: bytes) -> list:
	return [atom for chunk in chunks for atom in parser.feed(chunk)]


def requests(parser: HTTPParser, *chunks: bytes) -> list[HTTPRequest]:
	return [_ for _ in atoms(parser, *chunks) if isinstance(_, HTTPRequest)]


def test_line_parser() -> None:
	parser = LineParser()
	lines: list[bytes] = []
	for chunk in [
		b"GET /time/5 HTTP/1.1\r\nHost: 127.0.0.1\r\nConnection: close",
		b"\r\n\r",
		b"\n",
	]:
		offset: int = 0
		while offset < len(chunk):
			line, read = parser.feed(chunk, offset)
			offset += read
			if line is not None:
				lines.append(line)
	assert lines == [
		b"GET /time/5 HTTP/1.1",
		b"Host: 127.0.0.1",
		b"Connection: close",
		b"",
	]


def test_request_fed_in_pieces() -> None:
	parser = HTTPParser()
	result: list[tuple[int, object]] = []
	for i, chunk in enumerate(
		[
			b"GET /time/5 ",
			b"HTTP/1.1\r\nHost: ",
			b"127.0.0.1\r",
			b"\nConn",
			b"ection: close\r\n",
			b"\r",
			b"\n",
		]
	):
		result += [(i, _) for _ in parser.feed(chunk)]
	assert [(i, type(_)) for i, _ in result] == [
		(1, HTTPRequestLine),
		(6, HTTPHeaders),
		(6, HTTPRequest),
	]
	request = result[-1][1]
	assert isinstance(request, HTTPRequest)
	assert request.method == "GET"
	assert request.path == "/time/5"
	assert request.header("host") == "127.0.0.1"
	assert request.shouldClose


def test_pipelined_requests() -> None:
	parser = HTTPParser()
	res = requests(
		parser,
		b"GET /a HTTP/1.1\r\nHost: x\r\n\r\nhead /b%20c?x=1&y HTTP/1.1\r\n\r\nGET /c",
	)
	assert [(_.method, _.path, _.query) for _ in res] == [
		("GET", "/a", ""),
		("HEAD", "/b%20c", "x=1&y"),
	]
	assert [_.path for _ in requests(parser, b" HTTP/1.1\r\n\r\n")] == ["/c"]


def test_request_body_is_skipped() -> None:
	parser = HTTPParser()
	first = atoms(parser, b"POST /upload HTTP/1.1\r\nContent-Length: 10\r\n\r\n12345")
	assert first[-1] is HTTPProcessingStatus.Body
	assert not [_ for _ in first if isinstance(_, HTTPRequest)]
	res = requests(parser, b"67890GET /next HTTP/1.1\r\n\r\n")
	assert [(_.method, _.path) for _ in res] == [("POST", "/upload"), ("GET", "/next")]


def test_body_without_length_ends_the_connection() -> None:
	res = atoms(HTTPParser(), b"POST / HTTP/1.1\r\n\r\nGET /next HTTP/1.1\r\n\r\n")
	assert isinstance(res[-2], HTTPRequest)
	assert res[-1] is HTTPProcessingStatus.BadFormat


def test_malformed_request_line() -> None:
	assert atoms(HTTPParser(), b"NONSENSE\r\n\r\n") == [HTTPProcessingStatus.BadFormat]
	assert atoms(HTTPParser(), b"GET\xff / HTTP/1.1\r\n") == [
		HTTPProcessingStatus.BadFormat
	]


def test_oversized_head() -> None:
	parser = HTTPParser()
	res = atoms(parser, b"GET / HTTP/1.1\r\nX-Padding: " + b"a" * 70_000)
	assert res[-1] is HTTPProcessingStatus.BadFormat


def test_tls_handshake_is_skipped() -> None:
	handshake = bytes([0x16, 0x03, 0x01, 0x00, 0x05]) + b"\x01" * 5
	res = requests(HTTPParser(), handshake, b"GET / HTTP/1.1\r\n\r\n")
	assert [_.path for _ in res] == ["/"]


def test_connection_persistence() -> None:
	res = requests(
		HTTPParser(),
		b"GET /a HTTP/1.0\r\n\r\n",
		b"GET /b HTTP/1.0\r\nConnection: keep-alive\r\n\r\n",
		b"GET /c HTTP/1.1\r\n\r\n",
	)
	assert [_.shouldClose for _ in res] == [True, False, False]


def test_header_names_memo_is_bounded() -> None:
	parser = HTTPParser()
	res = requests(
		parser,
		*(f"GET / HTTP/1.1\r\nX-Junk-{i}: 1\r\n\r\n".encode() for i in range(5_000)),
	)
	assert len(res) == 5_000
	assert res[-1].header("x-junk-4999") == "1"
	assert headername.cache_info().currsize <= 256
	assert headername("content-TYPE") == "Content-Type"


def test_response_head() -> None:
	res = HTTPResponse.Create(b"hello", "text/plain", status=200)
	assert res.head() == (
		b"HTTP/1.1 200 OK\r\n"
		b"Content-Type: text/plain\r\n"
		b"Content-Length: 5\r\n"
		b"\r\n"
	)
	empty = HTTPResponse.Create(status=200)
	assert empty.getHeader("Content-Length") == "0"
	# Closing the connection is the writer's concern
	assert not hasattr(empty, "shouldClose")


def test_not_modified_has_no_length() -> None:
	res = HTTPRequest("GET", "/").notModified({"Last-Modified": "x"})
	assert res.status == 304
	assert res.body is None
	assert res.getHeader("Content-Length") is None
	assert res.head().startswith(b"HTTP/1.1 304 Not Modified\r\n")


# EOF
