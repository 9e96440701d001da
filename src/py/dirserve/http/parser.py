from typing import ClassVar, Iterator, Literal

from ..utils.io import LineParser
from .model import (
	HTTPAtom,
	HTTPHeaders,
	HTTPProcessingStatus,
	HTTPRequest,
	HTTPRequestLine,
	TLSHandshake,
	headername,
)


class MessageParser:
	"""Parses an HTTP request line."""

	__slots__ = ["line", "value", "skipping"]

	def __init__(self) -> None:
		self.line: LineParser = LineParser()
		self.value: HTTPRequestLine | TLSHandshake | None = None
		self.skipping: int = 0

	def flush(self) -> HTTPRequestLine | TLSHandshake | None:
		res = self.value
		self.reset()
		return res

	def reset(self) -> "MessageParser":
		self.line.reset()
		self.value = None
		self.skipping = 0
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bool | None, int]:
		"""Returns `True` when a request line was parsed, `False` when the
		line is malformed and `None` when more data is needed."""
		n = len(chunk)
		available = n - start
		if self.skipping:
			# We have remaining handshake data to skip
			read = min(available, self.skipping)
			self.skipping -= read
			return None, read
		elif available >= 5 and chunk[start] == 0x16 and not self.line.buffer:
			# This is a TLS handshake (browsers try this on plain ports), we
			# parse its length and skip it.
			size = 5 + (chunk[start + 3] << 8) + chunk[start + 4]
			if available >= size:
				return None, size
			else:
				self.skipping = size - available
				return None, available
		else:
			line, read = self.line.feed(chunk, start)
			if line is None:
				return None, read
			elif not line:
				# Empty lines between pipelined requests are tolerated
				return None, read
			try:
				ln = line.decode("ascii")
			except UnicodeDecodeError:
				return False, read
			i = ln.find(" ")
			j = ln.rfind(" ")
			if i <= 0 or j <= i:
				return False, read
			p: list[str] = ln[i + 1 : j].split("?", 1)
			self.value = HTTPRequestLine(
				ln[0:i].upper(), p[0], p[1] if len(p) > 1 else "", ln[j + 1 :]
			)
			return True, read

	def __str__(self) -> str:
		return f"MessageParser({self.value})"


class HeadersParser:
	__slots__ = ["headers", "contentType", "contentLength", "line"]

	def __init__(self) -> None:
		self.line: LineParser = LineParser()
		self.headers: dict[str, str] = {}
		self.contentType: str | None = None
		self.contentLength: int | None = None

	def flush(self) -> HTTPHeaders:
		res = HTTPHeaders(self.headers, self.contentType, self.contentLength)
		self.reset()
		return res

	def reset(self) -> "HeadersParser":
		self.line.reset()
		self.headers = {}
		self.contentType = None
		self.contentLength = None
		return self

	def feed(
		self, chunk: bytes, start: int = 0
	) -> tuple[str | Literal[False] | None, int]:
		"""Feeds data from chunk, starting at `start` offset. Returns
		a value and the number of bytes read. When the value is `None`, no
		header has been extracted, when the value is `False` it's the empty
		line ending the headers, otherwise it is the added header name."""
		line, read = self.line.feed(chunk, start)
		if line is None:
			return None, read
		elif not line:
			return False, read
		# Headers are expected to be in Latin-1
		ln: str = line.decode("latin-1")
		i = ln.find(":")
		if i == -1:
			return None, read
		h = ln[:i].lower().strip()
		v = ln[i + 1 :].strip()
		if h == "content-length":
			try:
				self.contentLength = int(v)
			except ValueError:
				self.contentLength = None
		elif h == "content-type":
			self.contentType = v
		n: str = headername(h)
		self.headers[n] = v
		return n, read

	def __str__(self) -> str:
		return f"HeadersParser({self.headers})"


class BodyLengthParser:
	"""Skips over a request body with a known Content-Length. Bodies are
	never served, so the bytes are counted and dropped."""

	__slots__ = ["expected", "read"]

	def __init__(self) -> None:
		self.expected: int = 0
		self.read: int = 0

	def reset(self, length: int = 0) -> "BodyLengthParser":
		self.expected = length
		self.read = 0
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bool | None, int]:
		to_read: int = min(len(chunk) - start, self.expected - self.read)
		self.read += to_read
		return (True if self.read >= self.expected else None), to_read


class HTTPParser:
	"""A stateful HTTP request parser, fed with chunks as they arrive."""

	METHOD_HAS_BODY: ClassVar[set[str]] = {"POST", "PUT", "PATCH", "DELETE"}
	# Maximum size of a request line plus headers
	MAX_HEAD: ClassVar[int] = 64 * 1024

	def __init__(self) -> None:
		self.message: MessageParser = MessageParser()
		self.headers: HeadersParser = HeadersParser()
		self.bodyLength: BodyLengthParser = BodyLengthParser()
		self.parser: MessageParser | HeadersParser | BodyLengthParser = self.message
		self.requestLine: HTTPRequestLine | TLSHandshake | None = None
		self.pending: HTTPRequest | None = None
		self.headSize: int = 0

	def reset(self) -> "HTTPParser":
		self.parser = self.message.reset()
		self.headers.reset()
		self.requestLine = None
		self.pending = None
		self.headSize = 0
		return self

	def feed(self, chunk: bytes) -> Iterator[HTTPAtom]:
		size: int = len(chunk)
		offset: int = 0
		while offset < size:
			# Partially read lines are buffered by the underlying parser, so
			# a chunk never needs to be fed twice.
			ln, read = self.parser.feed(chunk, offset)
			offset += read
			if self.parser is not self.bodyLength:
				self.headSize += read
				if self.headSize > self.MAX_HEAD:
					self.reset()
					yield HTTPProcessingStatus.BadFormat
					return
			if ln is None:
				continue
			elif self.parser is self.message:
				line = self.message.flush()
				if ln is False or line is None:
					self.reset()
					yield HTTPProcessingStatus.BadFormat
					return
				self.requestLine = line
				yield line
				self.parser = self.headers
			elif self.parser is self.headers:
				if ln is not False:
					# `ln` is the name of the header that was just parsed
					continue
				headers = self.headers.flush()
				yield headers
				line = self.requestLine
				if not isinstance(line, HTTPRequestLine):
					self.reset()
					continue
				request = HTTPRequest(
					method=line.method,
					path=line.path,
					query=line.query,
					headers=headers,
					protocol=line.protocol,
				)
				if line.method not in self.METHOD_HAS_BODY:
					self.reset()
					yield request
				elif headers.contentLength is None:
					# We can't know where the body ends, so this is the
					# last request we can read on this connection.
					self.reset()
					yield request
					yield HTTPProcessingStatus.BadFormat
					return
				elif headers.contentLength <= 0:
					self.reset()
					yield request
				else:
					self.pending = request
					self.parser = self.bodyLength.reset(headers.contentLength)
					yield HTTPProcessingStatus.Body
			elif self.parser is self.bodyLength:
				request = self.pending
				self.reset()
				if request is not None:
					yield request
			else:
				raise RuntimeError(f"Unsupported parser: {self.parser}")


# EOF
