import asyncio
import socket
import threading
from dataclasses import dataclass
from signal import SIGINT, SIGTERM
from typing import Any, Callable, NamedTuple

from .config import HOST, LOG_REQUESTS, PORT
from .dispatcher import RequestDispatcher
from .http.model import (
	HTTP_NO_BODY,
	HTTPBodyWriter,
	HTTPProcessingStatus,
	HTTPRequest,
	HTTPResponse,
)
from .http.parser import HTTPParser
from .model import ServerConfig
from .utils.limits import LimitType, unlimit
from .utils.logging import debug, error, event, exception, info, logged, warning


@dataclass(slots=True)
class ServerState:
	isRunning: bool = True

	def stop(self) -> None:
		info("Server stopping…")
		self.isRunning = False

	def onException(
		self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]
	) -> None:
		e = context.get("exception")
		if e:
			exception(e)


class ServerOptions(NamedTuple):
	host: str = "0.0.0.0"  # nosec: B104
	port: int = 8000
	backlog: int = 10_000
	# This is the polling timeout for accepting new connections, so that
	# the stop state is checked every second.
	polling: float = 1.0
	readsize: int = 4_096
	# Idle time after which a kept-alive connection is closed
	keepalive: float = 30.0
	logRequests: bool = True
	condition: Callable[[], bool] | None = None
	stopSignals: bool = True


OPTIONS: ServerOptions = ServerOptions()

SERVER_NOCONTENT: bytes = b"HTTP/1.1 204 No Content\r\nConnection: close\r\n\r\n"
SERVER_BAD_REQUEST: bytes = (
	b"HTTP/1.1 400 Bad Request\r\n"
	b"Content-Type: text/plain\r\n"
	b"Content-Length: 11\r\n"
	b"Connection: close\r\n"
	b"\r\n"
	b"Bad Request"
)
SERVER_ERROR: bytes = (
	b"HTTP/1.1 500 Internal Server Error\r\n"
	b"Content-Type: text/plain\r\n"
	b"Content-Length: 39\r\n"
	b"Connection: close\r\n"
	b"\r\n"
	b"Internal server error: Request not sent"
)


class AIOSocketBodyWriter(HTTPBodyWriter):
	"""Writes to a non-blocking socket through the event loop."""

	def __init__(self, client: socket.socket, loop: asyncio.AbstractEventLoop) -> None:
		super().__init__()
		self.client: socket.socket = client
		self.loop: asyncio.AbstractEventLoop = loop

	async def _writeBytes(self, chunk: bytes) -> bool:
		if chunk:
			await self.loop.sock_sendall(self.client, chunk)
		return True


class AIOSocketServer:
	"""AsyncIO backend using sockets directly, with one task per
	connection."""

	@classmethod
	async def OnRequest(
		cls,
		dispatcher: RequestDispatcher,
		client: socket.socket,
		*,
		loop: asyncio.AbstractEventLoop,
		options: ServerOptions,
	) -> None:
		"""Serves the requests sent on the `client` connection, until it is
		closed, times out, or asks to be closed."""
		size: int = options.readsize
		buffer = bytearray(size)
		keep_alive: bool = True
		status: HTTPProcessingStatus = HTTPProcessingStatus.Processing
		read_count: int = 0
		res_count: int = 0
		req_count: int = 0
		try:
			parser: HTTPParser = HTTPParser()
			writer: AIOSocketBodyWriter = AIOSocketBodyWriter(client, loop)
			# With keep-alive, all the requests of a client come through this
			# loop until `Connection: close` or the idle timeout.
			while keep_alive and not writer.shouldClose:
				try:
					n = await asyncio.wait_for(
						loop.sock_recv_into(client, buffer),
						timeout=options.keepalive,
					)
					read_count += n
				except asyncio.TimeoutError:
					status = HTTPProcessingStatus.Timeout
					break
				if not n:
					# No data means the client closed the connection
					status = HTTPProcessingStatus.NoData
					break
				# With HTTP pipelining, a single read may hold more than one
				# request.
				last: Any = None
				for atom in parser.feed(bytes(buffer[:n])):
					if isinstance(atom, HTTPRequest):
						req_count += 1
						if options.logRequests:
							event(atom.method, atom.path)
						if atom.shouldClose:
							keep_alive = False
						res = await cls.SendResponse(atom, dispatcher, writer)
						if res:
							res_count += 1
					elif atom is HTTPProcessingStatus.BadFormat:
						status = atom
						keep_alive = False
						if not isinstance(last, HTTPRequest):
							warning("Malformed request", Client=f"{id(client):x}")
							await writer.write(SERVER_BAD_REQUEST)
					last = atom
					if not keep_alive:
						break
			if res_count != req_count:
				warning("Incomplete responses", Requests=req_count, Responses=res_count)
			if read_count and status is HTTPProcessingStatus.NoData and not res_count:
				warning(
					"Client did not feed a complete request",
					ReadCount=read_count,
					Status=status.name,
				)
			elif logged(debug):
				debug(
					"Connection closed",
					Client=f"{id(client):x}",
					Status=status.name,
					Requests=req_count,
				)
		except (BrokenPipeError, ConnectionResetError):
			# Client did an early close
			pass
		except Exception as e:
			exception(e)
		finally:
			client.close()

	@staticmethod
	async def SendResponse(
		request: HTTPRequest,
		dispatcher: RequestDispatcher,
		writer: HTTPBodyWriter,
	) -> HTTPResponse | None:
		"""Processes the request and sends the response using the given
		writer. HEAD requests only get the head of the response."""
		res: HTTPResponse | None = await dispatcher.process(request)
		if res is None:
			warning(
				"Dispatcher did not return a response",
				Method=request.method,
				Path=request.path,
			)
			await writer.write(SERVER_NOCONTENT)
			writer.shouldClose = True
			return None
		if request.shouldClose:
			res.setHeader("Connection", "close")
		sent: bool = False
		try:
			await writer.write(res.head())
			sent = True
			if request.method != "HEAD" and res.status not in HTTP_NO_BODY:
				await writer.write(res.body)
		except (BrokenPipeError, ConnectionResetError):
			# Client did an early close
			writer.shouldClose = True
			return res
		except Exception as e:
			exception(e)
			writer.shouldClose = True
		if not sent:
			warning(
				"Server did not send a response",
				Method=request.method,
				Path=request.path,
			)
			await writer.write(SERVER_ERROR)
		return res

	@classmethod
	async def Serve(
		cls,
		dispatcher: RequestDispatcher,
		options: ServerOptions = ServerOptions(),
	) -> None:
		"""Main server coroutine."""
		server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
		server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
		server.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
		port: int = options.port
		try:
			server.bind((options.host, port))
		except OSError as e:
			warning(f"Could not bind to {options.host}:{port}, trying other ports.")
			bound: bool = False
			for p in range(options.port + 1, options.port + 5):
				try:
					server.bind((options.host, p))
					bound = True
					port = p
					info(f"Found alternate available port: {port}")
					break
				except OSError:
					pass
			if not bound:
				error(
					f"Unable to bind to {options.host}:{options.port}, aborting.",
					"HOSTPORTERR",
				)
				server.close()
				raise e

		# The backlog of connections that are accepted before being refused
		server.listen(options.backlog)
		server.setblocking(False)

		tasks: set[asyncio.Task[None]] = set()
		loop = asyncio.get_running_loop()
		state = ServerState()
		# Signal handlers can only be set from the main thread
		if options.stopSignals and threading.current_thread() is threading.main_thread():
			loop.add_signal_handler(SIGINT, state.stop)
			loop.add_signal_handler(SIGTERM, state.stop)
		loop.set_exception_handler(state.onException)

		config = dispatcher.config
		info(
			"Dirserve listening",
			icon="🚀",
			Host=options.host,
			Port=port,
			Base=str(config.basePath),
			Render=config.renderMode.value,
		)

		try:
			while state.isRunning:
				if options.condition and not options.condition():
					break
				try:
					client, _ = await asyncio.wait_for(
						loop.sock_accept(server), timeout=options.polling or 1.0
					)
				except asyncio.TimeoutError:
					continue
				except OSError as e:
					# [Errno 24] Too many open files
					if e.errno == 24:
						await asyncio.sleep(0.1)
					else:
						exception(e)
					continue
				client.setblocking(False)
				task = loop.create_task(
					cls.OnRequest(dispatcher, client, loop=loop, options=options)
				)
				tasks.add(task)
				task.add_done_callback(tasks.discard)
		finally:
			server.close()
			for task in tasks:
				task.cancel()
			await asyncio.gather(*tasks, return_exceptions=True)


def run(
	config: ServerConfig,
	*,
	host: str = HOST,
	port: int = PORT,
	backlog: int = OPTIONS.backlog,
	condition: Callable[[], bool] | None = None,
	polling: float = OPTIONS.polling,
	logRequests: bool = LOG_REQUESTS,
	keepalive: float = OPTIONS.keepalive,
) -> None:
	"""High level function to serve `config.basePath` until stopped."""
	unlimit(LimitType.Files)
	options = ServerOptions(
		host=host,
		port=port,
		backlog=backlog,
		condition=condition,
		polling=polling,
		logRequests=logRequests,
		keepalive=keepalive,
	)
	try:
		asyncio.run(AIOSocketServer.Serve(RequestDispatcher(config), options))
	except KeyboardInterrupt:
		event("ManualShutdown")
	event("EOK")


# EOF
