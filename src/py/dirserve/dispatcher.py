import asyncio
from urllib.parse import unquote

from . import listing, responder
from .http.model import HTTPRequest, HTTPRequestError, HTTPResponse
from .http.status import HTTP_STATUS
from .model import (
	FilesystemError,
	NotFoundError,
	ServerConfig,
	ServerError,
	UnsafePathError,
)
from .resolver import resolvePath
from .utils.htmpl import H, html
from .utils.logging import debug, error, exception, logged, warning

# The outcome of a lookup: a rendered listing, or the file responder's
# result.
TLookup = str | responder.NotModified | responder.FileBody


def errorPage(status: int, message: str) -> str:
	title = f"{status} {HTTP_STATUS.get(status, 'Error')}"
	return "".join(
		html(
			H.html(
				H.head(H.meta(charset="utf-8"), H.title(title)),
				H.body(H.h1(title), H.p(message)),
			),
			doctype="html",
		)
	)


class RequestDispatcher:
	"""Maps requests to directory listings, file bodies, not-modified
	responses or errors. The dispatcher holds no state besides its
	read-only configuration, so one instance serves all requests
	concurrently."""

	METHODS: tuple[str, ...] = ("GET", "HEAD")

	def __init__(self, config: ServerConfig) -> None:
		self.config: ServerConfig = config

	def lookup(self, path: str, ifModifiedSince: str | None = None) -> TLookup:
		"""The blocking part of a request: resolves `path` and produces the
		listing or file result, raising the errors of `dirserve.model`."""
		local_path = resolvePath(path, self.config)
		if local_path.is_dir():
			return listing.render(
				path, listing.listEntries(local_path), self.config.renderMode
			)
		elif local_path.is_file():
			return responder.respond(local_path, ifModifiedSince)
		else:
			# Sockets, FIFOs, devices
			raise NotFoundError(f"Not a file or directory: {local_path}")

	async def dispatch(
		self, request: HTTPRequest, path: str | None = None
	) -> HTTPResponse:
		"""Runs the lookup for `path` (the decoded request path by default)
		off the event loop, bounded by the configured read timeout, and
		converts the result to a response. No exception escapes."""
		# Escaped bytes that are not UTF-8 decode to the same surrogates as the
		# filesystem names they stand for.
		path = (
			unquote(request.path, errors="surrogateescape") if path is None else path
		)
		try:
			loop = asyncio.get_running_loop()
			try:
				result: TLookup = await asyncio.wait_for(
					loop.run_in_executor(
						None, self.lookup, path, request.header("If-Modified-Since")
					),
					timeout=self.config.readTimeout,
				)
			except asyncio.TimeoutError as e:
				raise FilesystemError(
					f"Filesystem access timed out after {self.config.readTimeout}s"
				) from e
		except HTTPRequestError as e:
			return self.onError(request, path, e)
		except Exception as e:
			return self.onError(request, path, ServerError(str(e)), e)
		if isinstance(result, str):
			return request.respondHTML(result)
		elif isinstance(result, responder.NotModified):
			return request.notModified(
				{
					"Last-Modified": result.lastModified,
					"Cache-Control": responder.CACHE_CONTROL,
				}
			)
		else:
			return request.respond(
				content=result.content,
				contentType=result.contentType,
				headers=result.headers(),
			)

	def onError(
		self,
		request: HTTPRequest,
		path: str,
		e: HTTPRequestError,
		origin: Exception | None = None,
	) -> HTTPResponse:
		"""Converts `e` to an HTML error response. Details of server side
		failures are logged, never sent."""
		location = f"/{listing.displayText(path.lstrip('/'))}"
		if isinstance(e, UnsafePathError):
			warning("Rejected path", Path=location, Reason=e.message)
			message = f"Access to {location} is forbidden."
		elif isinstance(e, NotFoundError):
			logged(debug) and debug("Not found", Path=location, Reason=e.message)
			message = f"{location} was not found."
		elif origin is not None:
			exception(origin, f"Unexpected error processing {location}")
			message = "The server could not process this request."
		else:
			error(e.message, "FSERR", Path=location)
			message = "The server could not process this request."
		return request.error(
			e.status,
			errorPage(e.status, message),
			contentType="text/html; charset=utf-8",
		)

	async def process(self, request: HTTPRequest) -> HTTPResponse:
		"""Entry point for the server, answering GET and HEAD requests."""
		if request.method not in self.METHODS:
			return request.notAllowed(self.METHODS)
		return await self.dispatch(request)


# EOF
