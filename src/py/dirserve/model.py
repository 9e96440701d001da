from enum import Enum
from pathlib import Path
from typing import NamedTuple

from .http.model import HTTPRequestError

# -----------------------------------------------------------------------------
#
# CONFIGURATION
#
# -----------------------------------------------------------------------------


class RenderMode(Enum):
	"""How directory listings are rendered."""

	Plain = "plain"
	Styled = "styled"

	@staticmethod
	def Parse(value: "str | RenderMode") -> "RenderMode":
		if isinstance(value, RenderMode):
			return value
		key = value.strip().lower()
		for mode in RenderMode:
			if mode.value == key:
				return mode
		raise ValueError(
			f"Unsupported render mode '{value}', pick one of: {', '.join(_.value for _ in RenderMode)}"
		)


class ServerConfig(NamedTuple):
	"""Process-wide configuration, created once at startup and shared
	read-only by every request."""

	basePath: Path
	restrictedPatterns: tuple[str, ...] = ()
	renderMode: RenderMode = RenderMode.Plain
	# Upper bound, in seconds, on each filesystem operation of a request
	readTimeout: float = 30.0

	@staticmethod
	def Make(
		basePath: Path | str,
		restrictedPatterns: str | tuple[str, ...] | list[str] = (),
		renderMode: RenderMode | str = RenderMode.Plain,
		readTimeout: float = 30.0,
	) -> "ServerConfig":
		"""Normalizes the given values: the base path is made absolute, a
		comma-separated pattern string is split and blank patterns dropped."""
		patterns = (
			restrictedPatterns.split(",")
			if isinstance(restrictedPatterns, str)
			else restrictedPatterns
		)
		return ServerConfig(
			basePath=Path(basePath).absolute(),
			restrictedPatterns=tuple(_.strip() for _ in patterns if _.strip()),
			renderMode=RenderMode.Parse(renderMode),
			readTimeout=readTimeout,
		)


# -----------------------------------------------------------------------------
#
# FILESYSTEM RECORDS
#
# -----------------------------------------------------------------------------


class DirEntry(NamedTuple):
	"""Metadata of a single directory entry, as shown in a listing."""

	name: str
	isDirectory: bool
	size: int
	modifiedTime: float


class CacheValidator(NamedTuple):
	"""The modification time of a file and its `Last-Modified` header
	value, which is compared as-is to `If-Modified-Since`."""

	lastModified: float
	header: str


# -----------------------------------------------------------------------------
#
# ERRORS
#
# -----------------------------------------------------------------------------


class FilesystemError(HTTPRequestError):
	"""An I/O failure that is neither a missing entry nor a rejected path."""

	STATUS = 500


class UnsafePathError(HTTPRequestError):
	"""The request path matches a restricted pattern or escapes the base
	directory."""

	STATUS = 403


class NotFoundError(HTTPRequestError):
	STATUS = 404


class ServerError(HTTPRequestError):
	"""An unexpected failure while processing a request."""

	STATUS = 500


# EOF
