import time
from pathlib import Path
from typing import NamedTuple

from .listing import MONTHS
from .model import CacheValidator, FilesystemError
from .utils.files import contentType

DAYS: tuple[str, ...] = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

CACHE_CONTROL: str = "public, max-age=3600"


class NotModified(NamedTuple):
	"""The client's cached copy is still valid."""

	lastModified: str


class FileBody(NamedTuple):
	content: bytes
	contentType: str
	lastModified: str

	def headers(self) -> dict[str, str]:
		return {
			"Content-Type": self.contentType,
			"Last-Modified": self.lastModified,
			"Cache-Control": CACHE_CONTROL,
		}


def formatLastModified(timestamp: float) -> str:
	"""Formats `timestamp` like `%a, %d %b %Y %H:%M:%S GMT`. The value is
	the *local* time, labeled GMT nonetheless. Day and month names are
	always English, whatever the locale."""
	t = time.localtime(timestamp)
	return f"{DAYS[t.tm_wday]}, {t.tm_mday:02d} {MONTHS[t.tm_mon - 1]} {t.tm_year} {t.tm_hour:02d}:{t.tm_min:02d}:{t.tm_sec:02d} GMT"


def validator(path: Path) -> CacheValidator:
	try:
		mtime = path.stat().st_mtime
	except OSError as e:
		raise FilesystemError(f"Could not read metadata of {path}: {e}") from e
	return CacheValidator(mtime, formatLastModified(mtime))


def respond(path: Path, ifModifiedSince: str | None = None) -> NotModified | FileBody:
	"""Returns `NotModified` when `ifModifiedSince` is exactly the current
	`Last-Modified` value of the file, without reading it, or the full
	content otherwise."""
	cache = validator(path)
	if ifModifiedSince is not None and ifModifiedSince == cache.header:
		return NotModified(cache.header)
	try:
		content = path.read_bytes()
	except OSError as e:
		raise FilesystemError(f"Could not read file {path}: {e}") from e
	return FileBody(content, contentType(path), cache.header)


# EOF
