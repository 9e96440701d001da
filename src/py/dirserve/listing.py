import os
import time
from pathlib import Path
from typing import Iterable
from urllib.parse import quote

from .model import DirEntry, FilesystemError, RenderMode
from .utils.htmpl import H, Node, html

MONTHS: tuple[str, ...] = (
	"Jan",
	"Feb",
	"Mar",
	"Apr",
	"May",
	"Jun",
	"Jul",
	"Aug",
	"Sep",
	"Oct",
	"Nov",
	"Dec",
)

# Plain mode column widths
NAME_WIDTH: int = 50
SIZE_WIDTH: int = 20

KB: int = 1024
MB: int = 1024 * KB
GB: int = 1024 * MB

# Plain mode size ladder, as (inclusive upper bound, unit, suffix)
SIZE_LADDER: tuple[tuple[int, int, str], ...] = (
	(9_999, 1, ""),
	(MB - 1, KB, "K"),
	(GB - 1, MB, "M"),
)

HUMAN_UNITS: tuple[str, ...] = ("B", "KB", "MB", "GB")

STYLED_CSS: str = """
:root {
	font-family: sans-serif;
	font-size: 14px;
	line-height: 1.35em;
	padding: 20px;
	background: #F0F0F0;
}
h1 {
	margin: 1.25em 0em;
	line-height: 1.25em;
}
table {
	border-collapse: collapse;
	min-width: 60%;
}
th, td {
	padding: 0.35em 1em;
	text-align: left;
}
th {
	border-bottom: 1px solid #C0C0C0;
}
td.size, th.size {
	text-align: right;
}
tr.odd {
	background: #FFFFFF;
}
tr.even {
	background: #E8E8E8;
}
"""

# -----------------------------------------------------------------------------
#
# ENUMERATION
#
# -----------------------------------------------------------------------------


def entryOf(item: os.DirEntry[str]) -> DirEntry:
	"""Builds the record for a scanned entry. Entries that can't be
	stat'ed, like dangling symlinks, are kept with empty metadata."""
	try:
		is_dir = item.is_dir()
		stats = item.stat()
	except OSError:
		return DirEntry(item.name, False, 0, 0.0)
	return DirEntry(item.name, is_dir, 0 if is_dir else stats.st_size, stats.st_mtime)


def listEntries(path: Path) -> list[DirEntry]:
	"""Returns the entries of the directory at `path`, in enumeration order."""
	try:
		with os.scandir(path) as items:
			return [entryOf(_) for _ in items]
	except OSError as e:
		raise FilesystemError(f"Could not list directory {path}: {e}") from e


# -----------------------------------------------------------------------------
#
# FORMATTING
#
# -----------------------------------------------------------------------------


def formatDate(timestamp: float) -> str:
	"""Formats as `DD-Mon-YYYY HH:MM` in the local time zone."""
	t = time.localtime(timestamp)
	return f"{t.tm_mday:02d}-{MONTHS[t.tm_mon - 1]}-{t.tm_year} {t.tm_hour:02d}:{t.tm_min:02d}"


def formatSize(size: int) -> str:
	"""Plain mode size, rounded half-up to the nearest unit (`10000` is
	`10K`)."""
	for limit, unit, suffix in SIZE_LADDER:
		if size <= limit:
			return f"{(size + unit // 2) // unit}{suffix}"
	return f"{(size + GB // 2) // GB}G"


def formatHumanSize(size: int) -> str:
	"""Styled mode size, in the largest unit where the value is at least
	one, with one decimal."""
	value: float = float(size)
	i: int = 0
	while value >= 1024 and i < len(HUMAN_UNITS) - 1:
		value /= 1024
		i += 1
	return f"{value:.1f} {HUMAN_UNITS[i]}"


def sortEntries(entries: Iterable[DirEntry]) -> list[DirEntry]:
	"""Sorts by name, case-insensitive. Ties keep enumeration order."""
	return sorted(entries, key=lambda _: _.name.casefold())


def displayText(name: str) -> str:
	"""Filesystem names that are not valid UTF-8 hold escaped bytes, which
	are shown as replacement characters."""
	return name.encode("utf-8", "surrogateescape").decode("utf-8", "replace")


def quoteName(name: str) -> str:
	"""Percent-encodes the raw bytes of `name`, so that the link decodes back
	to the exact filesystem name."""
	return quote(os.fsencode(name))


def displayName(entry: DirEntry) -> str:
	name = displayText(entry.name)
	return f"{name}/" if entry.isDirectory else name


def hrefFor(segments: list[str], entry: DirEntry) -> str:
	"""Absolute, percent-encoded link to `entry` within the listed
	directory."""
	href = "/" + "/".join(quoteName(_) for _ in [*segments, entry.name])
	return f"{href}/" if entry.isDirectory else href


# -----------------------------------------------------------------------------
#
# RENDERING
#
# -----------------------------------------------------------------------------


def renderPlain(segments: list[str], entries: list[DirEntry]) -> list[Node]:
	lines: list[Node | str] = [H.a("../", href="../"), "\n"]
	for entry in entries:
		name = displayName(entry)
		size = "-" if entry.isDirectory else formatSize(entry.size)
		lines += [
			H.a(name, href=hrefFor(segments, entry)),
			f"{' ' * max(0, NAME_WIDTH - len(name))} {formatDate(entry.modifiedTime)} {size:>{SIZE_WIDTH}}\n",
		]
	return [H.hr(), H.pre(*lines), H.hr()]


def renderStyled(segments: list[str], entries: list[DirEntry]) -> list[Node]:
	rows: list[Node] = [
		H.tr(H.td(H.a("../", href="../")), H.td(""), H.td("-", _="size"), _="odd")
	]
	for i, entry in enumerate(entries):
		rows.append(
			H.tr(
				H.td(H.a(displayName(entry), href=hrefFor(segments, entry))),
				H.td(formatDate(entry.modifiedTime)),
				H.td(
					"-" if entry.isDirectory else formatHumanSize(entry.size),
					_="size",
				),
				# The parent row is the first, odd, row
				_="even" if i % 2 == 0 else "odd",
			)
		)
	return [
		H.table(
			H.thead(
				H.tr(H.th("Name"), H.th("Last Modified"), H.th("Size", _="size"))
			),
			H.tbody(*rows),
		)
	]


def render(requestPath: str, entries: Iterable[DirEntry], mode: RenderMode) -> str:
	"""Renders the HTML index of the directory at `requestPath`. The parent
	link `../` is always present, even at the root."""
	segments: list[str] = [_ for _ in requestPath.split("/") if _]
	location: str = "/" + "".join(f"{displayText(_)}/" for _ in segments)
	title: str = f"Index of {location}"
	items: list[DirEntry] = sortEntries(entries)
	content: list[Node] = (
		renderStyled(segments, items)
		if mode is RenderMode.Styled
		else renderPlain(segments, items)
	)
	head: list[Node] = [
		H.meta(charset="utf-8"),
		H.title(title),
		# Relative links like `../` resolve against the directory even when
		# it was requested without a trailing slash.
		H.base(href="/" + "".join(f"{quoteName(_)}/" for _ in segments)),
	]
	if mode is RenderMode.Styled:
		head += [
			H.meta(name="viewport", content="width=device-width, initial-scale=1.0"),
			H.style(STYLED_CSS),
		]
	return "".join(
		html(
			H.html(H.head(*head), H.body(H.h1(title), *content)),
			doctype="html",
		)
	)


# EOF
