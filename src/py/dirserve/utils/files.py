import mimetypes
from pathlib import Path

mimetypes.init()

DEFAULT_CONTENT_TYPE: str = "application/octet-stream"

# Extensions that `mimetypes` gets wrong or does not know about, looked up
# before the platform database.
MIME_TYPES: dict[str, str] = dict(
	bz2="application/x-bzip",
	gz="application/x-gzip",
	md="text/markdown",
	mjs="text/javascript",
	wasm="application/wasm",
	webmanifest="application/manifest+json",
)


def contentType(path: Path | str, default: str = DEFAULT_CONTENT_TYPE) -> str:
	"""Guesses the content type from the given path, returning `default`
	when nothing matches."""
	name = Path(path).name
	if name == "importmap.json":
		return "application/importmap+json"
	ext: str = name.rsplit(".", 1)[-1].lower() if "." in name else ""
	res: str | None = MIME_TYPES.get(ext) or mimetypes.guess_type(name)[0]
	return res or default


# EOF
