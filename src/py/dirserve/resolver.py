from pathlib import Path

from .model import FilesystemError, NotFoundError, ServerConfig, UnsafePathError

# --
# == Path resolution
#
# Turns an untrusted request path into a local path confined to the base
# directory. The checks run in a fixed order: restricted patterns first
# (before touching the filesystem, so that forbidden names don't leak
# whether they exist), then containment on the canonical paths, which
# defeats both `..` and symlink escapes.


def isRestricted(requestPath: str, patterns: tuple[str, ...]) -> str | None:
	"""Returns the first of `patterns` found in `requestPath`, if any."""
	for pattern in patterns:
		if pattern in requestPath:
			return pattern
	return None


def canonical(path: Path) -> Path:
	"""Resolves symlinks, `.` and `..` in `path`, which must exist."""
	try:
		return path.resolve(strict=True)
	except (FileNotFoundError, NotADirectoryError) as e:
		raise NotFoundError(f"Path does not exist: {path}") from e
	except ValueError as e:
		# Embedded null bytes, no such entry can exist
		raise NotFoundError(f"Path is not valid: {path!r}") from e
	except RuntimeError as e:
		# Symlink loops on Python < 3.13
		raise FilesystemError(f"Could not resolve path {path}: {e}") from e
	except OSError as e:
		raise FilesystemError(f"Could not resolve path {path}: {e}") from e


def isContained(path: Path, base: Path) -> bool:
	"""Tells if the canonical `path` is `base` or one of its descendants."""
	return path == base or base in path.parents


def resolvePath(requestPath: str, config: ServerConfig) -> Path:
	"""Returns the local path for `requestPath` within `config.basePath`,
	raising `UnsafePathError`, `NotFoundError` or `FilesystemError`.

	The returned path is the plain join of the base and the request path,
	not its canonical form, so that listings keep showing the requested
	segments."""
	if pattern := isRestricted(requestPath, config.restrictedPatterns):
		raise UnsafePathError(
			f"Access to path is forbidden: {requestPath} (matches '{pattern}')"
		)
	local_path: Path = config.basePath.joinpath(
		*(_ for _ in requestPath.split("/") if _)
	)
	try:
		base: Path = canonical(config.basePath)
	except NotFoundError as e:
		# A missing base directory is a server problem, not a client one
		raise FilesystemError(f"Base directory is not available: {e}") from e
	resolved: Path = canonical(local_path)
	if not isContained(resolved, base):
		raise UnsafePathError(f"Path is outside of the served directory: {requestPath}")
	return local_path


# EOF
