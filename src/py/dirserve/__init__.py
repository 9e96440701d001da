from .model import (
	RenderMode,
	ServerConfig,
	DirEntry,
	CacheValidator,
	FilesystemError,
	UnsafePathError,
	NotFoundError,
	ServerError,
)  # NOQA: F401
from .resolver import resolvePath  # NOQA: F401
from .dispatcher import RequestDispatcher  # NOQA: F401
from .server import run  # NOQA: F401

__version__ = "1.0.0"

# EOF
