import argparse
import sys
from pathlib import Path

from . import config
from .model import RenderMode, ServerConfig
from .server import run
from .utils.logging import LogLevel, error, info, setLevel


def main(args: list[str] | None = None) -> int:
	parser = argparse.ArgumentParser(
		prog="dirserve",
		description="Serves files and directory listings from a base directory",
		formatter_class=argparse.ArgumentDefaultsHelpFormatter,
	)
	parser.add_argument(
		"base",
		metavar="BASE",
		nargs="?",
		default=config.BASE,
		help="The directory to serve",
	)
	parser.add_argument(
		"-H",
		"--host",
		action="store",
		dest="host",
		help="Specifies the host (interface) to listen on",
		default=config.HOST,
	)
	parser.add_argument(
		"-p",
		"--port",
		action="store",
		dest="port",
		type=int,
		help="Specifies the port",
		default=config.PORT,
	)
	parser.add_argument(
		"-r",
		"--render",
		action="store",
		dest="render",
		type=str.lower,
		choices=[_.value for _ in RenderMode],
		help="How directory listings are rendered",
		default=config.RENDER,
	)
	parser.add_argument(
		"-x",
		"--restricted",
		action="store",
		dest="restricted",
		metavar="PATTERNS",
		help="Comma-separated substrings that are forbidden in request paths",
		default=config.RESTRICTED,
	)
	parser.add_argument(
		"-t",
		"--read-timeout",
		action="store",
		dest="readTimeout",
		type=float,
		help="Maximum time in seconds for the filesystem work of a request",
		default=config.READ_TIMEOUT,
	)
	parser.add_argument(
		"-q",
		"--quiet",
		action="store_true",
		dest="quiet",
		help="Does not log requests",
	)
	parser.add_argument(
		"-v",
		"--verbose",
		action="store_true",
		dest="verbose",
		help="Logs debug information",
	)
	options = parser.parse_args(args=args)

	if options.verbose:
		setLevel(LogLevel.Debug)
	base = Path(options.base)
	if not base.is_dir():
		error(f"Base directory does not exist or is not a directory: {base}", "NOBASE")
		return 1
	server_config = ServerConfig.Make(
		base,
		restrictedPatterns=options.restricted,
		renderMode=options.render,
		readTimeout=options.readTimeout,
	)
	info(
		"Starting dirserve",
		Base=str(server_config.basePath),
		Restricted=list(server_config.restrictedPatterns),
	)
	run(
		server_config,
		host=options.host,
		port=options.port,
		logRequests=config.LOG_REQUESTS and not options.quiet,
	)
	return 0


if __name__ == "__main__":
	sys.exit(main())

# EOF
