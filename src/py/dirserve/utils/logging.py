import os
import sys
import time
from contextvars import ContextVar
from enum import Enum
from typing import Any, ClassVar, NamedTuple

# --
# Structured terminal logging. Every logging function takes ad-hoc keyword
# context that is rendered as `Key=value` pairs after the message, so that
# log lines stay greppable.

ERR = sys.stderr

# SEE: https://no-color.org/
NO_COLOR: bool = "NO_COLOR" in os.environ
FORCE_COLOR: bool = "FORCE_COLOR" in os.environ
COLOR: bool = FORCE_COLOR or (not NO_COLOR and ERR.isatty())

LogOrigin: ContextVar[str] = ContextVar("LogOrigin", default="dirserve")


class Term:
	BOLD: ClassVar[str] = "\033[1m" if COLOR else ""
	RESET: ClassVar[str] = "\033[0m" if COLOR else ""

	@staticmethod
	def Color(color: int) -> str:
		return f"\033[0;38;5;{color}m" if COLOR else ""


class LogType(Enum):
	Message = 0
	Event = 20


class LogLevel(Enum):
	Debug = 0
	Info = 10
	Warning = 30
	Error = 40  # A managed error
	Exception = 50  # An un-managed error

	@staticmethod
	def Parse(name: str | None, default: "LogLevel") -> "LogLevel":
		key = (name or "").strip().capitalize()
		return LogLevel[key] if key in LogLevel.__members__ else default


LOG_LEVEL_COLOR: dict[LogLevel, int] = {
	LogLevel.Debug: 31,
	LogLevel.Info: 75,
	LogLevel.Warning: 202,
	LogLevel.Error: 160,
	LogLevel.Exception: 124,
}

LOG_LEVEL: LogLevel = LogLevel.Parse(
	os.environ.get("DIRSERVE_LOG_LEVEL"), LogLevel.Info
)


class LogEntry(NamedTuple):
	origin: str
	time: float
	type: LogType = LogType.Message
	level: LogLevel = LogLevel.Info
	message: str | None = None
	name: str | None = None
	value: Any = None
	context: dict[str, Any] | None = None
	icon: str | None = None


def setLevel(level: LogLevel | str) -> LogLevel:
	"""Sets the minimum level of the entries that are written out."""
	global LOG_LEVEL
	LOG_LEVEL = level if isinstance(level, LogLevel) else LogLevel.Parse(level, LOG_LEVEL)
	return LOG_LEVEL


def formatData(value: Any) -> str:
	if value is None or value == () or value == [] or value == {}:
		return "◌"
	elif isinstance(value, dict):
		return " ".join(
			f"{Term.BOLD}{k}{Term.RESET}={formatData(v)}" for k, v in value.items()
		)
	elif isinstance(value, list) or isinstance(value, tuple):
		return ",".join(formatData(v) for v in value)
	elif isinstance(value, str):
		return repr(value) if " " in value else value
	elif isinstance(value, bool):
		return "✓" if value else "✗"
	elif isinstance(value, float):
		return f"{value:0.2f}"
	else:
		return str(value)


def send(entry: LogEntry) -> LogEntry:
	if entry.level.value < LOG_LEVEL.value:
		return entry
	icon: str = f" {entry.icon}" if entry.icon else ""
	clr: str = Term.Color(LOG_LEVEL_COLOR[entry.level])
	if entry.type == LogType.Event:
		ERR.write(
			f"{clr}{Term.BOLD}[{entry.origin}] {entry.name}{Term.RESET} {formatData(entry.value)} {formatData(entry.context)}{Term.RESET}\n"
		)
	else:
		code: str = f" [{entry.value}]" if entry.value is not None else ""
		ERR.write(
			f"{clr}{Term.BOLD}[{entry.origin}]{Term.RESET}{icon}{code} {entry.message} {formatData(entry.context)}{Term.RESET}\n"
		)
	ERR.flush()
	return entry


def entry(
	*,
	origin: str | None = None,
	type: LogType = LogType.Message,
	level: LogLevel = LogLevel.Info,
	message: str | None = None,
	name: str | None = None,
	value: Any = None,
	context: dict[str, Any],
	icon: str | None = None,
) -> LogEntry:
	return LogEntry(
		origin=origin or LogOrigin.get(),
		time=time.time(),
		type=type,
		level=level,
		message=message,
		name=name,
		value=value,
		context=context,
		icon=icon,
	)


def debug(
	message: str, *, origin: str | None = None, icon: str | None = None, **context: Any
) -> LogEntry:
	return send(
		entry(
			message=message,
			level=LogLevel.Debug,
			origin=origin,
			context=context,
			icon=icon,
		)
	)


def info(
	message: str, *, origin: str | None = None, icon: str | None = None, **context: Any
) -> LogEntry:
	return send(entry(message=message, origin=origin, context=context, icon=icon))


def warning(
	message: str, *, origin: str | None = None, icon: str | None = None, **context: Any
) -> LogEntry:
	return send(
		entry(
			message=message,
			level=LogLevel.Warning,
			origin=origin,
			context=context,
			icon=icon,
		)
	)


def error(
	message: str,
	code: int | str | None,
	*,
	origin: str | None = None,
	icon: str | None = None,
	**context: Any,
) -> LogEntry:
	return send(
		entry(
			message=message,
			value=code,
			level=LogLevel.Error,
			origin=origin,
			context=context,
			icon=icon,
		)
	)


def event(
	event: str, value: Any = None, *, origin: str | None = None, **context: Any
) -> LogEntry:
	return send(
		entry(
			name=event,
			value=value,
			type=LogType.Event,
			origin=origin,
			context=context,
		)
	)


def exception(exception: BaseException, message: str | None = None) -> BaseException:
	try:
		stream = ERR
		clr: str = Term.Color(LOG_LEVEL_COLOR[LogLevel.Exception])
		stream.write(
			f"{clr}!!! EXCP {f'{message}: ' if message else ''}[{exception.__class__.__name__}] {exception}{Term.RESET}\n"
		)
		tb = exception.__traceback__
		while tb:
			code = tb.tb_frame.f_code
			stream.write(
				f"... in {code.co_name:15s} at {tb.tb_lineno:4d} in {code.co_filename}\n",
			)
			tb = tb.tb_next
		stream.flush()
	except Exception:  # nosec: B110
		# Swallow all exceptions so that this function can be called from an
		# exception handler safely.
		pass
	# Returned so that it can be used as `raise exception(e)`
	return exception


def logged(item: Any) -> bool:
	"""Takes one of the logging functions and tells if its entries are
	currently written out. This guards against building costly entries."""
	level: LogLevel = {
		debug: LogLevel.Debug,
		info: LogLevel.Info,
		event: LogLevel.Info,
		warning: LogLevel.Warning,
		error: LogLevel.Error,
	}.get(item, LogLevel.Exception)
	return level.value >= LOG_LEVEL.value


# EOF
