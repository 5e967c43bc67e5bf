import sys
import time
from contextvars import ContextVar
from enum import Enum
from typing import Any, NamedTuple, TextIO

from .primitives import TPrimitive
from .term import Term

# Each connection task may set its own origin (typically the peer address),
# entries logged from that task then carry it.
LogOrigin: ContextVar[str] = ContextVar("LogOrigin", default="fileserve")


class LogLevel(Enum):
	Debug = 0
	Info = 10
	Warning = 30
	Error = 40  # A managed error, with a code
	Exception = 50  # An un-managed error


LOG_LEVEL_COLOR: dict[LogLevel, int] = {
	LogLevel.Debug: 31,
	LogLevel.Info: 75,
	LogLevel.Warning: 202,
	LogLevel.Error: 160,
	LogLevel.Exception: 124,
}

LOG_LEVEL_TAG: dict[LogLevel, str] = {
	LogLevel.Debug: "DBG",
	LogLevel.Info: "INF",
	LogLevel.Warning: "WRN",
	LogLevel.Error: "ERR",
	LogLevel.Exception: "EXC",
}

LOG_LEVEL_NAMES: dict[str, LogLevel] = {_.name.lower(): _ for _ in LogLevel}


class LogEntry(NamedTuple):
	"""A log line. Events have a `name` (like `GET`) and the message is then
	the event subject (like the request path)."""

	origin: str
	time: float
	level: LogLevel
	message: str
	name: str | None = None
	code: int | str | None = None
	context: dict[str, TPrimitive] | None = None


class LogConfig:
	"""Process-wide logging sink settings."""

	level: LogLevel = LogLevel.Info
	stream: TextIO = sys.stderr


def setLevel(level: LogLevel | str) -> LogLevel:
	"""Sets the minimum level of the entries that are written. Accepts
	a `LogLevel` or its name (`debug`, `info`, `warning`, ...)."""
	if isinstance(level, str):
		found: LogLevel | None = LOG_LEVEL_NAMES.get(level.strip().lower())
		if found is None:
			raise ValueError(
				f"Unknown log level '{level}', expected one of: {', '.join(LOG_LEVEL_NAMES)}"
			)
		level = found
	LogConfig.level = level
	return level


def setStream(stream: TextIO) -> TextIO:
	"""Redirects log output, returning the previous stream."""
	previous = LogConfig.stream
	LogConfig.stream = stream
	return previous


def formatData(value: Any) -> str:
	if value is None or value == () or value == [] or value == {}:
		return ""
	elif isinstance(value, dict):
		return " ".join(
			f"{Term.BOLD}{k}{Term.NORMAL}={formatData(v)}"
			for k, v in value.items()
			if v is not None
		)
	elif isinstance(value, (list, tuple)):
		return ",".join(formatData(v) for v in value)
	elif isinstance(value, str):
		return repr(value) if " " in value or not value else value
	elif isinstance(value, bool):
		return "yes" if value else "no"
	elif isinstance(value, float):
		return f"{value:0.3f}"
	else:
		return str(value)


def formatEntry(entry: LogEntry) -> str:
	clr: str = Term.Color(LOG_LEVEL_COLOR[entry.level])
	stamp: str = time.strftime("%H:%M:%S", time.localtime(entry.time))
	head: str = f"{stamp} {clr}{LOG_LEVEL_TAG[entry.level]}{Term.RESET} [{entry.origin}]"
	if entry.name:
		head += f" {Term.BOLD}{entry.name}{Term.RESET}"
	if entry.code is not None:
		head += f" {clr}[{entry.code}]{Term.RESET}"
	data: str = formatData(entry.context)
	return f"{head} {entry.message} {data}\n" if data else f"{head} {entry.message}\n"


def send(entry: LogEntry) -> LogEntry:
	if entry.level.value >= LogConfig.level.value:
		out: TextIO = LogConfig.stream
		out.write(formatEntry(entry))
		out.flush()
	return entry


def log(
	level: LogLevel,
	message: str,
	context: dict[str, TPrimitive],
	*,
	name: str | None = None,
	code: int | str | None = None,
	origin: str | None = None,
) -> LogEntry:
	return send(
		LogEntry(
			origin=origin or LogOrigin.get(),
			time=time.time(),
			level=level,
			message=message,
			name=name,
			code=code,
			context=context,
		)
	)


def debug(message: str, *, origin: str | None = None, **context: TPrimitive) -> LogEntry:
	return log(LogLevel.Debug, message, context, origin=origin)


def info(message: str, *, origin: str | None = None, **context: TPrimitive) -> LogEntry:
	return log(LogLevel.Info, message, context, origin=origin)


def warning(
	message: str, *, origin: str | None = None, **context: TPrimitive
) -> LogEntry:
	return log(LogLevel.Warning, message, context, origin=origin)


def error(
	message: str,
	code: int | str | None,
	*,
	origin: str | None = None,
	**context: TPrimitive,
) -> LogEntry:
	"""Logs a managed error, `code` is a short stable identifier (like
	`HOSTPORTERR`) that can be looked for in the logs."""
	return log(LogLevel.Error, message, context, code=code, origin=origin)


def event(
	name: str,
	subject: Any = None,
	*,
	origin: str | None = None,
	**context: TPrimitive,
) -> LogEntry:
	"""Logs something that happened, like a served request (`GET /index.html`)
	or a shutdown."""
	return log(
		LogLevel.Info,
		"" if subject is None else str(subject),
		context,
		name=name,
		origin=origin,
	)


def exception(
	exception: BaseException,
	message: str | None = None,
) -> BaseException:
	summary: str = f"[{exception.__class__.__name__}] {exception}"
	try:
		stream = LogConfig.stream
		stream.write(
			formatEntry(
				LogEntry(
					origin=LogOrigin.get(),
					time=time.time(),
					level=LogLevel.Exception,
					message=f"{message}: {summary}" if message else summary,
				)
			)
		)
		tb = exception.__traceback__
		while tb:
			code = tb.tb_frame.f_code
			stream.write(
				f"    at {code.co_name} ({code.co_filename}:{tb.tb_lineno})\n",
			)
			tb = tb.tb_next
		stream.flush()
	except Exception:  # nosec: B110
		# Reporting must never raise from within an exception handler
		pass
	# So that it can be used as `raise exception(e)`
	return exception


LOGGERS: dict[Any, LogLevel] = {
	debug: LogLevel.Debug,
	info: LogLevel.Info,
	event: LogLevel.Info,
	warning: LogLevel.Warning,
	error: LogLevel.Error,
	exception: LogLevel.Exception,
}


def logged(item: Any) -> bool:
	"""Tells if the given logging function currently writes anything, so that
	callers can skip building costly context."""
	level = LOGGERS.get(item)
	return level is None or level.value >= LogConfig.level.value


# EOF
