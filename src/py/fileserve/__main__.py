import argparse
import sys

from . import config
from .server import run
from .utils.logging import setLevel


def parser() -> argparse.ArgumentParser:
	p = argparse.ArgumentParser(
		prog="fileserve",
		description="Serves the files of a local directory over HTTP",
	)
	p.add_argument(
		"root",
		nargs="?",
		default=config.ROOT,
		help=f"Directory to serve (default: {config.ROOT})",
	)
	p.add_argument(
		"-p", "--port", type=int, default=config.PORT, help="Port to listen on"
	)
	p.add_argument("-H", "--host", default=config.HOST, help="Address to bind")
	p.add_argument(
		"--index",
		default=config.INDEX,
		help="File served for directory requests, empty to disable",
	)
	p.add_argument(
		"--no-listing",
		dest="listing",
		action="store_false",
		default=config.LISTING,
		help="Respond 403 to directories without an index instead of listing them",
	)
	p.add_argument(
		"--timeout",
		type=float,
		default=config.TIMEOUT,
		help="Socket read/write timeout, in seconds",
	)
	p.add_argument(
		"--keepalive",
		type=float,
		default=config.KEEPALIVE,
		help="Idle timeout of kept-alive connections, in seconds",
	)
	p.add_argument(
		"-q",
		"--quiet",
		dest="logRequests",
		action="store_false",
		default=config.LOG_REQUESTS,
		help="Do not log requests",
	)
	p.add_argument("--log-level", default=config.LOG_LEVEL, help="Minimum log level")
	return p


def main(args: list[str] | None = None) -> int:
	p = parser()
	options = p.parse_args(args)
	try:
		setLevel(options.log_level)
	except ValueError as e:
		p.error(str(e))
	return run(
		options.root,
		host=options.host,
		port=options.port,
		index=options.index,
		listing=options.listing,
		timeout=options.timeout,
		keepalive=options.keepalive,
		logRequests=options.logRequests,
		logLevel=options.log_level,
	)


if __name__ == "__main__":
	sys.exit(main())

# EOF
