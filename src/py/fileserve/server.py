import asyncio
import errno
import socket
import threading
import time
from dataclasses import dataclass, field
from signal import SIGINT, SIGTERM
from typing import Any, Callable, NamedTuple

from .config import (
	HOST,
	INDEX,
	KEEPALIVE,
	LISTING,
	LOG_LEVEL,
	LOG_REQUESTS,
	PORT,
	ROOT,
	TIMEOUT,
)
from .http.model import (
	HTTPBodyWriter,
	HTTPFormatError,
	HTTPProcessingStatus,
	HTTPRequest,
	HTTPResponse,
)
from .http.parser import HTTPParser
from .model import Application
from .services.files import FileService
from .utils.files import httpdate
from .utils.limits import LimitType, unlimit
from .utils.logging import (
	LogLevel,
	LogOrigin,
	debug,
	error,
	event,
	exception,
	info,
	logged,
	setLevel,
	warning,
)

SERVER_NAME: str = "fileserve"

# Bounds how long, and how much, is read from a client after the server
# decided to close its connection.
LINGER_TIMEOUT: float = 2.0
LINGER_LIMIT: int = 1_048_576


class ServerStartError(RuntimeError):
	"""The server could not start, typically because the port can't be bound."""


@dataclass(slots=True)
class ServerState:
	isRunning: bool = True
	# The port the server is bound to, set once listening
	port: int | None = None
	started: threading.Event = field(default_factory=threading.Event)

	def stop(self) -> None:
		info("Server stopping…")
		self.isRunning = False

	def onException(
		self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]
	) -> None:
		e = context.get("exception")
		if e:
			exception(e)
		else:
			warning("Event loop error", Message=str(context.get("message")))


class ServerOptions(NamedTuple):
	host: str = "0.0.0.0"  # nosec: B104
	port: int = 8080
	backlog: int = 1_024
	# Timeout for socket reads (once a request has started) and writes
	timeout: float = 10.0
	# This is the polling timeout for accepting new requests, it bounds the
	# time it takes for the server to notice it has been stopped.
	polling: float = 1.0
	readsize: int = 4_096
	# Idle time between two requests on the same connection
	keepalive: float = 5.0
	maxHeaderSize: int = HTTPParser.MAX_HEADER_SIZE
	logRequests: bool = True
	condition: Callable[[], bool] | None = None
	stopSignals: bool = True


OPTIONS: ServerOptions = ServerOptions()


class AIOSocketBodyWriter(HTTPBodyWriter):
	"""Specialized body writer to work with AIO sockets, each write being
	bounded by `timeout`."""

	__slots__ = ["client", "loop", "timeout"]

	def __init__(
		self,
		client: socket.socket,
		loop: asyncio.AbstractEventLoop,
		timeout: float = OPTIONS.timeout,
	) -> None:
		super().__init__()
		self.client: socket.socket = client
		self.loop: asyncio.AbstractEventLoop = loop
		self.timeout: float = timeout

	async def _writeBytes(self, chunk: bytes) -> bool:
		if chunk:
			await asyncio.wait_for(
				self.loop.sock_sendall(self.client, chunk), timeout=self.timeout
			)
		return True


class AIOSocketServer:
	"""AsyncIO backend using sockets directly, one task per connection."""

	@staticmethod
	def FormatError(error: HTTPFormatError) -> HTTPResponse:
		"""The response sent before closing a connection that sent a
		request we could not parse."""
		return HTTPResponse.Create(
			content=f"{error.reason}\n",
			contentType="text/plain; charset=utf-8",
			status=error.status,
			headers={"Connection": "close"},
		)

	@classmethod
	async def OnRequest(
		cls,
		app: Application,
		client: socket.socket,
		*,
		loop: asyncio.AbstractEventLoop,
		options: ServerOptions,
		peer: str | None = None,
	) -> None:
		"""Asynchronous worker, processing the requests sent on a client
		socket in the context of an application."""
		if peer:
			# The task runs in its own context, so this only tags this connection
			LogOrigin.set(peer)
		buffer = bytearray(options.readsize)
		parser: HTTPParser = HTTPParser(options.maxHeaderSize)
		writer: AIOSocketBodyWriter = AIOSocketBodyWriter(
			client, loop, options.timeout
		)
		keep_alive: bool = True
		status: HTTPProcessingStatus = HTTPProcessingStatus.Processing
		read_count: int = 0
		req_count: int = 0
		res_count: int = 0
		try:
			# NOTE: A client may send more than one request per connection,
			# either sequentially (keep-alive) or all at once (pipelining),
			# they're answered in order until `Connection: close`, an error
			# or the keep-alive timeout.
			while keep_alive and not writer.shouldClose:
				try:
					n = await asyncio.wait_for(
						loop.sock_recv_into(client, buffer),
						# An idle connection gets the keep-alive timeout, a
						# partially received request the read timeout.
						timeout=options.keepalive if parser.isIdle else options.timeout,
					)
				except asyncio.TimeoutError:
					status = HTTPProcessingStatus.Timeout
					break
				if not n:
					# A no-data means a close
					status = HTTPProcessingStatus.NoData
					break
				read_count += n
				for atom in parser.feed(bytes(buffer[:n])):
					if isinstance(atom, HTTPFormatError):
						status = HTTPProcessingStatus.BadFormat
						warning(
							"Malformed request",
							Status=atom.status,
							Reason=atom.reason,
						)
						res = cls.FormatError(atom)
						await writer.write(res.head())
						await writer.write(res.body)
						keep_alive = False
						break
					elif isinstance(atom, HTTPRequest):
						req_count += 1
						# We can't know where a request body with a transfer
						# encoding ends, the parser discards the rest.
						if not atom.keepAlive or "Transfer-Encoding" in atom.headers:
							keep_alive = False
						res = await cls.SendResponse(
							atom, app, writer, close=not keep_alive
						)
						res_count += 1
						if options.logRequests:
							event(
								atom.method,
								atom.path,
								Status=res.status,
								Size=res.headers.contentLength,
							)
						if not keep_alive or writer.shouldClose:
							break
					elif atom is HTTPProcessingStatus.Complete:
						status = atom
			if not keep_alive or writer.shouldClose:
				await cls.Linger(client, loop)
		except (BrokenPipeError, ConnectionResetError):
			# Client did an early close
			logged(debug) and debug(
				"Client closed the connection",
				Requests=req_count,
				Responses=res_count,
			)
		except asyncio.TimeoutError:
			warning(
				"Client write timed out",
				Requests=req_count,
				Responses=res_count,
			)
		except Exception as e:
			exception(e)
		finally:
			# NOTE: The above loop takes care of keep alive, so we always close
			# the connection on exit.
			client.close()
		if status is HTTPProcessingStatus.Timeout and not parser.isIdle:
			warning(
				"Client timed out before sending a complete request",
				ReadCount=read_count,
				Requests=req_count,
				Responses=res_count,
			)
		elif status is HTTPProcessingStatus.NoData and not parser.isIdle:
			warning(
				"Client did not feed a complete request",
				ReadCount=read_count,
				Requests=req_count,
				Responses=res_count,
			)

	@staticmethod
	async def Linger(
		client: socket.socket,
		loop: asyncio.AbstractEventLoop,
		timeout: float = LINGER_TIMEOUT,
		limit: int = LINGER_LIMIT,
	) -> int:
		"""Half-closes the connection and discards what the client still
		sends. Closing a socket with unread data resets the connection, and
		the client may then lose the response it has not read yet."""
		read: int = 0
		try:
			client.shutdown(socket.SHUT_WR)
			buffer = bytearray(4_096)
			deadline: float = loop.time() + timeout
			while read < limit and (left := deadline - loop.time()) > 0:
				n = await asyncio.wait_for(
					loop.sock_recv_into(client, buffer), timeout=left
				)
				if not n:
					break
				read += n
		except (asyncio.TimeoutError, OSError) as e:
			logged(debug) and debug(
				"Lingering close interrupted", Reason=str(e)
			)
		return read

	@staticmethod
	async def SendResponse(
		request: HTTPRequest,
		app: Application,
		writer: HTTPBodyWriter,
		*,
		close: bool = False,
	) -> HTTPResponse:
		"""Processes the request within the application and sends the response
		using the given writer. The application's failures become a generic
		error response, transport failures are left to the caller."""
		res: HTTPResponse | None = None
		try:
			r = app.process(request)
			res = r if isinstance(r, HTTPResponse) else await r
		except Exception as e:
			exception(e, f"Failed processing {request.method} {request.path}")
		if res is None:
			res = request.fail()
		try:
			res.setHeaders({"Date": httpdate(time.time()), "Server": SERVER_NAME})
			if close:
				res.setHeader("Connection", "close")
			elif request.protocol == "HTTP/1.0":
				res.setHeader("Connection", "keep-alive")
			await writer.write(res.head())
			if request.method != "HEAD" and res.hasBody:
				await writer.write(res.body)
		finally:
			res.close()
		return res

	@staticmethod
	def Bind(options: ServerOptions) -> socket.socket:
		"""Creates the listening socket, raising `ServerStartError` when the
		address can't be bound. There is no retry: the process is expected to
		be supervised."""
		server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
		try:
			server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
			server.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
			server.bind((options.host, options.port))
			# The argument is the backlog of connections that will be accepted
			# before they are refused.
			server.listen(options.backlog)
		except OSError as e:
			server.close()
			error(
				f"Unable to bind to {options.host}:{options.port}, aborting.",
				"HOSTPORTERR",
				Reason=e.strerror or str(e),
			)
			raise ServerStartError(
				f"Unable to bind to {options.host}:{options.port}: {e.strerror or e}"
			) from e
		# This is what we need to use it with asyncio
		server.setblocking(False)
		return server

	@classmethod
	async def Serve(
		cls,
		app: Application,
		options: ServerOptions = OPTIONS,
		*,
		state: ServerState | None = None,
	) -> ServerState:
		"""Main server coroutine, runs until the state is stopped."""
		server = cls.Bind(options)
		state = state or ServerState()
		state.port = server.getsockname()[1]
		loop = asyncio.get_running_loop()
		# Registers handlers for signals and exception (so that we log them). Note
		# that we'll get a `set_wakeup_fd only works in main thread of the main interpreter`
		# when this is not run out of the main thread.
		signals: bool = (
			options.stopSignals
			and threading.current_thread() is threading.main_thread()
		)
		if signals:
			loop.add_signal_handler(SIGINT, state.stop)
			loop.add_signal_handler(SIGTERM, state.stop)
		loop.set_exception_handler(state.onException)
		tasks: set[asyncio.Task[None]] = set()
		try:
			await app.start()
			info(
				"Fileserve listening",
				Host=options.host,
				Port=state.port,
				Application=app.name,
			)
			state.started.set()
			while state.isRunning:
				if options.condition and not options.condition():
					break
				try:
					client, address = await asyncio.wait_for(
						loop.sock_accept(server), timeout=options.polling or 1.0
					)
				except asyncio.TimeoutError:
					continue
				except OSError as e:
					if e.errno in (errno.EMFILE, errno.ENFILE):
						# Out of descriptors, we give the connections some time
						# to complete.
						warning("Too many open files, delaying accept")
						await asyncio.sleep(0.1)
					else:
						exception(e)
					continue
				task = loop.create_task(
					cls.OnRequest(
						app,
						client,
						loop=loop,
						options=options,
						peer=f"{address[0]}:{address[1]}",
					)
				)
				tasks.add(task)
				task.add_done_callback(tasks.discard)
		finally:
			server.close()
			for task in tasks:
				task.cancel()
			await asyncio.gather(*tasks, return_exceptions=True)
			await app.stop()
			if signals:
				loop.remove_signal_handler(SIGINT)
				loop.remove_signal_handler(SIGTERM)
			state.isRunning = False
			info("Server stopped", Port=state.port)
		return state


def run(
	root: str = ROOT,
	*,
	host: str = HOST,
	port: int = PORT,
	index: str | None = INDEX,
	listing: bool = LISTING,
	backlog: int = OPTIONS.backlog,
	condition: Callable[[], bool] | None = None,
	timeout: float = TIMEOUT,
	polling: float = OPTIONS.polling,
	logRequests: bool = LOG_REQUESTS,
	keepalive: float = KEEPALIVE,
	logLevel: str | LogLevel = LOG_LEVEL,
) -> int:
	"""High level function to serve `root`, returns the process exit code."""
	try:
		setLevel(logLevel)
	except ValueError as e:
		error(str(e), "LOGLEVELERR")
		return 1
	try:
		app = FileService(root, index=index or None, listing=listing)
	except (FileNotFoundError, NotADirectoryError) as e:
		error(str(e), "ROOTERR")
		return 1
	files = unlimit(LimitType.Files)
	logged(debug) and debug("Open files limit", Limit=files)
	options = ServerOptions(
		host=host,
		port=port,
		backlog=backlog,
		condition=condition,
		timeout=timeout,
		polling=polling,
		logRequests=logRequests,
		keepalive=keepalive,
	)
	info("Serving files", Root=str(app.root), Index=index, Listing=listing)
	try:
		asyncio.run(AIOSocketServer.Serve(app, options))
	except ServerStartError:
		return 1
	except KeyboardInterrupt:
		event("ManualShutdown")
	event("EOK")
	return 0


# EOF
