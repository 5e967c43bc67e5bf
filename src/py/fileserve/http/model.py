import os
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import (
	Any,
	BinaryIO,
	NamedTuple,
	TypeAlias,
	Union,
)

from ..utils.io import DEFAULT_ENCODING
from .api import ResponseFactory
from .status import reason

# -----------------------------------------------------------------------------
#
# HELPERS
#
# -----------------------------------------------------------------------------


def headername(name: str, *, headers: dict[str, str] = {}) -> str:
	"""Normalizes the header name as `Kebab-Case`."""
	if name in headers:
		return headers[name]
	key: str = name.lower()
	if key in headers:
		return headers[key]
	else:
		normalized: str = "-".join(_.capitalize() for _ in name.split("-"))
		headers[key] = normalized
		return normalized


# -----------------------------------------------------------------------------
#
# DATA MODEL
#
# -----------------------------------------------------------------------------


class HTTPRequestLine(NamedTuple):
	"""Represents a request status line"""

	method: str
	path: str
	query: str
	protocol: str


class HTTPHeaders(NamedTuple):
	"""Wraps HTTP headers, keeping key information for response/request processing."""

	headers: dict[str, str]
	contentType: str | None = None
	contentLength: int | None = None


class HTTPProcessingStatus(Enum):
	"""Internal parser/processor state management"""

	Processing = 0
	Body = 1
	Complete = 2
	Timeout = 10
	NoData = 11
	BadFormat = 12


class HTTPFormatError(NamedTuple):
	"""Produced by the parser when the request can't be parsed. The
	connection is expected to be answered with `status` and closed."""

	status: int
	reason: str


# Type alias for the parser would produce
HTTPAtom: TypeAlias = Union[
	HTTPRequestLine,
	HTTPHeaders,
	HTTPProcessingStatus,
	HTTPFormatError,
	"HTTPRequest",
]

# -----------------------------------------------------------------------------
#
# BODY
#
# -----------------------------------------------------------------------------


class HTTPBodyBlob(NamedTuple):
	"""Represents a whole body as bytes."""

	payload: bytes = b""
	length: int = 0

	@staticmethod
	def FromBytes(data: bytes) -> "HTTPBodyBlob":
		return HTTPBodyBlob(payload=data, length=len(data))


class HTTPBodyFile(NamedTuple):
	"""Represents an HTTP body from a file that is already open, so that the
	file can't vanish between the response creation and its transmission."""

	path: Path
	file: BinaryIO
	length: int
	modified: float

	@staticmethod
	def Open(path: Path) -> "HTTPBodyFile":
		"""Opens the file at `path`, the size and modification time are
		taken from the open descriptor. Raises `OSError` subclasses when the file can't be read."""
		f: BinaryIO = open(path, "rb")
		try:
			stats = os.fstat(f.fileno())
		except OSError:
			f.close()
			raise
		return HTTPBodyFile(path, f, stats.st_size, stats.st_mtime)

	def close(self) -> None:
		self.file.close()


# The different types of bodies that are managed
THTTPBody: TypeAlias = HTTPBodyBlob | HTTPBodyFile


class HTTPBodyWriter(ABC):
	"""A generic writer for bodies, backed by a transport."""

	__slots__ = ["shouldClose"]

	def __init__(self) -> None:
		self.shouldClose: bool = False

	async def write(self, body: THTTPBody | bytes | None) -> bool:
		"""Writes the given type of body."""
		if isinstance(body, bytes):
			return await self._writeBytes(body)
		elif isinstance(body, HTTPBodyBlob):
			return await self._writeBytes(body.payload)
		elif isinstance(body, HTTPBodyFile):
			sent: int = await self._writeFile(body.file, body.length)
			if sent != body.length:
				# The client was announced a length we could not honour, the
				# only way to signal it is to close the connection.
				self.shouldClose = True
				return False
			return True
		elif body is None:
			return True
		else:
			raise ValueError(f"Unsupported body format: {body}")

	async def _writeFile(self, file: BinaryIO, count: int, size: int = 64_000) -> int:
		sent: int = 0
		while sent < count and (chunk := file.read(min(size, count - sent))):
			await self._writeBytes(chunk)
			sent += len(chunk)
		return sent

	@abstractmethod
	async def _writeBytes(self, chunk: bytes) -> bool: ...


# -----------------------------------------------------------------------------
#
# REQUESTS
#
# -----------------------------------------------------------------------------


class HTTPRequest(ResponseFactory["HTTPResponse"]):
	"""Represents an HTTP requests, which also acts as a factory for
	responses."""

	__slots__ = [
		"protocol",
		"method",
		"path",
		"query",
		"_headers",
	]

	def __init__(
		self,
		method: str,
		path: str,
		query: str | None = None,
		headers: HTTPHeaders | None = None,
		protocol: str = "HTTP/1.1",
	):
		super().__init__()
		self.method: str = method
		self.path: str = path
		self.query: str | None = query or None
		self.protocol: str = protocol
		self._headers: HTTPHeaders = headers or HTTPHeaders({})

	@property
	def headers(self) -> dict[str, str]:
		return self._headers.headers

	def header(self, name: str) -> str | None:
		return self._headers.headers.get(headername(name))

	@property
	def contentType(self) -> str | None:
		return self._headers.contentType

	@property
	def contentLength(self) -> int | None:
		return self._headers.contentLength

	@property
	def keepAlive(self) -> bool:
		"""Tells if the client expects the connection to stay open after
		the response."""
		connection: str = (self.header("Connection") or "").lower()
		if self.protocol == "HTTP/1.0":
			return "keep-alive" in connection
		else:
			return "close" not in connection

	def respond(
		self,
		content: Any = None,
		contentType: str | None = None,
		contentLength: int | None = None,
		status: int = 200,
		headers: dict[str, str] | None = None,
		message: str | None = None,
	) -> "HTTPResponse":
		return HTTPResponse.Create(
			status=status,
			message=message,
			content=content,
			contentType=contentType,
			contentLength=contentLength,
			protocol=self.protocol,
			headers=headers,
		)

	def __str__(self) -> str:
		return f"Request({self.method} {self.path}{f'?{self.query}' if self.query else ''} {self.headers})"


# -----------------------------------------------------------------------------
#
# RESPONSE
#
# -----------------------------------------------------------------------------


class HTTPResponse:
	"""An HTTP response."""

	@staticmethod
	def Create(
		content: Any = None,
		contentType: str | None = None,
		contentLength: int | None = None,
		headers: dict[str, str] | None = None,
		status: int = 200,
		message: str | None = None,
		protocol: str = "HTTP/1.1",
	) -> "HTTPResponse":
		"""Factory method to create HTTP response objects."""
		body: THTTPBody | None = None
		if content is None:
			pass
		elif isinstance(content, str):
			body = HTTPBodyBlob.FromBytes(content.encode(DEFAULT_ENCODING))
		elif isinstance(content, bytes):
			body = HTTPBodyBlob.FromBytes(content)
		elif isinstance(content, HTTPBodyFile) or isinstance(content, HTTPBodyBlob):
			body = content
		else:
			raise ValueError(f"Unsupported content {type(content)}:{content}")
		res_headers: dict[str, str] = (
			{headername(k): v for k, v in headers.items()} if headers else {}
		)
		if contentType is not None:
			res_headers["Content-Type"] = contentType
		# The body length wins over any given value, as it's what will be sent
		if body is not None:
			contentLength = body.length
		if contentLength is not None:
			res_headers["Content-Length"] = str(contentLength)
		elif "Content-Length" in res_headers:
			contentLength = int(res_headers["Content-Length"])
		return HTTPResponse(
			status=status,
			message=message or reason(status),
			headers=HTTPHeaders(
				res_headers,
				contentType=res_headers.get("Content-Type"),
				contentLength=contentLength,
			),
			body=body,
			protocol=protocol,
		)

	__slots__ = [
		"protocol",
		"status",
		"message",
		"headers",
		"body",
	]

	def __init__(
		self,
		protocol: str,
		status: int,
		message: str | None,
		headers: HTTPHeaders,
		body: THTTPBody | None = None,
	):
		super().__init__()
		self.protocol: str = protocol
		self.status: int = status
		self.message: str | None = message
		self.headers: HTTPHeaders = headers
		self.body: THTTPBody | None = body

	@property
	def hasBody(self) -> bool:
		# SEE: RFC 7230 §3.3.3, these never carry a body
		return not (self.status < 200 or self.status in (204, 304))

	def getHeader(self, name: str) -> str | None:
		return self.headers.headers.get(headername(name))

	def setHeader(self, name: str, value: str | int | None) -> "HTTPResponse":
		if value is None:
			self.headers.headers.pop(headername(name), None)
		else:
			self.headers.headers[headername(name)] = str(value)
		return self

	def setHeaders(self, headers: dict[str, str | int | None]) -> "HTTPResponse":
		for k, v in headers.items():
			self.setHeader(k, v)
		return self

	def head(self) -> bytes:
		"""Serializes the head as a payload."""
		headers: dict[str, str] = self.headers.headers
		if self.hasBody and "Content-Length" not in headers:
			headers["Content-Length"] = "0"
		lines: list[str] = [f"{headername(k)}: {v}" for k, v in headers.items()]
		lines.insert(0, f"{self.protocol} {self.status} {self.message or reason(self.status)}")
		lines.append("")
		lines.append("")
		# Header values are ASCII in our case, latin-1 keeps any other byte as-is
		return "\r\n".join(lines).encode("latin-1")

	def close(self) -> None:
		"""Releases the resources held by the body."""
		if isinstance(self.body, HTTPBodyFile):
			self.body.close()

	def __str__(self) -> str:
		return f"Response({self.protocol} {self.status} {self.message} {self.headers} {self.body})"


# EOF
