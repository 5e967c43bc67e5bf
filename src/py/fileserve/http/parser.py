import re
from typing import ClassVar, Iterator, Literal, Pattern

from ..utils.io import LineParser
from .model import (
	HTTPAtom,
	HTTPFormatError,
	HTTPHeaders,
	HTTPProcessingStatus,
	HTTPRequest,
	HTTPRequestLine,
	headername,
)

# SEE: RFC 7230 §3.2.6
RE_TOKEN: Pattern[str] = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
RE_PROTOCOL: Pattern[str] = re.compile(r"^HTTP/(\d)\.(\d)$")
RE_TARGET: Pattern[str] = re.compile(r"^[\x21-\x7e]+$")
RE_ABSOLUTE: Pattern[str] = re.compile(r"^https?://[^/?#]*", re.IGNORECASE)

PROTOCOLS: frozenset[str] = frozenset(("HTTP/1.0", "HTTP/1.1"))

BAD_REQUEST: HTTPFormatError = HTTPFormatError(400, "Malformed request line")
BAD_HEADER: HTTPFormatError = HTTPFormatError(400, "Malformed header")
BAD_LENGTH: HTTPFormatError = HTTPFormatError(400, "Invalid Content-Length")
BAD_TLS: HTTPFormatError = HTTPFormatError(400, "TLS is not supported")
BAD_VERSION: HTTPFormatError = HTTPFormatError(505, "Unsupported HTTP version")
TOO_LARGE: HTTPFormatError = HTTPFormatError(431, "Request header too large")


def parseRequestLine(line: str) -> HTTPRequestLine | HTTPFormatError:
	"""Parses `METHOD TARGET PROTOCOL`, where the target is in origin form
	(`/path?query`), absolute form (`http://host/path`) or `*`."""
	parts: list[str] = line.split(" ")
	if len(parts) != 3:
		return BAD_REQUEST
	method, target, protocol = parts
	if not RE_TOKEN.match(method) or not RE_TARGET.match(target):
		return BAD_REQUEST
	if protocol not in PROTOCOLS:
		return BAD_VERSION if RE_PROTOCOL.match(protocol) else BAD_REQUEST
	if (m := RE_ABSOLUTE.match(target)) is not None:
		target = target[m.end() :] or "/"
	if not (target.startswith("/") or target == "*"):
		return BAD_REQUEST
	# Fragments are not supposed to be sent, but we don't want them in paths
	target = target.split("#", 1)[0]
	p: list[str] = target.split("?", 1)
	return HTTPRequestLine(method, p[0], p[1] if len(p) > 1 else "", protocol)


class MessageParser:
	"""Parses an HTTP request line."""

	__slots__ = ["line", "value"]

	def __init__(self) -> None:
		self.line: LineParser = LineParser()
		self.value: HTTPRequestLine | HTTPFormatError | None = None

	@property
	def pending(self) -> int:
		return self.line.pending

	def flush(self) -> HTTPRequestLine | HTTPFormatError | None:
		res = self.value
		self.reset()
		return res

	def reset(self) -> "MessageParser":
		self.line.reset()
		self.value = None
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bool | None, int]:
		available: int = len(chunk) - start
		# A TLS handshake record starts with 0x16 followed by the version, which
		# a browser sends when trying `https://` on a plain port.
		if (
			self.line.pending == 0
			and available >= 3
			and chunk[start] == 0x16
			and chunk[start + 1] == 0x03
		):
			self.value = BAD_TLS
			return True, available
		line, read = self.line.feed(chunk, start)
		if line is None:
			return None, read
		elif not line:
			# SEE: RFC 7230 §3.5, empty lines before the request line are ignored
			return None, read
		else:
			try:
				self.value = parseRequestLine(line.decode("ascii"))
			except UnicodeDecodeError:
				self.value = BAD_REQUEST
			return True, read

	def __str__(self) -> str:
		return f"MessageParser({self.value})"


class HeadersParser:
	__slots__ = ["headers", "contentType", "contentLength", "line", "error"]

	def __init__(self) -> None:
		super().__init__()
		self.line: LineParser = LineParser()
		self.headers: dict[str, str] = {}
		self.contentType: str | None = None
		self.contentLength: int | None = None
		self.error: HTTPFormatError | None = None

	@property
	def pending(self) -> int:
		return self.line.pending

	def flush(self) -> HTTPHeaders:
		res = HTTPHeaders(self.headers, self.contentType, self.contentLength)
		self.reset()
		return res

	def reset(self) -> "HeadersParser":
		self.line.reset()
		self.headers = {}
		self.contentType = None
		self.contentLength = None
		self.error = None
		return self

	def feed(
		self, chunk: bytes, start: int = 0
	) -> tuple[str | Literal[False] | None, int]:
		"""Feeds data from chunk, starting at `start` offset. Returns
		a value and the next start offset. When the value is `None`, no
		header has been extracted, when the value is `False` it's an empty
		line (or an error, stored in `error`), and when the value is a string,
		a header of that name was added."""
		line, read = self.line.feed(chunk, start)
		if line is None:
			return None, read
		elif not line:
			# An empty line denotes the end of headers
			return False, read
		# Header values may carry latin-1 text, names are tokens
		ln: str = line.decode("latin-1")
		i = ln.find(":")
		name: str = ln[:i] if i > 0 else ""
		# Obsolete line folding is rejected, see RFC 7230 §3.2.4
		if not name or ln[0] in " \t" or not RE_TOKEN.match(name):
			self.error = BAD_HEADER
			return False, read
		h: str = name.lower()
		v: str = ln[i + 1 :].strip(" \t")
		if h == "content-length":
			# Only plain digits, `int` would also take signs, spaces and underscores
			length: int = int(v) if v.isascii() and v.isdigit() else -1
			if length < 0 or (
				self.contentLength is not None and self.contentLength != length
			):
				self.error = BAD_LENGTH
				return False, read
			self.contentLength = length
		elif h == "content-type":
			self.contentType = v
		n: str = headername(h)
		# Repeated headers are combined, see RFC 7230 §3.2.2
		self.headers[n] = f"{self.headers[n]}, {v}" if n in self.headers else v
		return n, read

	def __str__(self) -> str:
		return f"HeadersParser({self.headers})"


class BodyLengthParser:
	"""Skips the body of a request with Content-Length set, as no handler
	reads request bodies."""

	__slots__ = ["expected", "read"]

	def __init__(self) -> None:
		self.expected: int = 0
		self.read: int = 0

	def reset(self, length: int = 0) -> "BodyLengthParser":
		self.expected = length
		self.read = 0
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bool | None, int]:
		to_read: int = min(len(chunk) - start, self.expected - self.read)
		self.read += to_read
		return (True if self.read >= self.expected else None), to_read


class BodyRestParser:
	"""Consumes and discards everything that is given to it, used when the
	body length can't be known (`Transfer-Encoding`), in which case the
	connection is closed after the response."""

	__slots__ = ["read"]

	def __init__(self) -> None:
		self.read: int = 0

	def reset(self) -> "BodyRestParser":
		self.read = 0
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bool | None, int]:
		self.read += len(chunk) - start
		return None, len(chunk) - start


class HTTPParser:
	"""A stateful, incremental HTTP request parser. Chunks are fed as they
	come from the socket and the parser yields request lines, headers and
	complete requests (or a format error, after which it stops parsing)."""

	MAX_HEADER_SIZE: ClassVar[int] = 16_384

	def __init__(self, maxHeaderSize: int | None = None) -> None:
		self.message: MessageParser = MessageParser()
		self.headers: HeadersParser = HeadersParser()
		self.bodyLength: BodyLengthParser = BodyLengthParser()
		self.bodyRest: BodyRestParser = BodyRestParser()
		self.parser: (
			MessageParser | HeadersParser | BodyLengthParser | BodyRestParser | None
		) = self.message
		self.maxHeaderSize: int = maxHeaderSize or self.MAX_HEADER_SIZE
		self.requestLine: HTTPRequestLine | None = None
		# Number of bytes of the current request head
		self.headSize: int = 0

	@property
	def hasError(self) -> bool:
		return self.parser is None

	@property
	def isIdle(self) -> bool:
		"""Tells if the parser is between two requests, with nothing buffered."""
		return (
			self.parser is self.message
			and self.headSize == 0
			and self.message.pending == 0
		)

	def fail(self, error: HTTPFormatError) -> HTTPFormatError:
		self.parser = None
		return error

	def feed(self, chunk: bytes) -> Iterator[HTTPAtom]:
		size: int = len(chunk)
		offset: int = 0
		while offset < size:
			parser = self.parser
			if parser is None:
				# We stop at the first error, the connection is to be closed
				return
			ln, read = parser.feed(chunk, offset)
			offset += read
			if parser is self.message or parser is self.headers:
				self.headSize += read
				if self.headSize > self.maxHeaderSize:
					yield self.fail(TOO_LARGE)
					return
			if ln is None:
				continue
			elif parser is self.message:
				line = self.message.flush()
				if isinstance(line, HTTPFormatError):
					yield self.fail(line)
					return
				elif line is not None:
					self.requestLine = line
					yield line
					self.parser = self.headers.reset()
			elif parser is self.headers:
				if ln is not False:
					# `ln` is going to be the header name as a string there.
					continue
				elif self.headers.error:
					yield self.fail(self.headers.error)
					return
				headers = self.headers.flush()
				yield headers
				line = self.requestLine
				if line is None:
					yield self.fail(BAD_REQUEST)
					return
				yield HTTPRequest(
					method=line.method,
					path=line.path,
					query=line.query,
					headers=headers,
					protocol=line.protocol,
				)
				self.requestLine = None
				self.headSize = 0
				if "Transfer-Encoding" in headers.headers:
					self.parser = self.bodyRest.reset()
					yield HTTPProcessingStatus.Body
				elif headers.contentLength:
					self.parser = self.bodyLength.reset(headers.contentLength)
					yield HTTPProcessingStatus.Body
				else:
					self.parser = self.message.reset()
					yield HTTPProcessingStatus.Complete
			elif parser is self.bodyLength:
				self.parser = self.message.reset()
				yield HTTPProcessingStatus.Complete
			else:
				raise RuntimeError(f"Unsupported parser: {parser}")


# EOF
