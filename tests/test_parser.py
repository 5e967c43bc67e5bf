from fileserve.http.model import (
	HTTPFormatError,
	HTTPHeaders,
	HTTPProcessingStatus,
	HTTPRequest,
	HTTPRequestLine,
)
from fileserve.http.parser import HTTPParser, parseRequestLine
from fileserve.utils.io import LineParser


def feed(parser: HTTPParser, *chunks: bytes) -> list:
	return [atom for chunk in chunks for atom in parser.feed(chunk)]


def requests(atoms: list) -> list[HTTPRequest]:
	return [_ for _ in atoms if isinstance(_, HTTPRequest)]


def errors(atoms: list) -> list[HTTPFormatError]:
	return [_ for _ in atoms if isinstance(_, HTTPFormatError)]


def test_line_parser() -> None:
	parser = LineParser()
	lines: list[bytes] = []
	for chunk in [
		b"GET /time/5 HTTP/1.1\r\nHost: 127.0.0.1\r\nConnection: close",
		b"\r\n\r",
		b"\n",
	]:
		offset: int = 0
		while True:
			line, read = parser.feed(chunk, offset)
			if line is None:
				break
			lines.append(line)
			offset += read
	assert lines == [
		b"GET /time/5 HTTP/1.1",
		b"Host: 127.0.0.1",
		b"Connection: close",
		b"",
	]


def test_request_in_chunks() -> None:
	parser = HTTPParser()
	atoms = feed(
		parser,
		b"GET /time/5 ",
		b"HTTP/1.1\r\nHost: ",
		b"127.0.0.1\r",
		b"\nConn",
		b"ection: close\r\n",
		b"\r",
		b"\n",
	)
	assert isinstance(atoms[0], HTTPRequestLine)
	assert isinstance(atoms[1], HTTPHeaders)
	(req,) = requests(atoms)
	assert req.method == "GET"
	assert req.path == "/time/5"
	assert req.protocol == "HTTP/1.1"
	assert req.header("host") == "127.0.0.1"
	assert req.header("Connection") == "close"
	assert not req.keepAlive
	assert atoms[-1] is HTTPProcessingStatus.Complete
	assert parser.isIdle


def test_request_line_forms() -> None:
	assert parseRequestLine("GET /a/b?x=1&y HTTP/1.1") == HTTPRequestLine(
		"GET", "/a/b", "x=1&y", "HTTP/1.1"
	)
	assert parseRequestLine("GET http://example.com/a?b HTTP/1.1") == HTTPRequestLine(
		"GET", "/a", "b", "HTTP/1.1"
	)
	assert parseRequestLine("GET http://example.com HTTP/1.0") == HTTPRequestLine(
		"GET", "/", "", "HTTP/1.0"
	)
	assert parseRequestLine("OPTIONS * HTTP/1.1").path == "*"
	assert parseRequestLine("GET /a#frag HTTP/1.1").path == "/a"


def test_request_line_errors() -> None:
	for line in (
		"GET",
		"GET /",
		"GET  / HTTP/1.1",
		"GET / HTTP/1.1 extra",
		"G(T / HTTP/1.1",
		"GET relative HTTP/1.1",
		"GET / FTP/1.0",
	):
		res = parseRequestLine(line)
		assert isinstance(res, HTTPFormatError), line
		assert res.status == 400, line
	assert parseRequestLine("GET / HTTP/2.0").status == 505


def test_keep_alive() -> None:
	(req,) = requests(feed(HTTPParser(), b"GET / HTTP/1.1\r\n\r\n"))
	assert req.keepAlive
	(req,) = requests(feed(HTTPParser(), b"GET / HTTP/1.0\r\n\r\n"))
	assert not req.keepAlive
	(req,) = requests(
		feed(HTTPParser(), b"GET / HTTP/1.0\r\nConnection: Keep-Alive\r\n\r\n")
	)
	assert req.keepAlive


def test_pipelined_requests() -> None:
	atoms = feed(
		HTTPParser(),
		b"GET /a HTTP/1.1\r\nHost: x\r\n\r\n"
		b"HEAD /b HTTP/1.1\r\nHost: x\r\n\r\n"
		b"GET /c?d HTTP/1.1\r\nHost: x\r\n\r\n",
	)
	assert [(_.method, _.path, _.query) for _ in requests(atoms)] == [
		("GET", "/a", None),
		("HEAD", "/b", None),
		("GET", "/c", "d"),
	]


def test_body_is_skipped() -> None:
	parser = HTTPParser()
	atoms = feed(
		parser,
		b"POST /upload HTTP/1.1\r\nContent-Length: 11\r\n\r\nhello",
		b" world",
		b"GET /next HTTP/1.1\r\n\r\n",
	)
	reqs = requests(atoms)
	assert [_.path for _ in reqs] == ["/upload", "/next"]
	assert reqs[0].contentLength == 11
	assert HTTPProcessingStatus.Body in atoms
	assert parser.isIdle


def test_leading_empty_lines() -> None:
	(req,) = requests(feed(HTTPParser(), b"\r\n\r\nGET / HTTP/1.1\r\n\r\n"))
	assert req.path == "/"


def test_repeated_headers() -> None:
	(req,) = requests(
		feed(HTTPParser(), b"GET / HTTP/1.1\r\nAccept: a\r\naccept: b\r\n\r\n")
	)
	assert req.header("Accept") == "a, b"


def test_malformed_request() -> None:
	parser = HTTPParser()
	atoms = feed(parser, b"garbage\r\n\r\n")
	assert errors(atoms) == [HTTPFormatError(400, "Malformed request line")]
	assert parser.hasError
	# Nothing is parsed after an error
	assert feed(parser, b"GET / HTTP/1.1\r\n\r\n") == []


def test_malformed_headers() -> None:
	for head in (
		b"GET / HTTP/1.1\r\nNo colon here\r\n\r\n",
		b"GET / HTTP/1.1\r\n: empty\r\n\r\n",
		b"GET / HTTP/1.1\r\nHost: x\r\n folded\r\n\r\n",
		b"GET / HTTP/1.1\r\nContent-Length: ten\r\n\r\n",
		b"GET / HTTP/1.1\r\nContent-Length: -1\r\n\r\n",
		b"GET / HTTP/1.1\r\nContent-Length: +5\r\n\r\n",
		b"GET / HTTP/1.1\r\nContent-Length: 1_0\r\n\r\n",
		b"GET / HTTP/1.1\r\nContent-Length: 0x10\r\n\r\n",
		b"GET / HTTP/1.1\r\nContent-Length: 1\r\nContent-Length: 2\r\n\r\n",
	):
		atoms = feed(HTTPParser(), head)
		assert not requests(atoms), head
		assert [_.status for _ in errors(atoms)] == [400], head


def test_header_too_large() -> None:
	parser = HTTPParser(maxHeaderSize=1024)
	atoms = feed(parser, b"GET / HTTP/1.1\r\n", b"X-Big: " + b"a" * 2048)
	assert [_.status for _ in errors(atoms)] == [431]
	assert not requests(atoms)


def test_tls_handshake() -> None:
	atoms = feed(HTTPParser(), b"\x16\x03\x01\x02\x00\x01\x00\x01\xfc\x03\x03")
	assert [_.status for _ in errors(atoms)] == [400]


def test_non_ascii_request_line() -> None:
	atoms = feed(HTTPParser(), "GET /café HTTP/1.1\r\n\r\n".encode("utf8"))
	assert [_.status for _ in errors(atoms)] == [400]


# EOF
