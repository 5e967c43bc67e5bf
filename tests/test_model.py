from io import StringIO

import pytest

from fileserve.__main__ import main, parser
from fileserve.http.model import HTTPRequest, HTTPResponse, headername
from fileserve.utils.files import contentType, httpdate, parseHTTPDate
from fileserve.utils.logging import (
	LogLevel,
	debug,
	error,
	info,
	logged,
	setLevel,
	setStream,
	warning,
)


def test_headername() -> None:
	assert headername("content-type") == "Content-Type"
	assert headername("IF-MODIFIED-SINCE") == "If-Modified-Since"
	assert headername("Host") == "Host"


def test_response_head() -> None:
	res = HTTPResponse.Create(
		"Hello", contentType="text/plain; charset=utf-8", headers={"x-extra": "1"}
	)
	assert res.head() == (
		b"HTTP/1.1 200 OK\r\n"
		b"X-Extra: 1\r\n"
		b"Content-Type: text/plain; charset=utf-8\r\n"
		b"Content-Length: 5\r\n"
		b"\r\n"
	)
	assert res.body is not None and res.body.payload == b"Hello"


def test_response_without_body() -> None:
	res = HTTPRequest("GET", "/").respondEmpty(204)
	assert res.head() == b"HTTP/1.1 204 No Content\r\n\r\n"
	# An error always has a body, even when empty
	res = HTTPResponse.Create(status=404)
	assert b"Content-Length: 0\r\n" in res.head()


def test_response_protocol() -> None:
	res = HTTPRequest("GET", "/", protocol="HTTP/1.0").notFound()
	assert res.head().startswith(b"HTTP/1.0 404 Not Found\r\n")


def test_response_headers() -> None:
	res = HTTPResponse.Create("x")
	res.setHeader("cache-control", "no-cache")
	assert res.getHeader("Cache-Control") == "no-cache"
	res.setHeader("Cache-Control", None)
	assert res.getHeader("Cache-Control") is None


def test_content_type() -> None:
	assert contentType("index.html") == "text/html; charset=utf-8"
	assert contentType("/a/b/style.CSS") == "text/css; charset=utf-8"
	assert contentType("app.js") == "text/javascript; charset=utf-8"
	assert contentType("image.png") == "image/png"
	assert contentType("data.json") == "application/json"
	assert contentType("archive.unknownext") == "application/octet-stream"
	assert contentType("Makefile") == "application/octet-stream"
	assert contentType("dir.d/noext") == "application/octet-stream"


def test_http_dates() -> None:
	assert httpdate(0) == "Thu, 01 Jan 1970 00:00:00 GMT"
	assert parseHTTPDate("Thu, 01 Jan 1970 00:01:00 GMT") == 60
	assert parseHTTPDate("yesterday") is None
	assert parseHTTPDate(None) is None


def test_log_levels() -> None:
	out = StringIO()
	previous = setStream(out)
	try:
		setLevel("warning")
		assert not logged(debug)
		assert not logged(info)
		assert logged(warning)
		info("Hidden")
		warning("Shown", Path="/a")
		error("Failed", "ERRCODE")
		text = out.getvalue()
		assert "Hidden" not in text
		assert "Shown" in text
		assert "/a" in text
		assert "ERRCODE" in text
		with pytest.raises(ValueError):
			setLevel("verbose")
	finally:
		setLevel(LogLevel.Info)
		setStream(previous)


def test_cli_options() -> None:
	options = parser().parse_args(
		["site", "-p", "9000", "--no-listing", "--index", "", "-q"]
	)
	assert options.root == "site"
	assert options.port == 9000
	assert options.listing is False
	assert options.index == ""
	assert options.logRequests is False


def test_cli_missing_root(tmp_path) -> None:
	assert main([str(tmp_path / "missing"), "-p", "0", "-H", "127.0.0.1"]) == 1


def test_cli_bad_log_level(tmp_path) -> None:
	with pytest.raises(SystemExit) as e:
		main([str(tmp_path), "--log-level", "verbose"])
	assert e.value.code == 2


# EOF
