import asyncio
import socket
import threading
from pathlib import Path
from typing import Any, Iterator, NamedTuple

import pytest

from fileserve.server import AIOSocketServer, ServerOptions, ServerState
from fileserve.services.files import FileService

INDEX_HTML: bytes = b"<h1>Hi</h1>"
ABOUT_HTML: bytes = b"<h1>About</h1>\n"


@pytest.fixture
def public(tmp_path: Path) -> Path:
	"""A root directory laid out like a small site, next to a file that
	must never be served."""
	root = tmp_path / "public"
	root.mkdir()
	(root / "index.html").write_bytes(INDEX_HTML)
	(root / "about.html").write_bytes(ABOUT_HTML)
	(root / "data.bin").write_bytes(bytes(range(256)) * 4)
	docs = root / "docs"
	docs.mkdir()
	(docs / "guide.txt").write_text("Read me\n")
	(docs / "<b>&.txt").write_text("Escaped\n")
	(tmp_path / "main.go").write_text("package main\n")
	return root


class RunningServer(NamedTuple):
	app: FileService
	state: ServerState
	thread: threading.Thread

	@property
	def port(self) -> int:
		assert self.state.port is not None
		return self.state.port

	def stop(self) -> None:
		self.state.stop()
		self.thread.join(5)
		assert not self.thread.is_alive()


def start(app: FileService, **options: Any) -> RunningServer:
	"""Runs the server for `app` on an ephemeral port, in its own thread and
	event loop."""
	state = ServerState()
	opts = ServerOptions(
		**(
			dict(
				host="127.0.0.1",
				port=0,
				polling=0.05,
				stopSignals=False,
				logRequests=False,
			)
			| options
		)
	)
	thread = threading.Thread(
		target=asyncio.run,
		args=(AIOSocketServer.Serve(app, opts, state=state),),
		daemon=True,
	)
	thread.start()
	assert state.started.wait(5), "Server did not start"
	return RunningServer(app, state, thread)


@pytest.fixture
def server(public: Path) -> Iterator[RunningServer]:
	running = start(FileService(public))
	try:
		yield running
	finally:
		running.stop()


def exchange(port: int, data: bytes, timeout: float = 5.0) -> bytes:
	"""Sends raw bytes and reads until the server closes the connection."""
	with socket.create_connection(("127.0.0.1", port), timeout=timeout) as s:
		s.sendall(data)
		res = bytearray()
		while chunk := s.recv(65_536):
			res += chunk
		return bytes(res)


# EOF
