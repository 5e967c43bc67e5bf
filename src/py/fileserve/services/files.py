import errno
import os
import stat
import time
from html import escape
from pathlib import Path
from urllib.parse import quote

from ..http.model import HTTPBodyFile, HTTPRequest, HTTPResponse
from ..model import Application
from ..utils.files import FileEntry, contentType, httpdate, listdir, parseHTTPDate
from ..utils.logging import debug, exception, logged, warning
from ..utils.paths import BadPath, PathEscape, ResolvedPath, realpath, resolve

FILE_CSS: str = """
:root {
    font-family: sans-serif;
    font-size: 14px;
    line-height: 1.35em;
    padding: 20px;
    background: #F0F0F0;
}
ul {
    padding: 0px 20px;
    margin: 1.25em 0em;
    list-style-type: none;
}
li {
    padding: 0px 10px;
    margin: 0.5em 0em;
}
"""


class FileService(Application):
	"""Serves the files under a root directory.

	Directory requests follow a fixed policy: a directory URL without a
	trailing slash is redirected to the slash form, then the `index` file
	is served when present, otherwise an HTML listing is returned when
	`listing` is enabled, and a `403` when it is not."""

	def __init__(
		self,
		root: str | Path | None = None,
		*,
		index: str | None = "index.html",
		listing: bool = True,
		name: str | None = None,
	):
		super().__init__(name)
		path: Path = root if isinstance(root, Path) else Path(root or ".")
		if not path.exists():
			raise FileNotFoundError(f"Root directory does not exist: {path}")
		if not path.is_dir():
			raise NotADirectoryError(f"Root is not a directory: {path}")
		self.root: Path = path.resolve()
		self.index: str | None = index
		self.listing: bool = listing

	def resolvePath(self, path: str) -> ResolvedPath:
		return resolve(self.root, path)

	def onGet(self, request: HTTPRequest) -> HTTPResponse:
		try:
			resolved = self.resolvePath(request.path)
		except BadPath as e:
			warning("Rejected malformed path", Path=request.path, Reason=str(e))
			return request.badRequest()
		except PathEscape as e:
			warning("Rejected path outside of root", Path=request.path, Reason=str(e))
			return request.notAuthorized()
		path: str = resolved.path
		try:
			mode: int = resolved.local.stat().st_mode
		except (FileNotFoundError, NotADirectoryError):
			return request.notFound()
		except PermissionError:
			return request.notAuthorized()
		except OSError as e:
			if e.errno == errno.ELOOP:
				return request.notFound()
			exception(e, f"Could not stat {resolved.local}")
			return request.fail()
		if stat.S_ISDIR(mode):
			if not path.endswith("/"):
				return self.redirect(request, f"{path}/")
			return self.serveDirectory(request, resolved)
		elif path.endswith("/"):
			return self.redirect(request, path.rstrip("/"))
		elif stat.S_ISREG(mode):
			return self.serveFile(request, resolved.local)
		else:
			# Sockets, FIFOs and devices
			return request.notAuthorized()

	# HEAD responses are GET responses, of which the server only sends the head
	onHead = onGet

	def redirect(self, request: HTTPRequest, path: str) -> HTTPResponse:
		location: str = quote(path)
		return request.redirect(
			f"{location}?{request.query}" if request.query else location,
			permanent=True,
		)

	def serveDirectory(
		self, request: HTTPRequest, resolved: ResolvedPath
	) -> HTTPResponse:
		if self.index:
			# The index may be a symlink, so it goes through the same checks
			try:
				index: Path | None = realpath(self.root, resolved.local / self.index)
			except (BadPath, PathEscape):
				index = None
			if index and index.is_file():
				return self.serveFile(request, index)
		if not self.listing:
			return request.notAuthorized()
		try:
			entries: list[FileEntry] = listdir(resolved.local)
		except PermissionError:
			return request.notAuthorized()
		except (FileNotFoundError, NotADirectoryError):
			return request.notFound()
		except OSError as e:
			exception(e, f"Could not list {resolved.local}")
			return request.fail()
		return request.respondHTML(self.renderDirectory(resolved.path, entries))

	def serveFile(self, request: HTTPRequest, path: Path) -> HTTPResponse:
		# We open the file here: the file may have changed since we checked
		# it, and from now on we're working with the open descriptor.
		try:
			body: HTTPBodyFile = HTTPBodyFile.Open(path)
		except (FileNotFoundError, NotADirectoryError, IsADirectoryError):
			warning("File disappeared before it could be read", Path=str(path))
			return request.notFound()
		except PermissionError:
			warning("File is not readable", Path=str(path))
			return request.notAuthorized()
		except OSError as e:
			exception(e, f"Could not open {path}")
			return request.fail()
		# HTTP dates have a second precision
		modified: int = int(body.modified)
		headers: dict[str, str] = {"Last-Modified": httpdate(modified)}
		since: float | None = parseHTTPDate(request.header("If-Modified-Since"))
		if since is not None and modified <= since:
			body.close()
			return request.notModified(headers)
		logged(debug) and debug(
			"Serving file", Path=str(path), Size=body.length, Method=request.method
		)
		return request.respond(
			content=body, contentType=contentType(path), headers=headers
		)

	def renderDirectory(self, path: str, entries: list[FileEntry]) -> str:
		"""Renders the HTML listing for the directory at the request `path`."""
		items: list[str] = []
		if path != "/":
			items.append('<li><a href="../">../</a></li>')
		for entry in entries:
			suffix: str = "/" if entry.isDirectory else ""
			# Names that aren't valid UTF-8 keep their raw bytes in the link,
			# and are shown with replacement characters.
			raw: bytes = os.fsencode(entry.name)
			label: str = raw.decode("utf8", "replace")
			details: list[str] = []
			if entry.contentSize is not None:
				details.append(str(entry.contentSize))
			if entry.updatedAt is not None:
				details.append(
					time.strftime("%Y-%m-%d %H:%M", time.gmtime(entry.updatedAt))
				)
			meta: str = f" <small>{escape(', '.join(details))}</small>" if details else ""
			# The `./` prefix prevents names like `a:b` from reading as a scheme
			items.append(
				f'<li><a href="./{escape(quote(raw))}{suffix}">{escape(label)}{suffix}</a>'
				f"{meta}</li>"
			)
		title: str = escape(path)
		return "".join(
			(
				"<!DOCTYPE html>\n<html><head>",
				'<meta charset="utf-8">',
				'<meta name="viewport" content="width=device-width, initial-scale=1.0">',
				f"<title>Index of {title}</title>",
				f"<style>{FILE_CSS}</style>",
				f"</head><body><h1>Index of {title}</h1>",
				f"<ul>{''.join(items)}</ul>",
				"</body></html>\n",
			)
		)


# EOF
