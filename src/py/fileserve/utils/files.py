import mimetypes
import os
import stat
from email.utils import formatdate, parsedate_to_datetime
from pathlib import Path
from typing import NamedTuple

mimetypes.init()

DEFAULT_CONTENT_TYPE: str = "application/octet-stream"

# Types that `mimetypes` gets wrong or misses depending on the platform
MIME_TYPES: dict[str, str] = dict(
	bz2="application/x-bzip",
	gz="application/gzip",
	js="text/javascript",
	mjs="text/javascript",
	json="application/json",
	map="application/json",
	md="text/markdown",
	svg="image/svg+xml",
	wasm="application/wasm",
	webmanifest="application/manifest+json",
	woff2="font/woff2",
)


def contentType(path: Path | str) -> str:
	"""Guesses the content type from the given path's extension, falling back
	to `application/octet-stream`. Textual types are tagged as UTF-8."""
	name = os.path.basename(str(path))
	ext: str | None = name.rsplit(".", 1)[-1].lower() if "." in name else None
	res: str = (
		found
		if ext and (found := MIME_TYPES.get(ext))
		else mimetypes.guess_type(name.lower())[0] or DEFAULT_CONTENT_TYPE
	)
	return f"{res}; charset=utf-8" if res.startswith("text/") else res


def httpdate(timestamp: float) -> str:
	"""Formats a timestamp as an RFC 7231 HTTP date."""
	return formatdate(timestamp, usegmt=True)


def parseHTTPDate(value: str | None) -> float | None:
	"""Parses an HTTP date, returning the timestamp or `None` when invalid."""
	if not value:
		return None
	try:
		return parsedate_to_datetime(value).timestamp()
	except (TypeError, ValueError, IndexError):
		return None


class FileEntry(NamedTuple):
	"""A directory entry, as shown in listings."""

	name: str
	isDirectory: bool
	contentSize: int | None = None
	updatedAt: float | None = None

	@staticmethod
	def FromDirEntry(entry: os.DirEntry[str]) -> "FileEntry":
		try:
			stats = entry.stat()
		except OSError:
			# Dangling symlinks and entries removed while listing
			return FileEntry(name=entry.name, isDirectory=False)
		is_dir: bool = stat.S_ISDIR(stats.st_mode)
		return FileEntry(
			name=entry.name,
			isDirectory=is_dir,
			contentSize=None if is_dir else stats.st_size,
			updatedAt=stats.st_mtime,
		)


def listdir(path: Path) -> list[FileEntry]:
	"""Lists the directory at `path`, sorted by name."""
	with os.scandir(path) as entries:
		return sorted(
			(FileEntry.FromDirEntry(_) for _ in entries), key=lambda _: _.name
		)


# EOF
