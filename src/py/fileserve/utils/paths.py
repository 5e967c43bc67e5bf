from pathlib import Path
from typing import NamedTuple
from urllib.parse import unquote

# -----------------------------------------------------------------------------
#
# ERRORS
#
# -----------------------------------------------------------------------------


class PathError(ValueError):
	"""Base class for request paths that can't be mapped to the root."""


class BadPath(PathError):
	"""The path is malformed (invalid encoding, NUL bytes, backslashes)."""


class PathEscape(PathError):
	"""The path would resolve outside of the root directory."""


# -----------------------------------------------------------------------------
#
# RESOLUTION
#
# -----------------------------------------------------------------------------


class ResolvedPath(NamedTuple):
	"""A request path mapped to a location under a root directory."""

	root: Path
	# Normalized, `/`-separated path, always starting with `/`
	path: str
	local: Path

	@property
	def isRoot(self) -> bool:
		return self.local == self.root


def normalize(path: str) -> str:
	"""Percent-decodes and normalizes the request `path`, collapsing empty
	and `.` segments and applying `..` segments. Raises `PathEscape` when a
	`..` segment would go above the root, and `BadPath` for paths that
	can't be represented safely on all platforms. A trailing `/` is
	preserved."""
	try:
		decoded: str = unquote(path, errors="strict")
	except UnicodeDecodeError as e:
		raise BadPath("Path is not valid UTF-8") from e
	if "\x00" in decoded:
		raise BadPath("Path contains a NUL byte")
	if "\\" in decoded:
		raise BadPath("Path contains a backslash")
	segments: list[str] = []
	for segment in decoded.split("/"):
		if not segment or segment == ".":
			continue
		elif segment == "..":
			if not segments:
				raise PathEscape("Path goes above the root")
			segments.pop()
		else:
			segments.append(segment)
	res: str = "/" + "/".join(segments)
	return f"{res}/" if segments and decoded.endswith("/") else res


def contains(root: Path, path: Path) -> bool:
	"""Tells if `path` is `root` or one of its descendants, once both
	are made absolute and their symlinks resolved."""
	parts = root.resolve().parts
	return path.resolve().parts[: len(parts)] == parts


def realpath(root: Path, local: Path) -> Path:
	"""Resolves the symlinks of `local`, raising `PathEscape` when the real
	path is not within `root`."""
	try:
		real: Path = local.resolve()
	except (RuntimeError, OSError) as e:
		# Symlink loops
		raise BadPath("Path can't be resolved") from e
	# Symlinks may point outside of the root
	if not contains(root, real):
		raise PathEscape("Path resolves outside of the root")
	return real


def resolve(root: Path, path: str) -> ResolvedPath:
	"""Maps the request `path` to a location under `root`, which is expected
	to be absolute and symlink-free. The returned local path has its symlinks
	resolved, and is guaranteed to be within `root`."""
	normalized: str = normalize(path)
	local: Path = root.joinpath(*(_ for _ in normalized.split("/") if _))
	return ResolvedPath(root, normalized, realpath(root, local))


# EOF
