import os
from pathlib import Path

import pytest

from fileserve.utils.paths import (
	BadPath,
	PathError,
	PathEscape,
	contains,
	normalize,
	realpath,
	resolve,
)
from fileserve.utils import paths


@pytest.mark.parametrize(
	"path, expected",
	[
		("/", "/"),
		("", "/"),
		("/index.html", "/index.html"),
		("/a/./b//c", "/a/b/c"),
		("/a/b/../c", "/a/c"),
		("/a/b/..", "/a"),
		("/a/..", "/"),
		("/docs/", "/docs/"),
		("//docs//", "/docs/"),
		("/hello%20world.txt", "/hello world.txt"),
		("/caf%C3%A9", "/café"),
		("/a/%2e/b", "/a/b"),
	],
)
def test_normalize(path: str, expected: str) -> None:
	assert normalize(path) == expected


@pytest.mark.parametrize(
	"path",
	[
		"/..",
		"/../main.go",
		"/../../etc/passwd",
		"/a/../../etc/passwd",
		"/docs/../../main.go",
		"/%2e%2e/main.go",
		"/%2E%2E/%2E%2E/etc/passwd",
		"/..%2fmain.go",
		"/%2e%2e%2fmain.go",
		"/a/%2e%2e/%2e%2e/main.go",
	],
)
def test_normalize_rejects_traversal(path: str) -> None:
	with pytest.raises(PathEscape):
		normalize(path)


@pytest.mark.parametrize(
	"path",
	[
		"/index.html%00.txt",
		"/..\\main.go",
		"/%5c..%5cmain.go",
		"/%ff",
	],
)
def test_normalize_rejects_malformed(path: str) -> None:
	with pytest.raises(BadPath):
		normalize(path)


def test_errors_are_value_errors() -> None:
	assert issubclass(BadPath, PathError)
	assert issubclass(PathEscape, PathError)
	assert issubclass(PathError, ValueError)


def test_resolve_within_root(tmp_path: Path) -> None:
	root = tmp_path.resolve()
	(root / "a").mkdir()
	(root / "a" / "b.txt").write_text("b")
	res = resolve(root, "/a/./b.txt")
	assert res.root == root
	assert res.path == "/a/b.txt"
	assert res.local == root / "a" / "b.txt"
	assert not res.isRoot
	assert resolve(root, "/").isRoot
	# Missing files still resolve, the caller checks for existence
	assert resolve(root, "/missing").local == root / "missing"


def test_resolve_rejects_symlink_outside_root(tmp_path: Path) -> None:
	root = tmp_path.resolve() / "public"
	root.mkdir()
	outside = tmp_path.resolve() / "secret.txt"
	outside.write_text("secret")
	os.symlink(outside, root / "link.txt")
	os.symlink(tmp_path.resolve(), root / "up")
	with pytest.raises(PathEscape):
		resolve(root, "/link.txt")
	with pytest.raises(PathEscape):
		resolve(root, "/up/secret.txt")


def test_resolve_follows_symlink_inside_root(tmp_path: Path) -> None:
	root = tmp_path.resolve()
	(root / "real.txt").write_text("real")
	os.symlink(root / "real.txt", root / "alias.txt")
	assert resolve(root, "/alias.txt").local == root / "real.txt"


def test_contains(tmp_path: Path) -> None:
	root = tmp_path / "public"
	root.mkdir()
	sibling = tmp_path / "public2"
	sibling.mkdir()
	assert contains(root, root)
	assert contains(root, root / "a" / "b")
	assert not contains(root, tmp_path)
	assert not contains(root, root / ".." / "main.go")
	# A shared string prefix is not containment
	assert not contains(root, sibling / "file")


def test_resolve_checks_containment(
	tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
	root = tmp_path.resolve()
	(root / "a.txt").write_text("a")
	assert realpath(root, root / "a.txt") == root / "a.txt"
	with pytest.raises(PathEscape):
		realpath(root, root / ".." / "a.txt")
	# Containment is decided by `contains` alone
	monkeypatch.setattr(paths, "contains", lambda root, path: False)
	with pytest.raises(PathEscape):
		resolve(root, "/a.txt")


# EOF
