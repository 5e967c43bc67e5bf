from typing import NamedTuple
from enum import Enum
import resource


class LimitType(Enum):
	# Each connection holds a socket and, while streaming, an open file
	Files = resource.RLIMIT_NOFILE


# Some systems (Darwin) report huge or infinite hard limits that
# `setrlimit` then refuses.
REASONABLE_LIMITS: dict[LimitType, int] = {
	LimitType.Files: 10 * 10240,
}


class Limit(NamedTuple):
	type: LimitType
	soft: int
	hard: int


def limit(scope: LimitType) -> Limit:
	return Limit(scope, *resource.getrlimit(scope.value))


def unlimit(scope: LimitType) -> int | None:
	"""Raises the soft limit for `scope` up to the hard limit (capped to a
	reasonable value), returning the soft limit in effect or `None` when
	the system refused the change. The limit is never lowered."""
	lm = limit(scope)
	if lm.soft == resource.RLIM_INFINITY:
		return lm.soft
	target: int = REASONABLE_LIMITS[scope]
	if lm.hard != resource.RLIM_INFINITY:
		target = min(target, lm.hard)
	if target <= lm.soft:
		return lm.soft
	try:
		resource.setrlimit(scope.value, (target, lm.hard))
	except (ValueError, OSError):
		return None
	return target


# EOF
