from typing import NamedTuple
from enum import Enum
import resource


class LimitType(Enum):
	Files = resource.RLIMIT_NOFILE


# Caps applied when raising soft limits, as some platforms report hard
# limits that overflow `setrlimit`.
LIMIT_CAPS: dict[LimitType, int] = {
	LimitType.Files: 100 * 1024,
}


class Limit(NamedTuple):
	type: LimitType
	soft: int
	hard: int


def limit(scope: LimitType) -> Limit:
	return Limit(scope, *resource.getrlimit(scope.value))


def unlimit(scope: LimitType, *, maximum: int | None = 0) -> int | bool:
	"""Raises the soft limit for `scope` up to its hard limit (capped by
	`maximum`, or the default cap when `maximum` is 0). Returns the new
	soft limit, or `False` when the platform refused."""
	lm = limit(scope)
	if lm.soft == resource.RLIM_INFINITY:
		return lm.soft
	cap = LIMIT_CAPS.get(scope) if maximum == 0 else maximum
	target = lm.hard if lm.hard != resource.RLIM_INFINITY else (cap or lm.soft)
	if cap:
		target = min(cap, target)
	if target <= lm.soft:
		return lm.soft
	try:
		resource.setrlimit(scope.value, (target, lm.hard))
		return target
	except (ValueError, OSError):
		return False


# EOF
