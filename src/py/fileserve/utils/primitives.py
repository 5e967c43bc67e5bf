from typing import TypeAlias

TLiteral: TypeAlias = bool | int | float | str | bytes
TComposite: TypeAlias = (
	list[TLiteral] | dict[TLiteral, TLiteral] | tuple[TLiteral, ...]
)
# Values that can be attached to log entries and error payloads
TPrimitive: TypeAlias = TLiteral | TComposite | None


# EOF
