DEFAULT_ENCODING: str = "utf8"
# HTTP/1.1 lines are CRLF-terminated, see RFC 7230 §3
EOL: bytes = b"\r\n"


class LineParser:
	"""Incrementally extracts CRLF-terminated lines out of fed chunks."""

	__slots__ = ["buffer", "line", "offset"]

	def __init__(self) -> None:
		self.buffer: bytearray = bytearray()
		self.line: bytes | None = None
		# Where to resume looking for the EOL in the buffer
		self.offset: int = 0

	def reset(self) -> "LineParser":
		self.buffer.clear()
		self.line = None
		self.offset = 0
		return self

	@property
	def pending(self) -> int:
		"""Number of buffered bytes that are not part of a line yet."""
		return len(self.buffer)

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bytes | None, int]:
		"""Returns the line (without its EOL) and how many bytes of `chunk`
		were consumed from `start`. When the line is `None`, the whole chunk
		was buffered."""
		pos = len(self.buffer)
		self.buffer += chunk[start:]
		end = self.buffer.find(EOL, self.offset)
		if end == -1:
			# The EOL may be split across two chunks
			self.offset = max(0, len(self.buffer) - len(EOL) + 1)
			return None, len(chunk) - start
		self.line = bytes(self.buffer[:end])
		self.buffer.clear()
		self.offset = 0
		return self.line, (end - pos) + len(EOL)


# EOF
