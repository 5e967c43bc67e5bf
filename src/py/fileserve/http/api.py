from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from .status import reason

T = TypeVar("T")

# -----------------------------------------------------------------------------
#
# API
#
# -----------------------------------------------------------------------------

# --
# == HTTP Request Response API
#
# Defines the high level API functions (orthogonal to the underlying model)
# to create responses. Error bodies are short fixed texts: they never
# include details about the underlying cause.


class ResponseFactory(ABC, Generic[T]):
	@abstractmethod
	def respond(
		self,
		content: Any = None,
		contentType: str | None = None,
		contentLength: int | None = None,
		status: int = 200,
		headers: dict[str, str] | None = None,
		message: str | None = None,
	) -> T: ...

	def error(
		self,
		status: int,
		content: str | None = None,
		contentType: str = "text/plain; charset=utf-8",
		headers: dict[str, str] | None = None,
	) -> T:
		message = reason(status)
		return self.respond(
			content=message if content is None else content,
			contentType=contentType,
			status=status,
			message=message,
			headers=headers,
		)

	def badRequest(self, content: str = "Bad Request") -> T:
		return self.error(400, content=content)

	def notAuthorized(self, content: str = "Forbidden", *, status: int = 403) -> T:
		return self.error(status, content=content)

	def notFound(self, content: str = "Not Found", *, status: int = 404) -> T:
		return self.error(status, content=content)

	def notAllowed(self, allowed: list[str] | tuple[str, ...]) -> T:
		return self.error(
			405, content="Method Not Allowed", headers={"Allow": ", ".join(allowed)}
		)

	def notModified(self, headers: dict[str, str] | None = None) -> T:
		return self.respondEmpty(304, headers=headers)

	def fail(self, content: str | None = None, *, status: int = 500) -> T:
		return self.error(status, content=content)

	def redirect(self, url: str, permanent: bool = False) -> T:
		# SEE: https://developer.mozilla.org/en-US/docs/Web/HTTP/Redirections
		return self.error(
			301 if permanent else 302,
			content=f"Moved to {url}",
			headers={"Location": str(url)},
		)

	def respondHTML(self, html: str | bytes, status: int = 200) -> T:
		return self.respond(
			content=html, contentType="text/html; charset=utf-8", status=status
		)

	def respondEmpty(self, status: int, headers: dict[str, str] | None = None) -> T:
		return self.respond(content=None, status=status, headers=headers)


# EOF
