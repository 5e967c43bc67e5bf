from typing import Any, ClassVar, Coroutine

from .http.model import HTTPRequest, HTTPResponse

# -----------------------------------------------------------------------------
#
# APPLICATION
#
# -----------------------------------------------------------------------------


class Application:
	"""Processes requests into responses. The server drives an application
	through `start`, `process` for each request, and `stop`."""

	METHODS: ClassVar[tuple[str, ...]] = ("GET", "HEAD", "OPTIONS")

	def __init__(self, name: str | None = None) -> None:
		self.name: str = name or self.__class__.__name__
		self.isRunning: bool = False

	async def start(self) -> "Application":
		"""Can be overridden to do asynchronous pre-start work"""
		self.isRunning = True
		return self

	async def stop(self) -> "Application":
		"""Can be overridden to do asynchronous post-stop work"""
		self.isRunning = False
		return self

	def process(
		self, request: HTTPRequest
	) -> HTTPResponse | Coroutine[Any, Any, HTTPResponse]:
		"""Dispatches the request to the `on<METHOD>` method, responding with
		a `405` when the method is not one of `METHODS`."""
		method: str = request.method
		handler = (
			getattr(self, f"on{method.capitalize()}", None)
			if method in self.METHODS
			else None
		)
		if handler is None:
			return request.notAllowed(self.METHODS)
		else:
			return handler(request)

	def onOptions(self, request: HTTPRequest) -> HTTPResponse:
		return request.respondEmpty(204, headers={"Allow": ", ".join(self.METHODS)})

	def __repr__(self) -> str:
		return f"(Application {self.name}{' :running' if self.isRunning else ''})"


# EOF
