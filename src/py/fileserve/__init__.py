from .http.model import HTTPRequest, HTTPResponse  # NOQA: F401
from .model import Application  # NOQA: F401
from .services.files import FileService  # NOQA: F401
from .server import run, ServerOptions, ServerStartError  # NOQA: F401

__version__ = "1.0.0"

# EOF
