__version__ = "0.1.0"

from .config import ServerConfig, Variant
from .response import ResponsePayload, generate_response
from .roles import Role

__all__ = [
    "__version__",
    "ResponsePayload",
    "Role",
    "ServerConfig",
    "Variant",
    "generate_response",
]
