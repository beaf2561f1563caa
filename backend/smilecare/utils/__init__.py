#controls what parts of the internal security system are publicly exposed to the rest of the application
#request dependencies live in utils.deps, which needs the storage handles from database
from .auth import create_access_token, verify_token

__all__ = [
    "create_access_token",
    "verify_token",
]
