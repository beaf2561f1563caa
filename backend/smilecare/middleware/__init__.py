from .security import RequestContextMiddleware, SecurityMiddleware

__all__ = ["SecurityMiddleware", "RequestContextMiddleware"]
