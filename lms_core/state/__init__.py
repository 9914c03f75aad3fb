from .session import SessionContext, SESSION_KEY

__all__ = ["SessionContext", "SESSION_KEY"]
