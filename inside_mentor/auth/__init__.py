from .identity_toolkit import AuthError, IdentityToolkitClient
from .session import AuthSession, AuthUser
from .students import AuthResult, AuthService, StudentDirectory

__all__ = [
    "AuthError",
    "AuthResult",
    "AuthService",
    "AuthSession",
    "AuthUser",
    "IdentityToolkitClient",
    "StudentDirectory",
]
