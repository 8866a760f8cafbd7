"""Request authentication helpers."""

from .bearer_auth import (
    create_access_token,
    create_bearer_auth_dependency,
    decode_access_token,
)

__all__ = [
    "create_access_token",
    "create_bearer_auth_dependency",
    "decode_access_token",
]
