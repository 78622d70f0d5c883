"""Bearer token verification."""

from dealroom.api.auth.jwt import create_access_token, verify_token

__all__ = ["create_access_token", "verify_token"]
