"""OAuth provider adapters."""

from .google import GoogleOAuthClient, OAuthError

__all__ = ["GoogleOAuthClient", "OAuthError"]
