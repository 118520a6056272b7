"""Google OAuth support for the calendar sync.

Only token refresh lives here; acquiring the initial tokens is handled by the
sign-in layer that writes them to the user's profile.
"""

from schedule_sync.auth.google import GoogleOAuth, GoogleTokens

__all__ = ["GoogleOAuth", "GoogleTokens"]
