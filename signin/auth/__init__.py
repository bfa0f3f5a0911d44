"""
Authentication handshake for the sign-in service.

Design goals:
- Provider-agnostic OAuth2 initiation (state + PKCE in signed cookies).
- Email/password sign-in with one externally visible failure mode.
- Cookie-based session (HttpOnly, signed) bound to server-side storage.
"""
