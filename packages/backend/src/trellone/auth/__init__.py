"""Authentication and authorization.

Learn: Users authenticate with email/password and receive a JWT access
token plus a rotating refresh token (both also set as HttpOnly cookies).
Every protected request runs a dependency chain:

    extract token → verify → (load user) → AuthContext → permission check

Email-verify and forgot-password tokens are separate JWT kinds with their
own secrets, checked against the value stored on the user row.
"""
