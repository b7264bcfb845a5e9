"""
Bearer token authentication.

Requests carry ``Authorization: Bearer <access token>`` where the token
is a signed JWT issued by :func:`visits.auth_views.login_view`.  This
module is kept separate from the views so that DRF can import the
authentication class during settings initialisation without pulling in
view modules.
"""
from __future__ import annotations

from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.tokens import RefreshToken


class BearerAuthentication(JWTAuthentication):
    """JWT authentication resolving the token to the stored user row.

    The role used for authorisation is read from the database, never
    from the claims echoed inside the token.
    """

    www_authenticate_realm = 'clinicflow'


def issue_tokens(user) -> dict[str, str]:
    """Return a fresh access/refresh pair carrying the principal claims."""
    refresh = RefreshToken.for_user(user)
    refresh['username'] = user.get_username()
    refresh['role'] = user.role
    return {'access': str(refresh.access_token), 'refresh': str(refresh)}
