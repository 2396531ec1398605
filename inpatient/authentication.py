"""
Token authentication for the API.

Kept apart from the views so that Django REST framework can import the
authentication classes named in settings without pulling in view modules.
Both the DRF token (``Authorization: Token <key>``) and SimpleJWT bearer
tokens are accepted; see ``REST_FRAMEWORK`` in ``wardflow.settings``.
"""
from __future__ import annotations

from rest_framework import authentication


class TokenAuthentication(authentication.TokenAuthentication):
    """DRF token authentication using the ``Token`` keyword."""

    keyword = 'Token'
