"""
Bearer-token helpers.

Tokens are issued by the upstream auth collaborator; this service only
verifies them and reads the caller's account id from the ``id`` claim.
"""

from typing import Optional

import jwt


def verify_token(token: str, secret: str, algorithm: str = "HS256") -> Optional[dict]:
    """
    Verify JWT token
    """
    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
        return payload
    except jwt.InvalidTokenError:
        return None


def caller_id_from_claims(claims: dict) -> Optional[int]:
    raw = claims.get("id")
    if isinstance(raw, bool):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None
