from datetime import timedelta
import jwt
from ..core.config import settings
from ..utils.dt_utils import utcnow

ALGORITHM = "HS256"
TOKEN_TYPE = "access"


def create_access_token(user_id: str, minutes: int | None = None) -> str:
    """Mint a bearer token whose ``sub`` is the user id."""
    issued = utcnow()
    exp_min = minutes if minutes is not None else settings.ACCESS_TOKEN_MIN
    payload = {"sub": user_id, "typ": TOKEN_TYPE, "iat": issued, "exp": issued + timedelta(minutes=exp_min)}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    payload = jwt.decode(
        token, settings.SECRET_KEY, algorithms=[ALGORITHM], options={"require": ["sub", "exp"]}
    )
    if payload.get("typ") != TOKEN_TYPE:
        raise jwt.InvalidTokenError("Not an access token")
    return payload
