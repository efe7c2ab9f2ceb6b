import re
import secrets
from datetime import timedelta

from fastapi import HTTPException, Request, Response, status
from itsdangerous import BadSignature, SignatureExpired, TimestampSigner

from gambit.config import settings
from gambit.core.database import POOL_ACCOUNT

PLAYER_COOKIE = "player"
ADMIN_TOKEN_HEADER = "X-Admin-Token"

_PLAYER_PATTERN = re.compile(r"^[A-Za-z0-9_.:-]{1,64}$")

# Create a signer for secure cookies
signer = TimestampSigner(settings.security.secret_key)


def is_valid_player(player: str) -> bool:
    """Player identities are short printable ids; the pool account is reserved."""
    return bool(player) and player != POOL_ACCOUNT and bool(_PLAYER_PATTERN.match(player))


def session_max_age() -> int:
    return int(timedelta(days=settings.security.session_days).total_seconds())


def sign_player(player: str) -> str:
    """Signed, timestamped cookie value naming the player."""
    return signer.sign(player.encode("utf-8")).decode("utf-8")


def set_player_cookie(response: Response, player: str):
    response.set_cookie(
        PLAYER_COOKIE,
        sign_player(player),
        max_age=session_max_age(),
        httponly=True,
        samesite="Lax",
        secure=not settings.server.debug,  # Use Secure cookies in production
    )


def get_player(request: Request) -> str:
    """Identity of the caller, from the signed player cookie."""
    cookie = request.cookies.get(PLAYER_COOKIE)
    if not cookie:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not logged in")

    try:
        player = signer.unsign(cookie.encode("utf-8"), max_age=session_max_age()).decode("utf-8")
    except SignatureExpired:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Session expired")
    except (BadSignature, UnicodeDecodeError):
        # BadTimeSignature is a BadSignature; so is a cookie that was never signed
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid session")

    if not is_valid_player(player):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid player identity")
    return player


def require_admin_api(request: Request) -> str:
    token = request.headers.get(ADMIN_TOKEN_HEADER, "")
    if not token or not secrets.compare_digest(token, settings.security.admin_token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return token
