import hmac
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Union

from jose import jwt
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import PermissionDeniedError
from app.models.league import LeagueMember

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24 * 7


def create_access_token(subject: Union[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Token de acesso do usuário (o login em si acontece no provedor de identidade)."""
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode = {"exp": expire, "sub": str(subject)}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Optional[str]:
    """Retorna o `sub` do token ou None. JWTError sobe para o chamador."""
    payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    return payload.get("sub")


def secrets_match(provided: Optional[str], expected: str) -> bool:
    if not provided:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


def ensure_league_member(db: Session, league_id: str, user_id: str, lock: bool = False) -> LeagueMember:
    """
    Guarda de autorização para qualquer escrita dentro de uma liga.
    Com lock=True a linha da participação fica travada até o fim da transação.
    """
    query = db.query(LeagueMember).filter(
        LeagueMember.league_id == league_id,
        LeagueMember.user_id == user_id
    )
    if lock:
        query = query.with_for_update()

    member = query.first()
    if not member:
        raise PermissionDeniedError("You are not a member of this league.")
    return member
