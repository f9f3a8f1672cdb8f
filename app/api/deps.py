from typing import Generator, Optional
from fastapi import Depends, HTTPException, status, Request
from jose import JWTError
from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.core.clock import Clock, system_clock
from app.core.config import settings
from app.core import security
from app.models.user import User

def get_db() -> Generator:
    try:
        db = SessionLocal()
        yield db
    finally:
        db.close()

def get_clock() -> Clock:
    return system_clock

def _bearer_token(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    try:
        scheme, token = value.split()
    except ValueError:
        return None
    return token if scheme.lower() == "bearer" else None

def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """
    Lê o token do header Authorization ou do cookie 'access_token',
    decodifica e busca o usuário.
    """
    token = _bearer_token(request.headers.get("Authorization")) or _bearer_token(request.cookies.get("access_token"))

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Não autenticado",
        )

    try:
        user_id = security.decode_access_token(token)
    except JWTError:
        raise HTTPException(status_code=401, detail="Token expirado ou inválido")

    if user_id is None:
        raise HTTPException(status_code=401, detail="Token inválido (sem ID)")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="Usuário não encontrado")

    return user

def require_internal_secret(request: Request) -> None:
    """
    Rotas internas (cron): aceita o segredo em Authorization: Bearer,
    X-Settlement-Secret ou X-Cron-Secret.
    """
    expected = settings.internal_secret
    if not expected:
        raise HTTPException(status_code=500, detail={"error": "Internal secret is not configured."})

    candidates = (
        _bearer_token(request.headers.get("Authorization")),
        request.headers.get("X-Settlement-Secret"),
        request.headers.get("X-Cron-Secret"),
    )
    if not any(security.secrets_match(candidate, expected) for candidate in candidates):
        raise HTTPException(status_code=401, detail={"error": "Unauthorized"})
