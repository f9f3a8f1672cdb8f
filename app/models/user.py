from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from app.db.base import Base, new_id

class User(Base):
    """Perfil mínimo do usuário (a autenticação em si é externa)."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    handle = Column(String(50), unique=True, nullable=True)
    avatar_url = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
