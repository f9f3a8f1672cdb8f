from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from app.core.config import settings

DATABASE_URI = settings.SQLALCHEMY_DATABASE_URI

# SQLite local (dev): a sessão do scheduler roda em outra thread
connect_args = {"check_same_thread": False} if DATABASE_URI.startswith("sqlite") else {}

engine = create_engine(
    DATABASE_URI,
    connect_args=connect_args,
    pool_pre_ping=True,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
