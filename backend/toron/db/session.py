from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from toron.core.config import get_settings


settings = get_settings()

# SQLite needs check_same_thread off since FastAPI runs sync handlers in a threadpool.
connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}

engine = create_engine(settings.database_url, future=True, pool_pre_ping=True, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
