from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from stockroom.app.config import get_settings

settings = get_settings()

engine = create_engine(settings.database_url, pool_pre_ping=True, echo=settings.db_echo)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
