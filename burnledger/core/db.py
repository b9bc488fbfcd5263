from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from burnledger.core.config import settings

Base = declarative_base()

engine = None
SessionLocal = None

if settings.DATABASE_DSN:
    engine = create_engine(settings.DATABASE_DSN, future=True)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
