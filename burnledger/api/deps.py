from fastapi import HTTPException

from burnledger.core import db as core_db


def get_db():
    if not core_db.engine or not core_db.SessionLocal:
        raise HTTPException(503, "DB not configured (DATABASE_DSN missing)")

    db = core_db.SessionLocal()
    try:
        yield db
    finally:
        db.close()
