# meritdraft/db/__init__.py

"""
Database Module

Contains SQLAlchemy models, Pydantic schemas, repositories and database configuration.
"""

from meritdraft.db.database import Base, engine, SessionLocal, get_db
from meritdraft.db import models, schemas

__all__ = [
    'Base',
    'engine',
    'SessionLocal',
    'get_db',
    'models',
    'schemas'
]
