"""
Database Configuration
SQLAlchemy engine and session management.
Supports both SQLite (local dev) and PostgreSQL (production).
"""

import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from nanostudio.core.config import settings

logger = logging.getLogger(__name__)

# Detect if using SQLite
is_sqlite = settings.DATABASE_URL.startswith("sqlite")

# Create database engine with appropriate settings
if is_sqlite:
    engine = create_engine(
        settings.DATABASE_URL,
        connect_args={"check_same_thread": False},  # Needed for SQLite
    )
else:
    engine = create_engine(
        settings.DATABASE_URL,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
    )

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()


def init_db(bind=None):
    """Initialize database tables and seed the default user."""
    from nanostudio.models import User, Session, Credit, Generation  # noqa

    bind = bind or engine
    try:
        Base.metadata.create_all(bind=bind)
    except Exception as e:
        # In production, tables may already exist or filesystem may be read-only
        logger.warning(f"Could not create database tables: {e}")
        logger.info("Continuing with existing database...")
        return

    db = sessionmaker(bind=bind)()
    try:
        seed_default_user(db)
    finally:
        db.close()


def seed_default_user(db):
    """Create the implicit default user and its credit row if missing."""
    from nanostudio.models import User, Credit

    if db.get(User, settings.DEFAULT_USER_ID) is None:
        db.add(User(
            id=settings.DEFAULT_USER_ID,
            email="demo@example.com",
            password_hash="placeholder",
        ))
        db.add(Credit(user_id=settings.DEFAULT_USER_ID, amount=settings.DEFAULT_CREDITS))
        db.commit()
        logger.info(f"Seeded default user {settings.DEFAULT_USER_ID}")
