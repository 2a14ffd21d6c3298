"""
=============================================================================
DATABASE.PY — Database Configuration
=============================================================================
Sets up the connection to the database that backs the Record Store.

In DEVELOPMENT: SQLite (a local .db file)
In PRODUCTION: PostgreSQL (DATABASE_URL provided by the platform)
In TESTS: "sqlite://" → in-memory database on one shared connection

How does it choose?
→ If the DATABASE_URL environment variable exists, it is used as-is.
→ Otherwise the local SQLite file is used.
"""

import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

# ─────────────────────────────────────────────────────────────────────────────
# CONNECTION
# ─────────────────────────────────────────────────────────────────────────────

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./mindwell.db")

# Hosted Postgres hands out "postgres://" URLs, SQLAlchemy wants the psycopg (v3) driver
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql+psycopg://", 1)
elif DATABASE_URL.startswith("postgresql://"):
    DATABASE_URL = DATABASE_URL.replace("postgresql://", "postgresql+psycopg://", 1)

# ─────────────────────────────────────────────────────────────────────────────
# ENGINE
# ─────────────────────────────────────────────────────────────────────────────
# check_same_thread=False → SQLite connections are used from FastAPI's worker threads.
# StaticPool → an in-memory SQLite database only lives as long as its single connection.

engine_args = {}
if DATABASE_URL.startswith("sqlite"):
    engine_args["connect_args"] = {"check_same_thread": False}
    if DATABASE_URL in ("sqlite://", "sqlite:///:memory:"):
        engine_args["poolclass"] = StaticPool

engine = create_engine(DATABASE_URL, echo=False, **engine_args)

# ─────────────────────────────────────────────────────────────────────────────
# SESSION
# ─────────────────────────────────────────────────────────────────────────────

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# ─────────────────────────────────────────────────────────────────────────────
# BASE
# ─────────────────────────────────────────────────────────────────────────────
# Every model (User, Mood, Goal...) inherits from this class.

Base = declarative_base()


def get_db():
    """
    Yields one database session per request and closes it afterwards.

    Used as a FastAPI dependency:
      @app.get("/something")
      def endpoint(db: Session = Depends(get_db)):
          ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Creates every table that does not exist yet. Called once at startup."""
    import models  # noqa: F401  (registers the tables on Base.metadata)
    Base.metadata.create_all(bind=engine)


def drop_db():
    """Drops every table. Only used to reset the schema between test runs."""
    import models  # noqa: F401
    Base.metadata.drop_all(bind=engine)
