# safebite/database.py
import os
from dotenv import load_dotenv
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

load_dotenv()

def _database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if url:
        return url
    # Profiles and scans live in Postgres unless a URL is given
    user = os.getenv("DB_USER", "postgres")
    password = os.getenv("DB_PASSWORD", "password")
    host = os.getenv("DB_HOST", "localhost")
    port = os.getenv("DB_PORT", "5432")
    name = os.getenv("DB_DATABASE", "safebite")
    return f"postgresql://{user}:{password}@{host}:{port}/{name}"

DATABASE_URL = _database_url()

if DATABASE_URL.startswith("sqlite"):
    # One shared connection so an in-memory database survives across sessions and threads
    engine = create_engine(
        DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
else:
    engine = create_engine(DATABASE_URL, echo=False, pool_pre_ping=True)

def init_db():
    # Register tables before create_all
    from . import models  # noqa: F401
    SQLModel.metadata.create_all(engine)

def get_session():
    with Session(engine) as session:
        yield session
