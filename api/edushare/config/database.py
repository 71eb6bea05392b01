import os

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base

from .settings import DATABASE_URL

Base = declarative_base()


def create_db_engine(url: str = DATABASE_URL) -> Engine:
    """Create the SQLAlchemy engine backing the document collections"""
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
        path = url.split("///", 1)[-1]
        if path and path != ":memory:":
            os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    return create_engine(url, connect_args=connect_args, pool_pre_ping=True)
