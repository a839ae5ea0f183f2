from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

from config import settings


class Base(DeclarativeBase):
    # Every table lives in the configured schema; it never comes from request input.
    metadata = MetaData(schema=settings.DB_SCHEMA)
