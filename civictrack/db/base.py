# File: civictrack/db/base.py
# Project: civictrack

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass
