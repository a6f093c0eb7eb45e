"""Shared helpers for the test suites: throwaway SQLite databases and fixtures."""
from datetime import date, timedelta

from sqlalchemy.orm import sessionmaker

from pharmabot.db.base import Base
from pharmabot.db.session import make_engine
from pharmabot.models import ConversationState, Medicine, Order  # noqa: F401 - register models

FUTURE = date.today() + timedelta(days=365)
PAST = date.today() - timedelta(days=30)


def memory_session_factory():
    """Session factory over a fresh in-memory database with all tables."""
    engine = make_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    return engine, sessionmaker(bind=engine, autoflush=False)


def file_session_factory(path):
    engine = make_engine(f"sqlite:///{path}")
    Base.metadata.create_all(bind=engine)
    return engine, sessionmaker(bind=engine, autoflush=False)


def add_medicine(db, name, stock, expiry_date=FUTURE) -> Medicine:
    medicine = Medicine(name=name, stock=stock, expiry_date=expiry_date)
    db.add(medicine)
    db.commit()
    db.refresh(medicine)
    return medicine
