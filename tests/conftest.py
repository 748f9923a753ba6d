"""
Configuration partagée pour les tests.

Les tests d'intégration utilisent une base SQLite en mémoire partagée
entre sessions (StaticPool), ce qui permet de simuler un redémarrage
du client en recréant un Unit of Work sur la même base.
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from bookstore.adapters import orm


@pytest.fixture
def session_factory():
    """Fabrique de sessions sur une base SQLite en mémoire avec les tables."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    orm.create_tables(engine)
    yield sessionmaker(bind=engine)
    engine.dispose()
