"""
Pattern Unit of Work.

Le Unit of Work (UoW) coordonne la persistance du panier et la collecte
des événements émis par l'agrégat Cart au cours d'une mutation.

Le UoW agit comme un context manager :
    with uow:
        cart = uow.carts.get()
        cart.upsert(book, 2)
        uow.commit()

commit() écrit le panier de façon synchrone : une mutation validée
survit à un redémarrage du processus.
"""

from __future__ import annotations

import abc

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from bookstore.adapters import orm, repository
from bookstore.config import get_settings
from bookstore.domain import model


def default_session_factory() -> sessionmaker:
    engine = create_engine(get_settings().database_uri)
    orm.create_tables(engine)
    return sessionmaker(bind=engine)


class AbstractUnitOfWork(abc.ABC):
    """
    Interface abstraite du Unit of Work.

    Fournit un repository `carts` et gère commit/rollback.
    Le rollback est automatique si commit() n'est pas appelé
    (grâce au __exit__ du context manager).
    """

    carts: repository.AbstractCartRepository

    def __enter__(self) -> AbstractUnitOfWork:
        return self

    def __exit__(self, *args: object) -> None:
        self.rollback()

    def commit(self) -> None:
        """
        Valide la transaction. Si l'écriture échoue, le panier en mémoire
        (déjà modifié) est oublié : la lecture suivante repart de la base.
        """
        try:
            self._commit()
        except Exception:
            self.carts.forget()
            raise

    def collect_new_events(self):
        """
        Collecte les événements émis par le panier pendant cette transaction
        et vide sa liste pour les passer au message bus.
        """
        for cart in self.carts.seen:
            while cart.events:
                yield cart.events.pop(0)

    @abc.abstractmethod
    def _commit(self) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def rollback(self) -> None:
        raise NotImplementedError


class SqlAlchemyUnitOfWork(AbstractUnitOfWork):
    """
    Implémentation concrète du UoW avec SQLAlchemy.

    Une session par transaction, mais une identity map partagée entre
    transactions : le panier n'est lu en base qu'une fois par processus.
    """

    def __init__(self, session_factory: sessionmaker | None = None):
        self.session_factory = session_factory or default_session_factory()
        self.identity_map: dict[str, model.Cart] = {}
        self.carts = repository.SqlAlchemyCartRepository(None, self.identity_map)

    def __enter__(self) -> SqlAlchemyUnitOfWork:
        self.session: Session = self.session_factory()
        self.carts = repository.SqlAlchemyCartRepository(self.session, self.identity_map)
        return super().__enter__()

    def __exit__(self, *args: object) -> None:
        super().__exit__(*args)
        self.session.close()

    def _commit(self) -> None:
        for cart in list(self.carts.seen):
            self.carts.save(cart)
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
