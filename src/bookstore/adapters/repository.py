"""
Pattern Repository pour le panier.

Le repository masque la persistance du panier derrière une interface
de type collection (get, save). Il n'y a qu'un panier par client : il
est lu une seule fois au démarrage puis conservé dans une identity map
partagée, et réécrit en entier à chaque commit.

Le format persisté est un tableau JSON de {"book": {...}, "quantity": n}.
Seul book.isbn est relu : les anciennes entrées contenant le livre complet
restent lisibles telles quelles.
"""

from __future__ import annotations

import abc
import json
import logging
from typing import Optional

from sqlalchemy import delete, insert, select
from sqlalchemy.orm import Session

from bookstore.adapters import orm
from bookstore.domain import model

logger = logging.getLogger(__name__)

CART_KEY = "currentOrder"


def dump_cart(cart: model.Cart) -> str:
    """Sérialise les lignes du panier, dans l'ordre."""
    return json.dumps(
        [{"book": {"isbn": line.isbn}, "quantity": line.quantity} for line in cart.lines]
    )


def load_cart(raw: Optional[str]) -> model.Cart:
    """
    Reconstruit un panier à partir de sa forme persistée (vide si absente).

    Une valeur illisible est loggée puis remplacée par un panier vide :
    le client démarre quand même, la prochaine écriture l'écrase.
    """
    if not raw:
        return model.Cart()
    try:
        return model.Cart(
            lines=[
                model.CartLine(isbn=str(item["book"]["isbn"]), quantity=int(item["quantity"]))
                for item in json.loads(raw)
            ]
        )
    except (ValueError, KeyError, TypeError, OverflowError):
        logger.exception("Panier persisté illisible, remis à zéro : %r", raw)
        return model.Cart()


class AbstractCartRepository(abc.ABC):
    """
    Interface abstraite du repository de panier.

    Même Template Method que pour tout repository : get/save gèrent le
    tracking via `seen`, les sous-classes implémentent _load et _save.
    """

    def __init__(self, identity_map: Optional[dict[str, model.Cart]] = None) -> None:
        # `seen` permet au Unit of Work de collecter les events du panier
        self.seen: set[model.Cart] = set()
        self.identity_map = identity_map if identity_map is not None else {}

    def get(self) -> model.Cart:
        """Retourne le panier courant, chargé au premier accès seulement."""
        cart = self.identity_map.get(CART_KEY)
        if cart is None:
            cart = self._load()
            self.identity_map[CART_KEY] = cart
        self.seen.add(cart)
        return cart

    def save(self, cart: model.Cart) -> None:
        self._save(cart)
        self.seen.add(cart)

    def forget(self) -> None:
        """Oublie le panier en mémoire : le prochain get() le relit en base."""
        self.identity_map.pop(CART_KEY, None)

    @abc.abstractmethod
    def _load(self) -> model.Cart:
        raise NotImplementedError

    @abc.abstractmethod
    def _save(self, cart: model.Cart) -> None:
        raise NotImplementedError


class SqlAlchemyCartRepository(AbstractCartRepository):
    """Implémentation concrète : une ligne de la table client_state."""

    def __init__(self, session: Session, identity_map: Optional[dict[str, model.Cart]] = None):
        super().__init__(identity_map)
        self.session = session

    def _load(self) -> model.Cart:
        raw = self.session.execute(
            select(orm.client_state.c.value).where(orm.client_state.c.name == CART_KEY)
        ).scalar_one_or_none()
        return load_cart(raw)

    def _save(self, cart: model.Cart) -> None:
        self.session.execute(
            delete(orm.client_state).where(orm.client_state.c.name == CART_KEY)
        )
        self.session.execute(
            insert(orm.client_state).values(name=CART_KEY, value=dump_cart(cart))
        )
