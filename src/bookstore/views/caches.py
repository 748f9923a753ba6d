"""
Caches de lecture (côté Query).

Ces caches ne sont modifiés que par les résultats de requêtes au serveur
et par les notifications poussées. Ils ne sont jamais fusionnés avec le
panier : le panier ne garde que des isbn et se rejoint au catalogue à
chaque lecture.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Callable, Iterable, Optional

from bookstore.domain import model

logger = logging.getLogger(__name__)

Listener = Callable[[list[model.Book]], None]


class CatalogCache:
    """
    Cache du catalogue, indexé par isbn et ordonné comme le serveur.

    Deux patches de stock sur le même isbn : le dernier arrivé gagne. Sans
    numéro de séquence dans le flux, une livraison désordonnée peut laisser
    une valeur périmée jusqu'au prochain rechargement complet.
    """

    def __init__(self) -> None:
        self._books: dict[str, model.Book] = {}
        self._listeners: list[Listener] = []
        self.loaded = False
        self.closed = False

    def __contains__(self, isbn: str) -> bool:
        return isbn in self._books

    def __len__(self) -> int:
        return len(self._books)

    def get(self, isbn: str) -> Optional[model.Book]:
        return self._books.get(isbn)

    def all(self) -> list[model.Book]:
        return list(self._books.values())

    def replace_all(self, books: Iterable[model.Book]) -> None:
        """Remplace tout le catalogue (rechargement complet)."""
        if self.closed:
            logger.debug("Catalogue fermé, rechargement ignoré")
            return
        previous = self._books
        self._books = {book.isbn: book for book in books}
        self.loaded = True
        changed = [book for isbn, book in self._books.items() if previous.get(isbn) != book]
        self._notify(changed)

    def patch_stock(self, isbn: str, new_stock: int) -> bool:
        """
        Met à jour le stock d'un livre déjà en cache.

        No-op si le livre n'est pas encore chargé : le prochain
        rechargement complet apportera la bonne valeur.
        """
        if self.closed:
            return False
        book = self._books.get(isbn)
        if book is None:
            logger.debug("Stock de %s ignoré : livre absent du cache", isbn)
            return False
        if book.stock == new_stock:
            return False
        patched = dataclasses.replace(book, stock=new_stock)
        self._books[isbn] = patched
        self._notify([patched])
        return True

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Enregistre un lecteur dépendant ; retourne la fonction de désinscription."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        self.closed = True
        self._listeners.clear()

    def _notify(self, changed: list[model.Book]) -> None:
        if not changed:
            return
        for listener in list(self._listeners):
            listener(changed)


class OrderListCache:
    """
    Cache de la liste des commandes.

    Contrat en deux temps :
    - mark_stale() est une simple transition d'état (notification reçue) ;
    - refresh_if_stale() est l'action explicite de rechargement, déclenchée
      à la lecture suivante ou par la boucle du client.
    Tant que rien n'a été chargé, orders vaut None (« pas encore de données »).
    """

    def __init__(self) -> None:
        self.orders: Optional[list[model.Order]] = None
        self.stale = True
        self.closed = False

    def mark_stale(self) -> None:
        self.stale = True

    def replace(self, orders: Iterable[model.Order]) -> None:
        if self.closed:
            return
        self.orders = list(orders)
        self.stale = False

    def refresh_if_stale(
        self, fetch: Callable[[], list[model.Order]], force: bool = False
    ) -> bool:
        """Recharge via fetch() si le cache est périmé. Retourne True si rechargé."""
        if self.closed or not (self.stale or force):
            return False
        self.replace(fetch())
        return True

    def close(self) -> None:
        self.closed = True


class BookDetailCache:
    """Fiches de livres chargées à la demande (GET /api/books/{isbn})."""

    def __init__(self) -> None:
        self._books: dict[str, model.Book] = {}
        self.closed = False

    def get(self, isbn: str) -> Optional[model.Book]:
        return self._books.get(isbn)

    def put(self, book: model.Book) -> None:
        if self.closed:
            return
        self._books[book.isbn] = book

    def close(self) -> None:
        self.closed = True

    def missing(self, isbns: Iterable[str]) -> list[str]:
        return [isbn for isbn in dict.fromkeys(isbns) if isbn not in self._books]
