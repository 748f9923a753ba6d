"""
Sélecteur de quantité d'une ligne du catalogue.

C'est la seule partie d'une ligne du catalogue qui a un état propre :
la quantité saisie, bornée par le stock courant, remise à zéro dès que
le stock du livre change (vendu ailleurs, notification reçue).
"""

from __future__ import annotations

import enum
import re
from typing import Callable, Optional, Union

from bookstore.domain import commands, model
from bookstore.views.caches import CatalogCache

_LEADING_INT = re.compile(r"\s*[+-]?\d+")


class Action(enum.Enum):
    ADD = "add"
    UPDATE = "update"
    REMOVE = "remove"


class QuantitySelector:
    def __init__(self, book: model.Book, in_cart: bool = False):
        self.book = book
        self.in_cart = in_cart
        self.quantity = 0
        self._unsubscribe: Optional[Callable[[], None]] = None

    def set(self, value: Union[str, int]) -> bool:
        """
        Applique une saisie. Seul le préfixe entier est lu (« 3abc » vaut 3,
        « 2.5 » vaut 2) ; une saisie sans chiffres en tête ou hors de
        [0, stock] est ignorée (la saisie précédente est conservée).
        """
        match = _LEADING_INT.match(str(value))
        if match is None:
            return False
        quantity = int(match.group())
        if not 0 <= quantity <= self.book.stock:
            return False
        self.quantity = quantity
        return True

    def on_books_changed(self, changed: list[model.Book]) -> None:
        for book in changed:
            if book.isbn != self.book.isbn:
                continue
            if book.stock != self.book.stock:
                self.quantity = 0
            self.book = book

    def watch(self, catalog: CatalogCache) -> Callable[[], None]:
        """Suit les changements du catalogue ; retourne la désinscription."""
        self._unsubscribe = catalog.subscribe(self.on_books_changed)
        return self._unsubscribe

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    @property
    def action(self) -> Action:
        if not self.in_cart:
            return Action.ADD
        return Action.REMOVE if self.quantity == 0 else Action.UPDATE

    @property
    def enabled(self) -> bool:
        return self.quantity > 0 or self.in_cart

    def command(self) -> commands.UpdateCart:
        return commands.UpdateCart(isbn=self.book.isbn, quantity=self.quantity)
