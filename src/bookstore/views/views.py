"""
Views (lecture) pour le pattern CQRS.

Les views sont des fonctions de lecture pure : elles joignent le panier
aux caches au moment de la lecture, sans jamais recopier les champs
d'un livre dans le panier. Un isbn non résolu est rendu « en cours de
chargement » plutôt qu'écarté.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from bookstore.domain import model
from bookstore.service_layer import unit_of_work
from bookstore.views.caches import BookDetailCache, CatalogCache, OrderListCache


@dataclass(frozen=True)
class CartLineView:
    isbn: str
    quantity: int
    book: Optional[model.Book] = None

    @property
    def loading(self) -> bool:
        return self.book is None


@dataclass(frozen=True)
class OrderLineView:
    book_id: str
    quantity: int
    title: Optional[str] = None

    @property
    def loading(self) -> bool:
        return self.title is None


@dataclass(frozen=True)
class OrderSummary:
    id: str
    lines: tuple[OrderLineView, ...]

    @property
    def book_count(self) -> int:
        return len(self.lines)


def cart_lines(uow: unit_of_work.AbstractUnitOfWork, catalog: CatalogCache) -> list[CartLineView]:
    """Lignes du panier jointes au catalogue courant, dans l'ordre du panier."""
    with uow:
        lines = uow.carts.get().list()
    return [
        CartLineView(isbn=line.isbn, quantity=line.quantity, book=catalog.get(line.isbn))
        for line in lines
    ]


def orders(orders_cache: OrderListCache) -> Optional[list[model.Order]]:
    """Commandes connues, ou None tant qu'aucun chargement n'a abouti."""
    if orders_cache.orders is None:
        return None
    return list(orders_cache.orders)


def order_summary(order: model.Order, details: BookDetailCache) -> OrderSummary:
    """Résumé d'une commande, titres résolus depuis le cache de fiches."""
    lines = []
    for line in order.lines:
        book = details.get(line.book_id)
        lines.append(
            OrderLineView(
                book_id=line.book_id,
                quantity=line.quantity,
                title=book.title if book is not None else None,
            )
        )
    return OrderSummary(id=order.id, lines=tuple(lines))
