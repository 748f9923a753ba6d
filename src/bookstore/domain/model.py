"""
Modèle de domaine du client de la librairie.

Ce module contient les entités et value objects du domaine.
Le catalogue (Book) appartient au serveur : le client n'en garde qu'une
copie en cache. Le panier (Cart) est l'agrégat local : il ne stocke que
des références par isbn et une quantité, jamais les champs du livre.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

from bookstore.domain import events


@dataclass(frozen=True)
class Book:
    """
    Value Object représentant un livre tel que renvoyé par le serveur.

    Le stock fait autorité côté serveur : on ne crée jamais un Book
    côté client, on ne fait que remplacer ou patcher la copie en cache.
    """

    isbn: str
    title: str = ""
    author: str = ""
    publish_year: Optional[int] = None
    stock: int = 0
    price: float = 0.0
    cover_url: str = ""


@dataclass(frozen=True)
class CartLine:
    """
    Ligne du panier : une référence faible vers un livre (son isbn)
    et la quantité choisie. Une ligne à quantité 0 n'existe pas.
    """

    isbn: str
    quantity: int


@dataclass(frozen=True)
class OrderLine:
    """Ligne d'une commande, figée au moment de la soumission."""

    book_id: str
    quantity: int


@dataclass(frozen=True)
class Order:
    """Commande enregistrée côté serveur, identifiée par son id."""

    id: str
    lines: tuple[OrderLine, ...] = ()


class SubmissionState(enum.Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class Cart:
    """
    Agrégat racine du panier en cours.

    Le panier est un conteneur pur : il ne consulte pas le catalogue et
    ne borne pas les quantités (c'est à l'appelant de le faire). Il garantit
    ses invariants (une ligne par isbn, aucune quantité <= 0) et porte
    l'état de la soumission, qui n'est pas persisté.
    """

    def __init__(self, lines: Optional[list[CartLine]] = None):
        self.lines: list[CartLine] = list(lines or [])
        self.submission = SubmissionState.IDLE
        self.events: list[events.Event] = []

    def __repr__(self) -> str:
        return f"<Cart {len(self.lines)} lignes>"

    def __len__(self) -> int:
        return len(self.lines)

    def _index(self, isbn: str) -> int:
        return next(
            (i for i, line in enumerate(self.lines) if line.isbn == isbn), -1
        )

    def list(self) -> list[CartLine]:
        """Lignes du panier, dans l'ordre d'insertion."""
        return list(self.lines)

    def quantity_of(self, isbn: str) -> int:
        index = self._index(isbn)
        return self.lines[index].quantity if index >= 0 else 0

    def upsert(self, book: Book, quantity: int) -> bool:
        """
        Ajoute, met à jour ou retire la ligne du livre.

        - quantité 0 : la ligne est retirée (no-op si elle n'existe pas) ;
        - pas de ligne : ajout en fin de panier ;
        - ligne existante de quantité différente : mise à jour sur place,
          la position est conservée.

        Retourne True si le panier a changé.
        """
        if quantity < 0:
            raise ValueError(f"Quantité négative pour {book.isbn} : {quantity}")
        index = self._index(book.isbn)
        if index == -1:
            if quantity == 0:
                return False
            self.lines.append(CartLine(isbn=book.isbn, quantity=quantity))
            return True
        if quantity == 0:
            del self.lines[index]
            return True
        if self.lines[index].quantity == quantity:
            return False
        self.lines[index] = CartLine(isbn=book.isbn, quantity=quantity)
        return True

    def clear(self) -> None:
        self.lines.clear()

    def begin_submission(self) -> tuple[OrderLine, ...]:
        """
        Passe en SUBMITTING et retourne l'instantané immuable du panier.

        L'instantané est découplé du panier : les modifications ultérieures
        n'affectent pas la commande en cours d'envoi.
        """
        self.submission = SubmissionState.SUBMITTING
        return tuple(
            OrderLine(book_id=line.isbn, quantity=line.quantity)
            for line in self.lines
        )

    def submission_succeeded(self, order_id: str) -> None:
        """Le serveur a validé la commande : le panier est vidé en entier."""
        self.submission = SubmissionState.SUCCEEDED
        self.clear()
        self.events.append(events.OrderPlaced(order_id=order_id))

    def submission_failed(self, reason: str, status: Optional[int] = None) -> None:
        """Échec de la soumission : le panier est conservé pour un nouvel essai."""
        self.submission = SubmissionState.FAILED
        self.events.append(events.OrderRejected(reason=reason, status=status))
