"""
Events du domaine.

Les events représentent des faits qui se sont produits dans le système.
Ils sont immuables et nommés au passé (quelque chose s'est passé).

Deux familles cohabitent :
- les notifications poussées par le serveur (StockUpdated, OrdersChanged),
  qui entrent dans le bus depuis le canal de notifications ;
- les events émis par l'agrégat Cart (OrderPlaced, OrderRejected).
"""

from dataclasses import dataclass
from typing import Optional


class Event:
    """Classe de base pour tous les events du domaine."""
    pass


@dataclass(frozen=True)
class StockUpdated(Event):
    """Le serveur a modifié le stock d'un livre (vendu à un autre client)."""

    book_id: str
    new_stock: int


@dataclass(frozen=True)
class OrdersChanged(Event):
    """Une commande a été créée ou supprimée côté serveur."""

    pass


@dataclass(frozen=True)
class OrderPlaced(Event):
    """Le serveur a accepté la commande soumise."""

    order_id: str


@dataclass(frozen=True)
class OrderRejected(Event):
    """La soumission a échoué (refus applicatif ou erreur de transport)."""

    reason: str
    status: Optional[int] = None
