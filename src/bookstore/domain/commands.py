"""
Commands du domaine.

Les commands représentent des intentions : quelque chose que
le système doit faire. Contrairement aux events (faits passés),
les commands sont des demandes qui peuvent échouer.
"""

from dataclasses import dataclass
from typing import Tuple


class Command:
    """Classe de base pour toutes les commands."""
    pass


@dataclass(frozen=True)
class RefreshCatalog(Command):
    """Recharge le catalogue complet depuis le serveur."""

    pass


@dataclass(frozen=True)
class RefreshOrders(Command):
    """Recharge la liste des commandes si elle est périmée (ou toujours si force)."""

    force: bool = False


@dataclass(frozen=True)
class FetchBookDetails(Command):
    """Charge la fiche des livres pas encore présents dans le cache de détails."""

    isbns: Tuple[str, ...]


@dataclass(frozen=True)
class UpdateCart(Command):
    """Ajoute, modifie ou retire (quantité 0) la ligne d'un livre du panier."""

    isbn: str
    quantity: int


@dataclass(frozen=True)
class ClearCart(Command):
    """Vide le panier à la demande de l'utilisateur."""

    pass


@dataclass(frozen=True)
class SubmitOrder(Command):
    """Transforme le panier en commande côté serveur."""

    pass


@dataclass(frozen=True)
class DeleteOrder(Command):
    """Demande la suppression d'une commande existante."""

    order_id: str
