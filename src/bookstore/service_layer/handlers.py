"""
Handlers pour les commands et events.

Les handlers sont les fonctions qui traitent les commands et events
transitant par le message bus.

- Command handlers : exécutent une action (peuvent échouer)
- Event handlers : réagissent à un fait passé (ne doivent pas échouer)

La politique de réconciliation vit ici : une notification ne touche
que les caches de lecture, jamais le panier ; seul le résultat d'une
soumission ou une action explicite de l'utilisateur modifie le panier.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from bookstore.adapters.api import ApiError
from bookstore.domain import commands, events, model

if TYPE_CHECKING:
    from bookstore.adapters.alerts import AbstractAlerts
    from bookstore.adapters.api import AbstractBookstoreApi
    from bookstore.service_layer.unit_of_work import AbstractUnitOfWork
    from bookstore.views.caches import BookDetailCache, CatalogCache, OrderListCache

logger = logging.getLogger(__name__)


# --- Exceptions ---


class UnknownBook(Exception):
    """Levée quand un isbn référencé n'existe pas dans le catalogue en cache."""
    pass


# --- Command Handlers ---


def refresh_catalog(
    cmd: commands.RefreshCatalog,
    api: AbstractBookstoreApi,
    catalog: CatalogCache,
) -> bool:
    """
    Recharge tout le catalogue.

    En cas d'échec le cache reste tel quel : l'interface affiche
    l'absence de données plutôt qu'une erreur.
    """
    try:
        books = api.list_books()
    except ApiError as e:
        logger.warning("Chargement du catalogue impossible : %s", e)
        return False
    catalog.replace_all(books)
    logger.debug("Catalogue rechargé : %d livres", len(books))
    return True


def refresh_orders(
    cmd: commands.RefreshOrders,
    api: AbstractBookstoreApi,
    orders: OrderListCache,
) -> bool:
    """Seconde étape du contrat d'invalidation : recharger si périmé."""
    try:
        return orders.refresh_if_stale(api.list_orders, force=cmd.force)
    except ApiError as e:
        logger.warning("Chargement des commandes impossible : %s", e)
        return False


def fetch_book_details(
    cmd: commands.FetchBookDetails,
    api: AbstractBookstoreApi,
    details: BookDetailCache,
) -> int:
    """Charge les fiches manquantes ; retourne le nombre de fiches obtenues."""
    fetched = 0
    for isbn in details.missing(cmd.isbns):
        try:
            details.put(api.get_book(isbn))
        except ApiError as e:
            logger.warning("Fiche du livre %s indisponible : %s", isbn, e)
            continue
        fetched += 1
    return fetched


def update_cart(
    cmd: commands.UpdateCart,
    uow: AbstractUnitOfWork,
    catalog: CatalogCache,
) -> int:
    """
    Ajoute, modifie ou retire une ligne du panier.

    La quantité est bornée à [0, stock] ici, avant d'atteindre le panier,
    qui reste un conteneur pur. Retourne la quantité effectivement retenue.
    Lève UnknownBook si le livre n'est pas dans le catalogue, sauf pour un
    retrait (quantité 0), toujours possible même catalogue non chargé.
    """
    book = catalog.get(cmd.isbn)
    if book is None:
        if cmd.quantity > 0:
            raise UnknownBook(f"Livre inconnu : {cmd.isbn}")
        book = model.Book(isbn=cmd.isbn)
    quantity = max(0, min(cmd.quantity, book.stock))
    with uow:
        cart = uow.carts.get()
        if cart.upsert(book, quantity):
            uow.commit()
    return quantity


def clear_cart(
    cmd: commands.ClearCart,
    uow: AbstractUnitOfWork,
) -> None:
    with uow:
        uow.carts.get().clear()
        uow.commit()


def submit_order(
    cmd: commands.SubmitOrder,
    uow: AbstractUnitOfWork,
    api: AbstractBookstoreApi,
) -> Optional[str]:
    """
    Soumet le panier au serveur.

    No-op si le panier est vide. En cas de succès le panier est vidé
    (le serveur a validé et décrémenté le stock, une notification
    mettra le catalogue à jour). En cas d'échec le panier est conservé
    et un event OrderRejected est émis. Pas de nouvel essai automatique.
    Une erreur autre qu'ApiError passe aussi le panier en FAILED, puis
    remonte à l'appelant.

    Retourne l'id de la commande créée, ou None.
    """
    with uow:
        cart = uow.carts.get()
        if not cart.lines:
            logger.debug("Soumission ignorée : panier vide")
            return None
        lines = cart.begin_submission()
        try:
            order_id = api.create_order(lines)
        except ApiError as e:
            cart.submission_failed(str(e), e.status)
            return None
        except Exception as e:
            # Le panier ne reste jamais en SUBMITTING ; le bus signale
            # l'échec avant de laisser remonter l'erreur
            cart.submission_failed(str(e) or type(e).__name__)
            raise
        cart.submission_succeeded(order_id)
        uow.commit()
    logger.info("Commande %s créée (%d lignes)", order_id, len(lines))
    return order_id


def delete_order(
    cmd: commands.DeleteOrder,
    api: AbstractBookstoreApi,
) -> None:
    """
    Demande la suppression d'une commande, sans attendre de confirmation.

    La liste affichée n'est pas modifiée ici : c'est la notification
    order_update qui la rendra périmée une fois la suppression effective.
    """
    try:
        api.delete_order(cmd.order_id)
    except ApiError as e:
        logger.warning("Suppression de la commande %s impossible : %s", cmd.order_id, e)


# --- Event Handlers ---


def patch_catalog_stock(
    event: events.StockUpdated,
    catalog: CatalogCache,
) -> None:
    """Applique un changement de stock poussé par le serveur."""
    catalog.patch_stock(event.book_id, event.new_stock)


def invalidate_orders(
    event: events.OrdersChanged,
    orders: OrderListCache,
) -> None:
    """
    Marque la liste des commandes comme périmée.

    Le flux ne donne pas de delta : pas de patch ciblé, le
    rechargement se fera à la prochaine lecture.
    """
    orders.mark_stale()


def log_order_placed(
    event: events.OrderPlaced,
) -> None:
    logger.info("Commande %s acceptée par le serveur", event.order_id)


def alert_order_rejected(
    event: events.OrderRejected,
    alerts: AbstractAlerts,
) -> None:
    """Signale à l'utilisateur que la commande n'a pas été passée."""
    alerts.send(f"Erreur lors de la commande : {event.reason}")
