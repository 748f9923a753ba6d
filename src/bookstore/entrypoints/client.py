"""
Point d'entrée applicatif : le client de la librairie.

Le client est un thin adapter entre une interface (console, GUI) et
le message bus : il convertit les actions de l'utilisateur en commands,
fait entrer les notifications reçues dans le bus, et expose les views.

Il ne contient aucune logique métier.
"""

from __future__ import annotations

import contextlib
import logging
from typing import Iterator, Optional

from bookstore.adapters import notifications
from bookstore.domain import commands, model
from bookstore.service_layer import messagebus
from bookstore.views import views
from bookstore.views.quantity import QuantitySelector

logger = logging.getLogger(__name__)


class BookstoreClient:
    """
    Un client en cours d'exécution : un bus, un panier, des caches,
    et au plus un abonnement aux notifications, partagé par toute
    l'interface via le bus.
    """

    def __init__(
        self,
        bus: messagebus.MessageBus,
        channel: notifications.AbstractNotificationChannel,
    ):
        self.bus = bus
        self.channel = channel
        self.catalog = bus.dependencies["catalog"]
        self.orders_cache = bus.dependencies["orders"]
        self.details = bus.dependencies["details"]
        self.subscription: Optional[notifications.Subscription] = None

    # --- Cycle de vie ---

    @contextlib.contextmanager
    def mounted(self) -> Iterator[notifications.Subscription]:
        """
        Ouvre l'abonnement pour la durée du bloc et le ferme à la sortie,
        y compris sur exception.
        """
        subscription = self.channel.open()
        self.subscription = subscription
        try:
            yield subscription
        finally:
            subscription.close()
            self.subscription = None

    def close(self) -> None:
        """Démonte le client : les réponses arrivant ensuite sont ignorées."""
        if self.subscription is not None:
            self.subscription.close()
            self.subscription = None
        self.catalog.close()
        self.orders_cache.close()
        self.details.close()

    def pump(self, timeout: Optional[float] = 0) -> int:
        """
        Fait entrer dans le bus les notifications reçues, dans l'ordre,
        puis recharge la liste des commandes si elle est périmée.

        Avec un timeout non nul, attend au plus ce délai le premier event.
        Retourne le nombre d'events traités.
        """
        if self.subscription is None:
            return 0
        handled = self.bus.drain(self.subscription, timeout=timeout)
        if self.orders_cache.stale and self.orders_cache.orders is not None:
            self.bus.handle(commands.RefreshOrders())
        return handled

    # --- Actions de l'utilisateur ---

    def refresh_catalog(self) -> bool:
        return self.bus.handle(commands.RefreshCatalog())[0]

    def set_quantity(self, isbn: str, quantity: int) -> int:
        return self.bus.handle(commands.UpdateCart(isbn=isbn, quantity=quantity))[0]

    def apply(self, selector: QuantitySelector) -> int:
        """Valide la saisie d'un sélecteur de quantité."""
        quantity = self.bus.handle(selector.command())[0]
        selector.in_cart = quantity > 0
        selector.quantity = 0
        return quantity

    def clear_cart(self) -> None:
        self.bus.handle(commands.ClearCart())

    def submit_order(self) -> Optional[str]:
        return self.bus.handle(commands.SubmitOrder())[0]

    def delete_order(self, order_id: str) -> None:
        self.bus.handle(commands.DeleteOrder(order_id=order_id))

    # --- Lectures ---

    def books(self) -> list[model.Book]:
        return self.catalog.all()

    def selector(self, isbn: str) -> QuantitySelector:
        """Sélecteur de quantité branché sur le catalogue."""
        book = self.catalog.get(isbn)
        if book is None:
            raise KeyError(isbn)
        in_cart = any(line.isbn == isbn for line in self.cart())
        selector = QuantitySelector(book, in_cart=in_cart)
        selector.watch(self.catalog)
        return selector

    def cart(self) -> list[views.CartLineView]:
        return views.cart_lines(self.bus.uow, self.catalog)

    def submission_state(self) -> model.SubmissionState:
        with self.bus.uow:
            return self.bus.uow.carts.get().submission

    def orders(self) -> Optional[list[model.Order]]:
        """Commandes connues ; déclenche le rechargement si la liste est périmée."""
        self.bus.handle(commands.RefreshOrders())
        return views.orders(self.orders_cache)

    def order_summary(self, order: model.Order, expanded: bool = False) -> views.OrderSummary:
        """
        Résumé d'une commande. Les fiches des livres ne sont chargées
        que lorsque le résumé est déplié.
        """
        if expanded:
            self.bus.handle(
                commands.FetchBookDetails(isbns=tuple(line.book_id for line in order.lines))
            )
        return views.order_summary(order, self.details)
