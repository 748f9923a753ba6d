"""
Bootstrap : assemblage du client (Composition Root).

Ce module construit le message bus avec toutes ses dépendances.
Les caches et le panier sont des instances uniques par client, créées
ici et passées explicitement aux handlers : aucun état global.

C'est le seul endroit de l'application qui connaît les
implémentations concrètes de chaque abstraction.
"""

from __future__ import annotations

from typing import Any

from bookstore.adapters import alerts, api
from bookstore.config import get_settings
from bookstore.domain import commands, events
from bookstore.service_layer import handlers, messagebus, unit_of_work
from bookstore.views import caches


def bootstrap(
    uow: unit_of_work.AbstractUnitOfWork | None = None,
    api_client: api.AbstractBookstoreApi | None = None,
    alerts_adapter: alerts.AbstractAlerts | None = None,
    catalog: caches.CatalogCache | None = None,
    orders: caches.OrderListCache | None = None,
    details: caches.BookDetailCache | None = None,
    **extra_dependencies: Any,
) -> messagebus.MessageBus:
    """
    Construit et retourne un MessageBus configuré.

    En production, utilise les implémentations concrètes.
    En test, on injecte des fakes via les paramètres.
    """
    if uow is None:
        uow = unit_of_work.SqlAlchemyUnitOfWork()

    if api_client is None:
        settings = get_settings()
        api_client = api.RequestsBookstoreApi(
            settings.api_url, timeout=settings.request_timeout
        )

    if alerts_adapter is None:
        alerts_adapter = alerts.LoggingAlerts()

    dependencies: dict[str, Any] = {
        "api": api_client,
        "alerts": alerts_adapter,
        "catalog": catalog if catalog is not None else caches.CatalogCache(),
        "orders": orders if orders is not None else caches.OrderListCache(),
        "details": details if details is not None else caches.BookDetailCache(),
        **extra_dependencies,
    }

    return messagebus.MessageBus(
        uow=uow,
        event_handlers=EVENT_HANDLERS,
        command_handlers=COMMAND_HANDLERS,
        dependencies=dependencies,
    )


# --- Routage des messages vers les handlers ---

EVENT_HANDLERS: dict[type[events.Event], list] = {
    events.StockUpdated: [handlers.patch_catalog_stock],
    events.OrdersChanged: [handlers.invalidate_orders],
    events.OrderPlaced: [handlers.log_order_placed],
    events.OrderRejected: [handlers.alert_order_rejected],
}

COMMAND_HANDLERS: dict[type[commands.Command], Any] = {
    commands.RefreshCatalog: handlers.refresh_catalog,
    commands.RefreshOrders: handlers.refresh_orders,
    commands.FetchBookDetails: handlers.fetch_book_details,
    commands.UpdateCart: handlers.update_cart,
    commands.ClearCart: handlers.clear_cart,
    commands.SubmitOrder: handlers.submit_order,
    commands.DeleteOrder: handlers.delete_order,
}
