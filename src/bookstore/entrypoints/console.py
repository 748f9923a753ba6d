"""
Client console : charge le catalogue, puis suit les notifications
du serveur et journalise l'état du catalogue et du panier.
"""

from __future__ import annotations

import logging

from bookstore.adapters import notifications
from bookstore.config import get_settings
from bookstore.entrypoints.client import BookstoreClient
from bookstore.service_layer import bootstrap

logger = logging.getLogger(__name__)


def _log_changes(changed: list) -> None:
    for book in changed:
        logger.info("Stock de %s (%s) : %d", book.isbn, book.title, book.stock)


def main() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    bus = bootstrap.bootstrap()
    channel = notifications.SseNotificationChannel(
        settings.api_url,
        reconnect_delay=settings.reconnect_delay,
        connect_timeout=settings.request_timeout,
    )
    client = BookstoreClient(bus, channel)
    client.catalog.subscribe(_log_changes)

    if client.refresh_catalog():
        logger.info("%d livres au catalogue", len(client.books()))
    for line in client.cart():
        title = "chargement..." if line.loading else line.book.title
        logger.info("Panier : %s x%d (%s)", line.isbn, line.quantity, title)

    try:
        with client.mounted():
            while True:
                client.pump(timeout=1.0)
    except KeyboardInterrupt:
        logger.info("Arrêt demandé")
    finally:
        client.close()


if __name__ == "__main__":
    main()
