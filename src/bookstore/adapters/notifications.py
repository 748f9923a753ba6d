"""
Adapter pour le canal de notifications poussées par le serveur.

Le serveur publie sur /api/notifications un flux SSE d'events nommés
(stock_update, order_update, heartbeat). Ce module :
- décode chaque message en event du domaine (ou l'ignore) ;
- maintient l'abonnement ouvert : toute erreur est loggée puis suivie
  d'une reconnexion, jamais remontée à l'utilisateur ;
- expose l'abonnement comme une ressource explicite (Subscription) que
  le consommateur ferme avec `with`, quelle que soit sa sortie.

La lecture du flux se fait sur un thread dédié qui ne fait que parser
et mettre en file. Le traitement des events reste sur le thread du
consommateur, qui vide la file quand il le souhaite.
"""

from __future__ import annotations

import abc
import json
import logging
import queue
import threading
from typing import Iterable, Iterator, Optional

import requests

from bookstore.adapters.sse import ServerSentEvent, parse_stream
from bookstore.domain import events

logger = logging.getLogger(__name__)


def decode_event(message: ServerSentEvent) -> Optional[events.Event]:
    """
    Traduit un message SSE en event du domaine.

    Retourne None pour les messages sans intérêt (heartbeat, events
    inconnus) et pour les payloads illisibles, qui sont loggés et
    abandonnés sans interrompre le canal.
    """
    if message.event == "stock_update":
        try:
            payload = json.loads(message.data)
            book_id = payload["bookId"]
            new_stock = payload["newStock"]
            if not isinstance(book_id, str) or isinstance(new_stock, bool):
                raise TypeError(f"types inattendus : {payload!r}")
            if int(new_stock) != new_stock or new_stock < 0:
                raise ValueError(f"stock invalide : {new_stock!r}")
        # 1e400 est du JSON valide : int(inf) lève OverflowError
        except (ValueError, KeyError, TypeError, OverflowError) as e:
            logger.warning("stock_update illisible ignoré (%s) : %r", e, message.data)
            return None
        return events.StockUpdated(book_id=book_id, new_stock=int(new_stock))

    if message.event == "order_update":
        # Le payload (orderId) n'est pas utilisé : seule la présence compte
        return events.OrdersChanged()

    if message.event == "heartbeat":
        logger.debug("Heartbeat reçu")
    else:
        logger.debug("Event SSE inconnu ignoré : %s", message.event)
    return None


class AbstractEventSource(abc.ABC):
    """Une connexion au flux SSE, ouverte et refermée à chaque (re)connexion."""

    @abc.abstractmethod
    def connect(self, last_event_id: Optional[str] = None) -> Iterable[str]:
        """Ouvre le flux et retourne ses lignes, sans fin de ligne."""
        raise NotImplementedError

    @abc.abstractmethod
    def disconnect(self) -> None:
        raise NotImplementedError


class RequestsEventSource(AbstractEventSource):
    """Implémentation concrète : GET en streaming avec requests."""

    def __init__(self, url: str, session: requests.Session, connect_timeout: float = 10.0):
        self.url = url
        self.session = session
        self.connect_timeout = connect_timeout
        self._response: Optional[requests.Response] = None

    def connect(self, last_event_id: Optional[str] = None) -> Iterable[str]:
        headers = {"Accept": "text/event-stream", "Cache-Control": "no-cache"}
        if last_event_id is not None:
            headers["Last-Event-ID"] = last_event_id
        # Pas de timeout de lecture : le flux reste ouvert indéfiniment
        response = self.session.get(
            self.url, stream=True, headers=headers, timeout=(self.connect_timeout, None)
        )
        self._response = response
        response.raise_for_status()
        response.encoding = "utf-8"
        return response.iter_lines(chunk_size=None, decode_unicode=True)

    def disconnect(self) -> None:
        response, self._response = self._response, None
        if response is not None:
            response.close()


class Subscription:
    """
    Abonnement actif au canal de notifications.

    S'utilise comme context manager ; après close(), plus aucun event
    n'est livré ni conservé en file.
    """

    def __init__(self, source: AbstractEventSource, reconnect_delay: float = 3.0):
        self.source = source
        self.reconnect_delay = reconnect_delay
        self.last_event_id: Optional[str] = None
        self._queue: queue.Queue[events.Event] = queue.Queue()
        self._closed = threading.Event()
        self._lock = threading.Lock()
        self._thread = threading.Thread(
            target=self._run, name="bookstore-notifications", daemon=True
        )

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def start(self) -> None:
        self._thread.start()

    def close(self) -> None:
        with self._lock:
            if self._closed.is_set():
                return
            self._closed.set()
            while not self._queue.empty():
                self._queue.get_nowait()
        self.source.disconnect()
        if self._thread.is_alive() and threading.current_thread() is not self._thread:
            self._thread.join(timeout=1.0)
        logger.debug("Abonnement aux notifications fermé")

    def get(self, timeout: Optional[float] = None) -> Optional[events.Event]:
        """Attend le prochain event (None si délai écoulé ou abonnement fermé)."""
        if self.closed:
            return None
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def pending(self) -> list[events.Event]:
        """Vide la file sans attendre, dans l'ordre d'arrivée."""
        received: list[events.Event] = []
        while not self.closed:
            try:
                received.append(self._queue.get_nowait())
            except queue.Empty:
                break
        return received

    def __iter__(self) -> Iterator[events.Event]:
        while not self.closed:
            event = self.get(timeout=0.5)
            if event is not None:
                yield event

    def _put(self, event: events.Event) -> None:
        with self._lock:
            if not self._closed.is_set():
                self._queue.put(event)

    def _run(self) -> None:
        delay = self.reconnect_delay
        while not self._closed.is_set():
            try:
                for message in parse_stream(self.source.connect(self.last_event_id)):
                    if self._closed.is_set():
                        break
                    if message.id is not None:
                        self.last_event_id = message.id
                    if message.retry is not None:
                        delay = message.retry / 1000
                    event = decode_event(message)
                    if event is not None:
                        self._put(event)
                else:
                    if not self._closed.is_set():
                        logger.info("Flux de notifications terminé, reconnexion dans %.1fs", delay)
            except Exception:
                if self._closed.is_set():
                    break
                logger.exception(
                    "Erreur sur le canal de notifications, reconnexion dans %.1fs", delay
                )
            finally:
                self.source.disconnect()
            self._closed.wait(delay)


class AbstractNotificationChannel(abc.ABC):
    """Fabrique d'abonnements : chaque open() ouvre sa propre connexion."""

    reconnect_delay: float = 3.0

    def open(self) -> Subscription:
        subscription = Subscription(self._make_source(), self.reconnect_delay)
        subscription.start()
        logger.debug("Abonnement aux notifications ouvert")
        return subscription

    @abc.abstractmethod
    def _make_source(self) -> AbstractEventSource:
        raise NotImplementedError


class SseNotificationChannel(AbstractNotificationChannel):
    """Canal concret sur GET {api_url}/api/notifications."""

    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        reconnect_delay: float = 3.0,
        connect_timeout: float = 10.0,
    ):
        self.url = f"{base_url.rstrip('/')}/api/notifications"
        self.session = session or requests.Session()
        self.reconnect_delay = reconnect_delay
        self.connect_timeout = connect_timeout

    def _make_source(self) -> AbstractEventSource:
        return RequestsEventSource(self.url, self.session, self.connect_timeout)
