"""
Message Bus.

Le message bus est le point central de dispatch des messages
(commands et events) vers leurs handlers respectifs. C'est aussi
le « thread logique » unique du client : actions de l'utilisateur,
résultats réseau et notifications poussées passent tous par lui,
l'un après l'autre.

Fonctionnement :
1. Un message (command ou event) entre dans le bus, directement ou
   depuis la file d'un abonnement aux notifications (drain)
2. Le bus trouve le(s) handler(s) correspondant(s), déjà liés à leurs
   dépendances
3. Le handler est exécuté
4. Les événements émis pendant l'exécution sont collectés et traités à leur tour

Différences clés :
- Une command a exactement UN handler ; l'erreur remonte à l'appelant,
  mais seulement après le traitement des events déjà émis
- Un event peut avoir 0 à N handlers ; les erreurs sont loggées mais ne bloquent pas
"""

from __future__ import annotations

import functools
import inspect
import logging
from collections import deque
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

from bookstore.domain import commands, events
from bookstore.service_layer import unit_of_work

if TYPE_CHECKING:
    from bookstore.adapters.notifications import Subscription

logger = logging.getLogger(__name__)

Message = Union[commands.Command, events.Event]


class MessageBus:
    """
    Message Bus avec injection de dépendances.

    Les dépendances (uow, api, caches, alertes) sont résolues une seule
    fois, à la construction : chaque handler est lié à ses arguments par
    introspection de sa signature. Une dépendance manquante est donc
    signalée au démarrage du client, pas au premier message.
    """

    def __init__(
        self,
        uow: unit_of_work.AbstractUnitOfWork,
        event_handlers: dict[type[events.Event], list[Callable]],
        command_handlers: dict[type[commands.Command], Callable],
        dependencies: dict[str, Any] | None = None,
    ):
        self.uow = uow
        self.dependencies = dependencies or {}
        self.event_handlers = {
            event_type: [self._bind(handler) for handler in handlers]
            for event_type, handlers in event_handlers.items()
        }
        self.command_handlers = {
            command_type: self._bind(handler)
            for command_type, handler in command_handlers.items()
        }
        self.queue: deque[Message] = deque()

    def _bind(self, handler: Callable) -> functools.partial:
        """
        Lie un handler à ses dépendances.

        Le premier paramètre est toujours le message ; les suivants sont
        résolus par nom (uow, puis le dictionnaire de dépendances). Un
        paramètre sans valeur par défaut et sans dépendance correspondante
        est une erreur de configuration.
        """
        kwargs: dict[str, Any] = {}
        for name, param in list(inspect.signature(handler).parameters.items())[1:]:
            if name == "uow":
                kwargs[name] = self.uow
            elif name in self.dependencies:
                kwargs[name] = self.dependencies[name]
            elif param.default is inspect.Parameter.empty:
                raise ValueError(f"Dépendance manquante pour {handler.__name__} : {name}")
        return functools.partial(handler, **kwargs)

    def handle(self, message: Message) -> list[Any]:
        """
        Point d'entrée principal : traite un message et tous
        les événements qui en découlent (propagation en cascade).
        """
        self.queue = deque([message])
        results: list[Any] = []
        while self.queue:
            message = self.queue.popleft()
            if isinstance(message, events.Event):
                self._handle_event(message)
            elif isinstance(message, commands.Command):
                try:
                    results.append(self._handle_command(message))
                except Exception:
                    self._flush_events()
                    raise
            else:
                raise ValueError(f"Message de type inconnu : {type(message)}")
        return results

    def drain(self, subscription: Subscription, timeout: Optional[float] = 0) -> int:
        """
        Fait entrer dans le bus les events reçus par un abonnement,
        dans l'ordre d'arrivée.

        Avec un timeout non nul, attend au plus ce délai le premier event.
        Retourne le nombre d'events traités.
        """
        received: list[events.Event] = []
        if timeout:
            first = subscription.get(timeout=timeout)
            if first is not None:
                received.append(first)
        received.extend(subscription.pending())
        for event in received:
            self.handle(event)
        return len(received)

    def _handle_event(self, event: events.Event) -> None:
        """
        Dispatch un event vers tous ses handlers.

        Si un handler échoue, l'erreur est loggée mais les
        autres handlers continuent : une notification mal digérée
        ne doit jamais arrêter la boucle de dispatch.
        """
        for handler in self.event_handlers.get(type(event), []):
            try:
                logger.debug("Traitement de l'event %s avec %s", event, handler.func.__name__)
                handler(event)
                self.queue.extend(self.uow.collect_new_events())
            except Exception:
                logger.exception("Erreur lors du traitement de l'event %s", event)

    def _handle_command(self, command: commands.Command) -> Any:
        """
        Dispatch une command vers son unique handler.

        Les events émis sont collectés même si le handler lève :
        un échec signalé par l'agrégat avant l'erreur n'est pas perdu.
        """
        logger.debug("Traitement de la command %s", command)
        handler = self.command_handlers.get(type(command))
        if handler is None:
            raise ValueError(f"Aucun handler pour la command {type(command)}")
        try:
            return handler(command)
        finally:
            self.queue.extend(self.uow.collect_new_events())

    def _flush_events(self) -> None:
        """Traite les events restants avant de laisser remonter l'erreur d'une command."""
        while self.queue:
            message = self.queue.popleft()
            if isinstance(message, events.Event):
                self._handle_event(message)
