"""
Adapter pour les alertes destinées à l'utilisateur.

Le domaine signale un échec visible (commande refusée) sans savoir
comment il sera affiché : boîte de dialogue, bandeau, ou simple log
dans le cas du client console.
"""

from __future__ import annotations

import abc
import logging

logger = logging.getLogger(__name__)


class AbstractAlerts(abc.ABC):
    """Interface abstraite pour les alertes utilisateur."""

    @abc.abstractmethod
    def send(self, message: str) -> None:
        raise NotImplementedError


class LoggingAlerts(AbstractAlerts):
    """Implémentation par défaut : l'alerte est écrite dans les logs."""

    def send(self, message: str) -> None:
        logger.warning("ALERTE : %s", message)
