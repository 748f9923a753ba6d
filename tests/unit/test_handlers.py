"""
Tests des handlers via la service layer (high gear).

Ces tests passent par le message bus avec des fakes (FakeUnitOfWork,
FakeApi, FakeAlerts) pour tester les cas d'usage complets sans
réseau ni base de données.
"""

from __future__ import annotations

import pytest

from fakes import (
    FakeAlerts,
    FakeApi,
    FakeResponse,
    FakeSession,
    FakeUnitOfWork,
    bootstrap_test_bus,
)

from bookstore.adapters.api import ApiError, OrderRejected, RequestsBookstoreApi
from bookstore.domain import commands, events
from bookstore.domain.model import Book, Cart, CartLine, Order, OrderLine, SubmissionState
from bookstore.service_layer import handlers


def panier(uow: FakeUnitOfWork) -> list[CartLine]:
    with uow:
        return uow.carts.get().list()


def bus_avec_catalogue(*livres: Book, uow=None, api=None, alerts=None):
    api = api or FakeApi(livres)
    bus = bootstrap_test_bus(uow=uow, api=api, alerts=alerts)
    bus.handle(commands.RefreshCatalog())
    return bus


# --- Tests des Commands ---


class TestRefreshCatalog:
    def test_remplit_le_catalogue(self):
        bus = bus_avec_catalogue(Book("A", stock=3), Book("B", stock=1))
        assert bus.dependencies["catalog"].get("A") == Book("A", stock=3)

    def test_échec_réseau_laisse_le_cache_intact(self):
        api = FakeApi([Book("A", stock=3)])
        bus = bus_avec_catalogue(api=api)
        api.offline = True

        results = bus.handle(commands.RefreshCatalog())

        assert results == [False]
        assert bus.dependencies["catalog"].get("A") == Book("A", stock=3)

    def test_réponse_illisible_laisse_le_catalogue_vide(self):
        session = FakeSession(FakeResponse(body=[{"title": "sans isbn"}]))
        bus = bootstrap_test_bus(api=RequestsBookstoreApi("http://librairie.test", session=session))

        assert bus.handle(commands.RefreshCatalog()) == [False]
        assert not bus.dependencies["catalog"].loaded


class TestUpdateCart:
    def test_ajoute_au_panier_et_persiste(self):
        uow = FakeUnitOfWork()
        bus = bus_avec_catalogue(Book("X", stock=10), uow=uow)

        bus.handle(commands.UpdateCart("X", 3))

        assert panier(uow) == [CartLine("X", 3)]
        assert uow.carts.saved == [CartLine("X", 3)]

    def test_quantité_bornée_au_stock(self):
        uow = FakeUnitOfWork()
        bus = bus_avec_catalogue(Book("X", stock=2), uow=uow)

        results = bus.handle(commands.UpdateCart("X", 9))

        assert results == [2]
        assert panier(uow) == [CartLine("X", 2)]

    def test_quantité_zéro_retire_la_ligne(self):
        uow = FakeUnitOfWork(Cart([CartLine("X", 3)]))
        bus = bus_avec_catalogue(Book("X", stock=10), uow=uow)

        bus.handle(commands.UpdateCart("X", 0))

        assert panier(uow) == []
        assert uow.carts.saved == []

    def test_upsert_identique_ne_réécrit_pas(self):
        uow = FakeUnitOfWork()
        bus = bus_avec_catalogue(Book("X", stock=10), uow=uow)
        bus.handle(commands.UpdateCart("X", 3))
        commits = uow.commits

        bus.handle(commands.UpdateCart("X", 3))

        assert uow.commits == commits
        assert panier(uow) == [CartLine("X", 3)]

    def test_livre_inconnu(self):
        bus = bus_avec_catalogue(Book("X", stock=10))

        with pytest.raises(handlers.UnknownBook, match="INCONNU"):
            bus.handle(commands.UpdateCart("INCONNU", 1))

    def test_retrait_possible_avant_le_chargement_du_catalogue(self):
        uow = FakeUnitOfWork(Cart([CartLine("X", 3)]))
        bus = bootstrap_test_bus(uow=uow)

        bus.handle(commands.UpdateCart("X", 0))

        assert panier(uow) == []

    def test_le_panier_n_est_chargé_qu_une_fois(self):
        uow = FakeUnitOfWork()
        bus = bus_avec_catalogue(Book("A", stock=5), Book("B", stock=5), uow=uow)

        bus.handle(commands.UpdateCart("A", 1))
        bus.handle(commands.UpdateCart("B", 1))
        bus.handle(commands.ClearCart())

        assert uow.carts.loads == 1


class TestClearCart:
    def test_vide_le_panier(self):
        uow = FakeUnitOfWork(Cart([CartLine("A", 1), CartLine("B", 2)]))
        bus = bootstrap_test_bus(uow=uow)

        bus.handle(commands.ClearCart())

        assert panier(uow) == []
        assert uow.carts.saved == []


class TestSubmitOrder:
    def test_succès_vide_le_panier(self):
        uow = FakeUnitOfWork(Cart([CartLine("A", 1), CartLine("B", 2)]))
        api = FakeApi()
        bus = bootstrap_test_bus(uow=uow, api=api)

        results = bus.handle(commands.SubmitOrder())

        assert results == ["order-1"]
        assert api.created == [(OrderLine("A", 1), OrderLine("B", 2))]
        assert panier(uow) == []
        assert uow.carts.saved == []
        with uow:
            assert uow.carts.get().submission is SubmissionState.SUCCEEDED

    def test_succès_ne_revalide_pas_le_stock_localement(self):
        uow = FakeUnitOfWork()
        api = FakeApi([Book("A", stock=5)])
        bus = bus_avec_catalogue(api=api, uow=uow)
        bus.handle(commands.UpdateCart("A", 5))

        bus.handle(commands.SubmitOrder())

        # Le stock ne bougera qu'à réception de la notification stock_update
        assert bus.dependencies["catalog"].get("A").stock == 5

    def test_échec_conserve_le_panier_et_alerte_une_fois(self):
        uow = FakeUnitOfWork(Cart([CartLine("A", 1)]))
        api = FakeApi()
        api.fail_orders = OrderRejected("Not enough stock for book A", 409)
        alerts = FakeAlerts()
        bus = bootstrap_test_bus(uow=uow, api=api, alerts=alerts)

        results = bus.handle(commands.SubmitOrder())

        assert results == [None]
        assert panier(uow) == [CartLine("A", 1)]
        assert uow.carts.saved is None
        assert len(alerts.sent) == 1
        assert "Not enough stock" in alerts.sent[0]
        with uow:
            assert uow.carts.get().submission is SubmissionState.FAILED

    def test_erreur_de_transport_traitée_comme_un_échec(self):
        uow = FakeUnitOfWork(Cart([CartLine("A", 1)]))
        api = FakeApi()
        api.offline = True
        alerts = FakeAlerts()
        bus = bootstrap_test_bus(uow=uow, api=api, alerts=alerts)

        bus.handle(commands.SubmitOrder())

        assert panier(uow) == [CartLine("A", 1)]
        assert len(alerts.sent) == 1

    def test_pas_de_nouvel_essai_automatique(self):
        uow = FakeUnitOfWork(Cart([CartLine("A", 1)]))
        api = FakeApi()
        api.fail_orders = OrderRejected("refusée", 409)
        bus = bootstrap_test_bus(uow=uow, api=api)

        bus.handle(commands.SubmitOrder())

        assert api.calls.count("create_order") == 1

    def test_erreur_inattendue_ne_laisse_pas_le_panier_en_cours_d_envoi(self):
        class ApiIncohérente(FakeApi):
            def create_order(self, lines):
                raise KeyError("orderId")

        uow = FakeUnitOfWork(Cart([CartLine("A", 1)]))
        alerts = FakeAlerts()
        bus = bootstrap_test_bus(uow=uow, api=ApiIncohérente(), alerts=alerts)

        with pytest.raises(KeyError):
            bus.handle(commands.SubmitOrder())

        assert panier(uow) == [CartLine("A", 1)]
        assert len(alerts.sent) == 1
        with uow:
            assert uow.carts.get().submission is SubmissionState.FAILED

    def test_réponse_sans_id_traitée_comme_un_échec(self):
        uow = FakeUnitOfWork(Cart([CartLine("A", 1)]))
        api = RequestsBookstoreApi(
            "http://librairie.test", session=FakeSession(FakeResponse(201, body={"status": "ok"}))
        )
        alerts = FakeAlerts()
        bus = bootstrap_test_bus(uow=uow, api=api, alerts=alerts)

        assert bus.handle(commands.SubmitOrder()) == [None]

        assert panier(uow) == [CartLine("A", 1)]
        assert len(alerts.sent) == 1
        with uow:
            assert uow.carts.get().submission is SubmissionState.FAILED

    def test_panier_vide_ne_soumet_rien(self):
        api = FakeApi()
        bus = bootstrap_test_bus(api=api)

        results = bus.handle(commands.SubmitOrder())

        assert results == [None]
        assert api.calls == []


class TestDeleteOrder:
    def test_ne_retire_pas_la_commande_localement(self):
        api = FakeApi()
        api.orders["1"] = Order("1")
        bus = bootstrap_test_bus(api=api)
        bus.handle(commands.RefreshOrders())

        bus.handle(commands.DeleteOrder("1"))

        assert api.deleted == ["1"]
        assert bus.dependencies["orders"].orders == [Order("1")]
        assert not bus.dependencies["orders"].stale

    def test_échec_loggé_sans_exception(self):
        api = FakeApi()
        api.offline = True
        bus = bootstrap_test_bus(api=api)

        bus.handle(commands.DeleteOrder("1"))


class TestRefreshOrders:
    def test_ne_recharge_que_si_périmé(self):
        api = FakeApi()
        bus = bootstrap_test_bus(api=api)

        bus.handle(commands.RefreshOrders())
        bus.handle(commands.RefreshOrders())

        assert api.calls.count("list_orders") == 1

    def test_échec_garde_le_cache_périmé(self):
        api = FakeApi()
        api.offline = True
        bus = bootstrap_test_bus(api=api)

        assert bus.handle(commands.RefreshOrders()) == [False]
        assert bus.dependencies["orders"].orders is None
        assert bus.dependencies["orders"].stale


class TestFetchBookDetails:
    def test_ne_charge_que_les_fiches_manquantes(self):
        api = FakeApi([Book("A", title="Dune"), Book("B", title="Solaris")])
        bus = bootstrap_test_bus(api=api)

        bus.handle(commands.FetchBookDetails(("A",)))
        results = bus.handle(commands.FetchBookDetails(("A", "B", "INCONNU")))

        assert results == [1]
        assert api.calls == ["get_book A", "get_book B", "get_book INCONNU"]
        assert bus.dependencies["details"].get("B").title == "Solaris"


# --- Tests des Events ---


class TestStockUpdated:
    def test_patch_le_catalogue(self):
        bus = bus_avec_catalogue(Book("X", stock=10), Book("Y", stock=4))

        bus.handle(events.StockUpdated(book_id="X", new_stock=0))

        assert bus.dependencies["catalog"].get("X").stock == 0
        assert bus.dependencies["catalog"].get("Y").stock == 4

    def test_ne_touche_pas_au_panier(self):
        uow = FakeUnitOfWork()
        bus = bus_avec_catalogue(Book("X", stock=10), uow=uow)
        bus.handle(commands.UpdateCart("X", 8))

        bus.handle(events.StockUpdated(book_id="X", new_stock=2))

        assert panier(uow) == [CartLine("X", 8)]


class TestOrdersChanged:
    def test_marque_la_liste_périmée_sans_recharger(self):
        api = FakeApi()
        bus = bootstrap_test_bus(api=api)
        bus.handle(commands.RefreshOrders())

        bus.handle(events.OrdersChanged())

        assert bus.dependencies["orders"].stale
        assert api.calls.count("list_orders") == 1

    def test_la_lecture_suivante_recharge(self):
        api = FakeApi()
        bus = bootstrap_test_bus(api=api)
        bus.handle(commands.RefreshOrders())
        api.orders["7"] = Order("7")

        bus.handle(events.OrdersChanged())
        bus.handle(commands.RefreshOrders())

        assert bus.dependencies["orders"].orders == [Order("7")]


class TestEventHandlerEnErreur:
    def test_une_erreur_de_handler_ne_remonte_pas(self):
        class AlertesCassées(FakeAlerts):
            def send(self, message: str) -> None:
                raise RuntimeError("affichage impossible")

        uow = FakeUnitOfWork(Cart([CartLine("A", 1)]))
        api = FakeApi()
        api.fail_orders = ApiError("boom", 500)
        bus = bootstrap_test_bus(uow=uow, api=api, alerts=AlertesCassées())

        assert bus.handle(commands.SubmitOrder()) == [None]
