"""
Adapter HTTP vers le serveur de la librairie.

Le reste de l'application ne voit que AbstractBookstoreApi ; l'implémentation
concrète passe par une requests.Session. Toute erreur de transport ou réponse
non-2xx, comme tout corps de réponse 2xx illisible, devient une ApiError,
pour que les handlers n'aient qu'un seul type d'exception à traiter.
"""

from __future__ import annotations

import abc
from typing import Any, Callable, Optional, TypeVar

import requests

from bookstore.domain import model

T = TypeVar("T")


class ApiError(Exception):
    """Échec d'un appel HTTP. status vaut None pour une erreur de transport."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class OrderRejected(ApiError):
    """Le serveur a refusé la création de la commande (stock insuffisant, etc.)."""
    pass


# --- Décodage des réponses JSON ---


def book_from_json(data: dict[str, Any]) -> model.Book:
    return model.Book(
        isbn=str(data["isbn"]),
        title=data.get("title") or "",
        author=data.get("author") or "",
        publish_year=data.get("publishYear"),
        stock=int(data.get("stock") or 0),
        price=float(data.get("price") or 0),
        cover_url=data.get("coverUrl") or "",
    )


def order_from_json(data: dict[str, Any]) -> model.Order:
    return model.Order(
        id=str(data["id"]),
        lines=tuple(
            model.OrderLine(book_id=str(item["bookId"]), quantity=int(item["quantity"]))
            for item in data.get("books") or []
        ),
    )


def order_lines_to_json(lines: tuple[model.OrderLine, ...]) -> dict[str, Any]:
    return {"books": [{"bookId": line.book_id, "quantity": line.quantity} for line in lines]}


class AbstractBookstoreApi(abc.ABC):
    """Interface abstraite des endpoints consommés par le client."""

    @abc.abstractmethod
    def list_books(self) -> list[model.Book]:
        raise NotImplementedError

    @abc.abstractmethod
    def get_book(self, isbn: str) -> model.Book:
        raise NotImplementedError

    @abc.abstractmethod
    def list_orders(self) -> list[model.Order]:
        raise NotImplementedError

    @abc.abstractmethod
    def create_order(self, lines: tuple[model.OrderLine, ...]) -> str:
        """Crée la commande et retourne son id. Lève OrderRejected si refusée."""
        raise NotImplementedError

    @abc.abstractmethod
    def delete_order(self, order_id: str) -> None:
        raise NotImplementedError


class RequestsBookstoreApi(AbstractBookstoreApi):
    """Implémentation concrète avec requests."""

    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _url(self, path: str) -> str:
        return f"{self.base_url}/api/{path}"

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        try:
            return self.session.request(method, self._url(path), timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise ApiError(f"{method} /api/{path} : {e}") from e

    def _get_json(self, path: str, decode: Callable[[Any], T]) -> T:
        response = self._request("GET", path)
        if not response.ok:
            raise ApiError(f"GET /api/{path} : HTTP {response.status_code}", response.status_code)
        try:
            return decode(response.json())
        except (ValueError, KeyError, TypeError, OverflowError) as e:
            raise ApiError(
                f"GET /api/{path} : réponse illisible ({e!r})", response.status_code
            ) from e

    def list_books(self) -> list[model.Book]:
        return self._get_json("books", lambda data: [book_from_json(item) for item in data])

    def get_book(self, isbn: str) -> model.Book:
        return self._get_json(f"books/{isbn}", book_from_json)

    def list_orders(self) -> list[model.Order]:
        return self._get_json("orders", lambda data: [order_from_json(item) for item in data])

    def create_order(self, lines: tuple[model.OrderLine, ...]) -> str:
        response = self._request("POST", "orders", json=order_lines_to_json(lines))
        if not response.ok:
            # Le serveur répond 409 avec un message en texte brut
            raise OrderRejected(
                response.text or f"HTTP {response.status_code}", response.status_code
            )
        try:
            data = response.json()
        except ValueError:
            data = response.text.strip()
        if isinstance(data, dict):
            data = data.get("orderId")
        if not isinstance(data, (str, int)) or isinstance(data, bool) or data == "":
            raise ApiError(
                f"POST /api/orders : id de commande absent de la réponse {response.text!r}",
                response.status_code,
            )
        return str(data)

    def delete_order(self, order_id: str) -> None:
        response = self._request("DELETE", f"orders/{order_id}")
        if not response.ok:
            raise ApiError(
                f"DELETE /api/orders/{order_id} : HTTP {response.status_code}",
                response.status_code,
            )
