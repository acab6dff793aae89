from __future__ import annotations
from typing import Any, Dict, List, Type

from .client import BaseClient


class ClientRegistry:
    """
    Registry for client classes so the dashboard can build widgets from config

    Purpose:
    - Decouples the session/UI layer from hardcoded client implementations by exposing {@link create(kind, **options)}
    - Lets global.json list widgets by 'kind' instead of importing classes

    Design Notes:
    - Stores the subclasses of {@link BaseClient}, not instances, so each session builds its own clients
    - Enforces variants:
        * only {@link BaseClient} subclasses can be registered
        * each client 'kind' is unique across the registry
    """

    def __init__(self):
        self._clients: Dict[str, Type[BaseClient]] = {}

    def register(self, client_cls: Type[BaseClient]) -> None:
        """
        Register a {@link BaseClient} with the registry

        :param client_cls: the subclass of {@link BaseClient}

        Raises:
            TypeError: if client_cls is not a subclass of {@link BaseClient}
            ValueError: if a client with same 'kind' already exists
        """
        if not isinstance(client_cls, type) or not issubclass(client_cls, BaseClient):
            raise TypeError(f"Client '{getattr(client_cls, 'kind', client_cls)}' must be a subclass of BaseClient")

        if client_cls.kind in self._clients:
            raise ValueError(f"Client kind '{client_cls.kind}' already registered")

        self._clients[client_cls.kind] = client_cls

    def create(self, kind: str, **options: Any) -> BaseClient:
        """
        Instantiate a client for the given kind; options are passed to its constructor
        :param kind: the registered client kind
        :return: the instantiated client

        Raises:
            KeyError: if no client with the given kind exists in the registry
        """
        try:
            cls = self._clients[kind]
        except KeyError:
            raise KeyError(f"Client kind '{kind}' not found")
        return cls(**options)

    def kinds(self) -> List[str]:
        return list(self._clients)

    def __contains__(self, kind: str) -> bool:
        return kind in self._clients
