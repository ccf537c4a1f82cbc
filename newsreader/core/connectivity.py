"""Connectivity state consumed by the offline store."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable

logger = logging.getLogger(__name__)

Listener = Callable[[bool], None]


class ConnectivityMonitor(ABC):
    """Current connectivity plus change notifications."""

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        ...

    @abstractmethod
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register listener for changes. Returns an unsubscribe function."""
        ...


class SettableConnectivity(ConnectivityMonitor):
    """In-process monitor whose state is pushed by the host platform."""

    def __init__(self, connected: bool = True) -> None:
        self._connected = connected
        self._listeners: list[Listener] = []

    @property
    def is_connected(self) -> bool:
        return self._connected

    def set_connected(self, connected: bool) -> None:
        if connected == self._connected:
            return
        self._connected = connected
        logger.info(f"Connectivity changed: {'online' if connected else 'offline'}")
        for listener in list(self._listeners):
            listener(connected)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
