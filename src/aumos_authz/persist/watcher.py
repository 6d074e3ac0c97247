"""Policy change notification hook.

A watcher tells other enforcer instances that the stored policy changed.
The enforcer calls :meth:`Watcher.update` after a successful save; a failing
watcher is logged and never turns a successful save into an error.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable


class Watcher(ABC):
    """Abstract change-notification channel."""

    @abstractmethod
    def set_update_callback(self, callback: Callable[[], None]) -> None:
        """Register the function to run when another instance saves."""

    @abstractmethod
    def update(self) -> None:
        """Announce that this instance saved the policy."""
