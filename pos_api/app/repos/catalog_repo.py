"""Repository interface for read-only catalog lookups."""

from abc import ABC, abstractmethod


class CatalogRepo(ABC):
    """Contract for resolving menu items and deals at sale time."""

    @abstractmethod
    def lookup(self, session, keys):
        """Return ``{(kind, id): ProductSnapshot}`` for the requested keys."""
        raise NotImplementedError

    @abstractmethod
    def list_active_items(self, session):
        """Return active menu items for order entry."""
        raise NotImplementedError

    @abstractmethod
    def list_active_deals(self, session):
        """Return active deals with their component items."""
        raise NotImplementedError
