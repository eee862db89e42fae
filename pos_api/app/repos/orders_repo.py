"""Repository interface for order persistence."""

from abc import ABC, abstractmethod


class OrdersRepo(ABC):
    """Contract for order storage used by the lifecycle manager and reports."""

    @abstractmethod
    def get(self, session, order_id):
        """Return the order with its lines, or ``None``."""
        raise NotImplementedError

    @abstractmethod
    def add(self, session, order):
        """Stage a new order (with lines) and assign its identifier."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, session, order):
        """Remove an order and its lines."""
        raise NotImplementedError

    @abstractmethod
    def scan(self, session, start=None, end=None):
        """Return orders created in ``[start, end)``, newest first."""
        raise NotImplementedError

    @abstractmethod
    def list_orders(self, session, filters, page, limit):
        """Return a page of orders matching ``filters`` and the total count."""
        raise NotImplementedError

    @abstractmethod
    def next_order_number(self, session, prefix):
        """Allocate the next sequential order number."""
        raise NotImplementedError
