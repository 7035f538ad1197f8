"""CLI command modules."""
from . import derive, mandates, payments, processor, subscriptions, users

__all__ = ["derive", "mandates", "payments", "processor", "subscriptions", "users"]
