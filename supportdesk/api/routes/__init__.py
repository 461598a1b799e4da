"""Route modules exposed by the API package."""

from . import activity, ping, tickets, users, webhooks

__all__ = ["activity", "ping", "tickets", "users", "webhooks"]
