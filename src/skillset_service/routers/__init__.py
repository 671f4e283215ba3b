"""API routers."""

from skillset_service.routers import auth, contact, health, objects, price, tasks, uploads

__all__ = ["auth", "contact", "health", "objects", "price", "tasks", "uploads"]
