"""Cart repositories package."""

from modules.carts.repositories.django_repository import CartDjangoRepository
from modules.carts.repositories.interfaces import ICartRepository

__all__ = ["CartDjangoRepository", "ICartRepository"]
