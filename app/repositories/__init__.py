from app.repositories.base import IDocumentStore
from app.repositories.memory import InMemoryDocumentStore

__all__ = ["IDocumentStore", "InMemoryDocumentStore"]
