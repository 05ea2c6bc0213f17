from .gateway import PersistenceGateway
from .repository import Repository

__all__ = ["PersistenceGateway", "Repository"]
