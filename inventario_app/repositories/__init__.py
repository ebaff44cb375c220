# ==============================================================================
# CAPA DE REPOSITORIOS - Acceso a datos
# ==============================================================================
# Esta capa encapsula todo el acceso a la persistencia (archivos JSON).
# Un almacén remoto solo tiene que implementar las mismas interfaces.
#
# ESTRUCTURA:
# ├── interfaces.py       → Protocolos (IDocumentStore, IUserRepository)
# ├── base.py             → BaseRepository, DictRepository, errores de persistencia
# ├── document_store.py   → Colecciones inventory/sales por usuario (store.json)
# └── user_repository.py  → Identidades (users.json)
# ==============================================================================

from inventario_app.repositories.interfaces import (
    IDocumentStore,
    IUserRepository,
    IWriteBatch,
)

from inventario_app.repositories.base import (
    BaseRepository,
    DictRepository,
    StoreError,
    DocumentNotFoundError,
)
from inventario_app.repositories.document_store import (
    JSONDocumentStore,
    CollectionRef,
    DocumentRef,
    WriteBatch,
    SERVER_TIMESTAMP,
    VALID_COLLECTIONS,
)
from inventario_app.repositories.user_repository import UserRepository

__all__ = [
    # Interfaces
    'IDocumentStore',
    'IUserRepository',
    'IWriteBatch',

    # Clases base y errores
    'BaseRepository',
    'DictRepository',
    'StoreError',
    'DocumentNotFoundError',

    # Implementaciones JSON
    'JSONDocumentStore',
    'CollectionRef',
    'DocumentRef',
    'WriteBatch',
    'SERVER_TIMESTAMP',
    'VALID_COLLECTIONS',
    'UserRepository',
]
