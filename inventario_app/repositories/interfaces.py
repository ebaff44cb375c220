# ==============================================================================
# INTERFACES DE REPOSITORIOS
# ==============================================================================
#
# Contratos que los servicios esperan de la capa de persistencia:
#
# 1. IDocumentStore
#    - Almacén de documentos sin esquema, particionado por usuario
#    - Colecciones "inventory" y "sales"
#    - Suscripciones que entregan el conjunto completo en cada cambio
#
# 2. IUserRepository
#    - Registros de identidad (email -> uid + hash de contraseña)
#
# Los servicios dependen de estas interfaces, NO de JSONDocumentStore.
# Un almacén remoto solo necesita implementar los mismos métodos.
#
# ==============================================================================

from typing import Any, Callable, ContextManager, Dict, List, Optional, Protocol, runtime_checkable


Listener = Callable[[List[Dict[str, Any]]], None]
Unsubscribe = Callable[[], None]


@runtime_checkable
class IWriteBatch(Protocol):
    """Escrituras agrupadas que se confirman juntas."""

    def create(self, collection_ref: Any, record: Dict[str, Any]) -> str:
        ...

    def update(self, doc_ref: Any, partial: Dict[str, Any]) -> None:
        ...

    def delete(self, doc_ref: Any) -> None:
        ...


@runtime_checkable
class IDocumentStore(Protocol):
    """
    Interfaz del almacén de documentos.
    """

    def collection(self, uid: str, name: str) -> Any:
        """Referencia a la colección `name` del usuario `uid`."""
        ...

    def document(self, uid: str, name: str, doc_id: str) -> Any:
        """Referencia a un documento."""
        ...

    def create(self, collection_ref: Any, record: Dict[str, Any]) -> str:
        """Crea un documento, retorna el id asignado."""
        ...

    def get(self, doc_ref: Any) -> Optional[Dict[str, Any]]:
        """Obtiene un documento (con su id) o None."""
        ...

    def list(self, collection_ref: Any) -> List[Dict[str, Any]]:
        """Obtiene todos los documentos de una colección."""
        ...

    def update(self, doc_ref: Any, partial: Dict[str, Any]) -> None:
        """Mezcla campos en un documento existente."""
        ...

    def delete(self, doc_ref: Any) -> None:
        """Elimina un documento."""
        ...

    def subscribe(self, collection_ref: Any, callback: Listener) -> Unsubscribe:
        """Suscribe a cambios; retorna función para cancelar."""
        ...

    def batch(self) -> ContextManager[IWriteBatch]:
        """Agrupa escrituras en una sola confirmación atómica."""
        ...


@runtime_checkable
class IUserRepository(Protocol):
    """
    Interfaz para el repositorio de usuarios (proveedor de identidad).
    """

    def get_user(self, email: str) -> Optional[Dict[str, Any]]:
        """Obtiene un usuario por email."""
        ...

    def create_user(self, email: str, uid: str, password_hash: str, created_at: str) -> bool:
        """Crea un nuevo usuario."""
        ...

    def get_by_uid(self, uid: str) -> Optional[Dict[str, Any]]:
        """Obtiene un usuario por uid (con su email)."""
        ...
