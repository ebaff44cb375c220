# ==============================================================================
# CONTENEDOR DE DEPENDENCIAS - Inyección de servicios
# ==============================================================================
# Punto único para obtener repositorios, servicios y el estado de cada
# sesión. Facilita:
#   - Inyección de dependencias
#   - Testing (cada test usa su propio directorio de datos)
#   - Cambiar el almacén sin tocar los servicios
#
# Para usar otro almacén basta con una clase que implemente
# IDocumentStore / IUserRepository e instanciarla aquí.
# ==============================================================================

import threading
from typing import Any, Dict, Optional

from inventario_app.activity_log import get_logger

# ═══════════════════════════════════════════════════════════════════════════════
# REPOSITORIOS - Capa de persistencia
# ═══════════════════════════════════════════════════════════════════════════════
from inventario_app.repositories import JSONDocumentStore, UserRepository

# ═══════════════════════════════════════════════════════════════════════════════
# SERVICIOS - Capa de lógica de negocio
# ═══════════════════════════════════════════════════════════════════════════════
from inventario_app.services import (
    AppState,
    AuthService,
    InventoryService,
    SalesService,
    SummaryService,
)


logger = get_logger(__name__)


class AppContainer:
    """
    Contenedor de dependencias de la aplicación.

    Uso:
        container = AppContainer(base_path='/ruta/datos')
        container.sales_service.create_sale(uid, draft)
        state = container.state_for(uid)
    """

    def __init__(self, base_path: str):
        """
        Args:
            base_path: Directorio de datos (store.json, users.json)
        """
        self._base_path = base_path

        # Repositorios (lazy loading)
        self._store: Optional[JSONDocumentStore] = None
        self._user_repo: Optional[UserRepository] = None

        # Servicios (lazy loading)
        self._inventory_service: Optional[InventoryService] = None
        self._sales_service: Optional[SalesService] = None
        self._auth_service: Optional[AuthService] = None
        self._summary_service: Optional[SummaryService] = None

        # Estado por usuario con sesión abierta
        self._states: Dict[str, AppState] = {}
        self._states_lock = threading.Lock()
        self._auth_unsubscribe = None

    # =========================================================================
    # REPOSITORIOS
    # =========================================================================

    @property
    def store(self) -> JSONDocumentStore:
        """Almacén de documentos (singleton)."""
        if self._store is None:
            self._store = JSONDocumentStore(self._base_path)
        return self._store

    @property
    def user_repo(self) -> UserRepository:
        """Repositorio de usuarios (singleton)."""
        if self._user_repo is None:
            self._user_repo = UserRepository(self._base_path)
        return self._user_repo

    # =========================================================================
    # SERVICIOS
    # =========================================================================

    @property
    def inventory_service(self) -> InventoryService:
        """Servicio de inventario (singleton)."""
        if self._inventory_service is None:
            self._inventory_service = InventoryService(self.store)
        return self._inventory_service

    @property
    def sales_service(self) -> SalesService:
        """Servicio de ventas (singleton)."""
        if self._sales_service is None:
            self._sales_service = SalesService(self.store)
        return self._sales_service

    @property
    def auth_service(self) -> AuthService:
        """Servicio de autenticación (singleton), enlazado al estado por usuario."""
        if self._auth_service is None:
            self._auth_service = AuthService(self.user_repo)
            self._auth_unsubscribe = self._auth_service.on_auth_change(self._on_auth_change)
        return self._auth_service

    @property
    def summary_service(self) -> SummaryService:
        """Servicio de resúmenes (singleton)."""
        if self._summary_service is None:
            self._summary_service = SummaryService()
        return self._summary_service

    # =========================================================================
    # ESTADO POR USUARIO
    # =========================================================================

    def _on_auth_change(self, uid: str, user: Optional[Dict[str, Any]]) -> None:
        if user is None:
            self.release_state(uid)
        else:
            self.state_for(uid, user)

    def state_for(self, uid: str, user: Optional[Dict[str, Any]] = None) -> AppState:
        """
        Estado vivo de `uid`; se crea y suscribe la primera vez.
        """
        with self._states_lock:
            state = self._states.get(uid)
            if state is None:
                state = AppState(self.store)
                self._states[uid] = state
        state.bind(uid, user)
        return state

    def release_state(self, uid: str) -> None:
        """Cancela las suscripciones del estado de `uid`."""
        with self._states_lock:
            state = self._states.pop(uid, None)
        if state is not None:
            state.unbind()
            logger.debug("Estado liberado para %s", uid)

    def active_states(self) -> int:
        with self._states_lock:
            return len(self._states)

    # =========================================================================
    # UTILIDADES
    # =========================================================================

    def reset(self) -> None:
        """
        Reinicia todas las instancias.
        Útil para testing o para recargar datos.
        """
        with self._states_lock:
            states = list(self._states.values())
            self._states = {}
        for state in states:
            state.unbind()
        if self._auth_unsubscribe is not None:
            self._auth_unsubscribe()
            self._auth_unsubscribe = None

        self._store = None
        self._user_repo = None

        self._inventory_service = None
        self._sales_service = None
        self._auth_service = None
        self._summary_service = None
