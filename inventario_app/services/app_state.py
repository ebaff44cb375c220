# ==============================================================================
# ESTADO DE LA APLICACIÓN
# ==============================================================================
# Contenedor explícito del estado de una sesión:
#
# - usuario actual
# - copia de solo lectura de productos y ventas
#
# Las copias solo se actualizan desde las suscripciones del almacén.
# Las modificaciones pasan SIEMPRE por los servicios.
# ==============================================================================

import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

from inventario_app.activity_log import get_logger
from inventario_app.repositories.interfaces import IDocumentStore


logger = get_logger(__name__)


class AppState:
    """
    Estado vivo de un usuario autenticado.

    Uso:
        state = AppState(store)
        state.bind(uid, user)      # suscribe inventario y ventas
        state.products             # tupla, se refresca sola
        state.unbind()             # cancela suscripciones y limpia
    """

    def __init__(self, store: IDocumentStore):
        self.store = store
        self._lock = threading.RLock()
        self._uid: Optional[str] = None
        self._user: Optional[Dict[str, Any]] = None
        self._products: Tuple[Dict[str, Any], ...] = ()
        self._sales: Tuple[Dict[str, Any], ...] = ()
        self._unsubscribers: List[Callable[[], None]] = []

    # =========================================================================
    # CICLO DE VIDA
    # =========================================================================

    def bind(self, uid: str, user: Optional[Dict[str, Any]] = None) -> None:
        """Asocia el estado a `uid` y se suscribe a sus colecciones."""
        with self._lock:
            if self._uid == uid:
                if user is not None:
                    self._user = dict(user)
                return
            self.unbind()
            self._uid = uid
            self._user = dict(user) if user else {'uid': uid}
            self._unsubscribers = [
                self.store.subscribe(self.store.collection(uid, 'inventory'), self._on_products),
                self.store.subscribe(self.store.collection(uid, 'sales'), self._on_sales),
            ]
        logger.debug("Estado enlazado a %s", uid)

    def unbind(self) -> None:
        """Cancela las suscripciones y limpia el estado."""
        with self._lock:
            for unsubscribe in self._unsubscribers:
                unsubscribe()
            self._unsubscribers = []
            self._uid = None
            self._user = None
            self._products = ()
            self._sales = ()

    def _on_products(self, docs: List[Dict[str, Any]]) -> None:
        with self._lock:
            self._products = tuple(docs)

    def _on_sales(self, docs: List[Dict[str, Any]]) -> None:
        with self._lock:
            self._sales = tuple(docs)

    # =========================================================================
    # LECTURAS
    # =========================================================================

    @property
    def uid(self) -> Optional[str]:
        return self._uid

    @property
    def user(self) -> Optional[Dict[str, Any]]:
        return dict(self._user) if self._user else None

    @property
    def is_authenticated(self) -> bool:
        return self._uid is not None

    @property
    def products(self) -> Tuple[Dict[str, Any], ...]:
        return self._products

    @property
    def sales(self) -> Tuple[Dict[str, Any], ...]:
        return self._sales

    def product_by_id(self, pid: str) -> Optional[Dict[str, Any]]:
        for product in self._products:
            if product.get('id') == pid:
                return product
        return None
