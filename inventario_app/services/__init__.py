# ==============================================================================
# CAPA DE SERVICIOS - Lógica de negocio
# ==============================================================================
# Esta capa contiene TODA la lógica de negocio de la aplicación.
#
# PRINCIPIOS:
# 1. Los servicios orquestan operaciones sobre el almacén de documentos
# 2. Aplican reglas de negocio y validaciones antes de escribir
# 3. Las rutas solo llaman a servicios
#
# ESTRUCTURA:
# ├── stock.py             → Búsqueda de variantes, ajustes de stock, agrupación
# ├── inventory_service.py → Productos, variantes, duplicados
# ├── sales_service.py     → Crear / editar / eliminar ventas con su stock
# ├── auth_service.py      → Registro, login, logout, cambios de sesión
# ├── app_state.py         → Estado vivo por usuario (suscripciones)
# └── summary_service.py   → Resúmenes de inicio y reportes
# ==============================================================================

from inventario_app.services.inventory_service import InventoryService, is_duplicate_product
from inventario_app.services.sales_service import SalesService
from inventario_app.services.auth_service import AuthService, AuthError
from inventario_app.services.app_state import AppState
from inventario_app.services.summary_service import SummaryService

__all__ = [
    'InventoryService',
    'is_duplicate_product',
    'SalesService',
    'AuthService',
    'AuthError',
    'AppState',
    'SummaryService',
]
