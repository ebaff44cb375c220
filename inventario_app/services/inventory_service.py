# ==============================================================================
# SERVICIO DE INVENTARIO
# ==============================================================================
# Centraliza toda la lógica de negocio relacionada con productos y variantes.
# El stock de un producto con variantes es SIEMPRE la suma de sus variantes.
# ==============================================================================

import math
from typing import Any, Dict, List, Optional

from inventario_app.activity_log import get_logger
from inventario_app.models.entities import DEFAULT_CATEGORY, Product, Variant, variant_key
from inventario_app.repositories.base import DocumentNotFoundError, StoreError
from inventario_app.repositories.document_store import SERVER_TIMESTAMP
from inventario_app.repositories.interfaces import IDocumentStore
from inventario_app.services.stock import find_variant, recompute_stock


logger = get_logger(__name__)

INVENTORY = 'inventory'

# Campos obligatorios del formulario de producto
REQUIRED_FIELDS = ('name', 'brand', 'cost_price', 'sale_price')


def is_duplicate_product(existing_products: List[Dict[str, Any]], candidate: Dict[str, Any]) -> bool:
    """
    Decide si `candidate` duplica algún producto existente.

    Dos productos son duplicados si nombre y marca coinciden (sin
    mayúsculas) y además:
    - ninguno tiene variantes, o
    - ambos tienen variantes y alguna (talla, color) del candidato ya
      existe en el otro.

    Un producto con variantes nunca duplica a uno sin variantes.
    """
    name = str(candidate.get('name', '')).strip().lower()
    brand = str(candidate.get('brand', '')).strip().lower()
    candidate_variants = candidate.get('variants') or []
    candidate_keys = {variant_key(v.get('size'), v.get('color')) for v in candidate_variants}

    for product in existing_products:
        if str(product.get('name', '')).strip().lower() != name:
            continue
        if str(product.get('brand', '')).strip().lower() != brand:
            continue
        existing_variants = product.get('variants') or []
        if not existing_variants and not candidate_variants:
            return True
        if existing_variants and candidate_variants:
            for v in existing_variants:
                if variant_key(v.get('size'), v.get('color')) in candidate_keys:
                    return True
    return False


def _parse_price(value: Any) -> float:
    """Convierte un precio de formulario a float (acepta coma decimal)."""
    if isinstance(value, bool):
        raise ValueError(value)
    if isinstance(value, (int, float)):
        price = float(value)
    else:
        price = float(str(value).strip().replace(',', '.'))
    if not math.isfinite(price):
        raise ValueError(value)
    return price


def _parse_stock(value: Any) -> int:
    """Convierte un stock a int no negativo."""
    if isinstance(value, bool):
        raise ValueError(value)
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(value)
        value = int(value)
    stock = value if isinstance(value, int) else int(str(value).strip())
    if stock < 0:
        raise ValueError(value)
    return stock


class InventoryService:
    """
    Servicio para gestión del catálogo.

    Responsabilidades:
    - CRUD de productos (con validación de formulario)
    - Detección de duplicados
    - Variantes talla/color y su stock
    """

    def __init__(self, store: IDocumentStore):
        """
        Args:
            store: Almacén de documentos
        """
        self.store = store

    # =========================================================================
    # LECTURAS
    # =========================================================================

    def list_products(self, uid: str) -> List[Dict[str, Any]]:
        return self.store.list(self.store.collection(uid, INVENTORY))

    def get_product(self, uid: str, pid: str) -> Optional[Dict[str, Any]]:
        return self.store.get(self.store.document(uid, INVENTORY, pid))

    # =========================================================================
    # VALIDACIÓN
    # =========================================================================

    def _validate_fields(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Valida los campos del formulario de producto.

        Returns:
            {'ok': True, 'fields': {...normalizados...}} o {'ok': False, 'error'}
        """
        for key in REQUIRED_FIELDS:
            value = data.get(key)
            if value is None or str(value).strip() == '':
                return {'ok': False, 'error': 'Debe ingresar todos los datos del producto'}

        try:
            cost_price = _parse_price(data['cost_price'])
            sale_price = _parse_price(data['sale_price'])
        except (TypeError, ValueError):
            return {'ok': False, 'error': 'Los precios deben ser numéricos'}

        if cost_price < 0 or sale_price < 0:
            return {'ok': False, 'error': 'Los precios no pueden ser negativos'}

        category = str(data.get('category') or '').strip() or DEFAULT_CATEGORY

        return {
            'ok': True,
            'fields': {
                'name': str(data['name']).strip(),
                'brand': str(data['brand']).strip(),
                'category': category,
                'cost_price': round(cost_price, 2),
                'sale_price': round(sale_price, 2),
            }
        }

    def _validate_variants(self, raw_variants: Any) -> Dict[str, Any]:
        """Valida una lista de variantes iniciales (únicas, stock entero >= 0)."""
        if raw_variants is None:
            return {'ok': True, 'variants': []}
        if not isinstance(raw_variants, list):
            return {'ok': False, 'error': 'Formato de variantes inválido'}

        variants = []
        seen = set()
        for raw in raw_variants:
            if not isinstance(raw, dict):
                return {'ok': False, 'error': 'Formato de variantes inválido'}
            size = str(raw.get('size') or '').strip()
            color = str(raw.get('color') or '').strip()
            if not size or not color:
                return {'ok': False, 'error': 'Cada variante necesita talla y color'}
            try:
                stock = _parse_stock(raw.get('stock', 0) or 0)
            except (TypeError, ValueError):
                return {'ok': False, 'error': f'Stock inválido para la variante {size}/{color}'}
            key = variant_key(size, color)
            if key in seen:
                return {'ok': False, 'error': f'La variante {size}/{color} está repetida'}
            seen.add(key)
            variants.append({'size': size, 'color': color, 'stock': stock})
        return {'ok': True, 'variants': variants}

    # =========================================================================
    # OPERACIONES DE PRODUCTOS
    # =========================================================================

    def create_product(self, uid: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Crea un producto.

        Args:
            uid: Dueño del catálogo
            data: name, brand, cost_price, sale_price, category?, variants?, stock?

        Returns:
            {'ok': True, 'id': pid} o {'ok': False, 'error', 'code'?}
        """
        checked = self._validate_fields(data)
        if not checked['ok']:
            return checked
        variants_check = self._validate_variants(data.get('variants'))
        if not variants_check['ok']:
            return variants_check

        stock = 0
        if not variants_check['variants'] and data.get('stock') not in (None, ''):
            try:
                stock = _parse_stock(data.get('stock'))
            except (TypeError, ValueError):
                return {'ok': False, 'error': 'El stock debe ser un número entero'}

        product = Product(
            id=None,
            variants=[Variant.from_dict(v) for v in variants_check['variants']],
            stock=stock,
            **checked['fields']
        ).to_dict()

        try:
            existing = self.list_products(uid)
            if is_duplicate_product(existing, product):
                return {
                    'ok': False,
                    'error': f"El producto '{product['name']}' de {product['brand']} ya existe",
                    'code': 'duplicate'
                }
            product['date_incorporation'] = SERVER_TIMESTAMP
            pid = self.store.create(self.store.collection(uid, INVENTORY), product)
        except StoreError as e:
            logger.error("Error creando producto: %s", e)
            return {'ok': False, 'error': str(e)}

        logger.info("Producto creado %s (%s)", pid, product['name'])
        return {'ok': True, 'id': pid}

    def update_product(self, uid: str, pid: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Actualiza los datos básicos de un producto.
        Conserva variantes, stock y fecha de incorporación.
        """
        checked = self._validate_fields(data)
        if not checked['ok']:
            return checked
        try:
            if self.get_product(uid, pid) is None:
                return {'ok': False, 'error': 'Producto no encontrado', 'code': 'not_found'}
            self.store.update(self.store.document(uid, INVENTORY, pid), checked['fields'])
        except DocumentNotFoundError:
            return {'ok': False, 'error': 'Producto no encontrado', 'code': 'not_found'}
        except StoreError as e:
            logger.error("Error actualizando producto %s: %s", pid, e)
            return {'ok': False, 'error': str(e)}
        return {'ok': True, 'id': pid}

    def delete_product(self, uid: str, pid: str) -> Dict[str, Any]:
        """
        Elimina un producto. Las ventas que lo referencian se conservan.
        """
        try:
            self.store.delete(self.store.document(uid, INVENTORY, pid))
        except DocumentNotFoundError:
            return {'ok': False, 'error': 'Producto no encontrado', 'code': 'not_found'}
        except StoreError as e:
            logger.error("Error eliminando producto %s: %s", pid, e)
            return {'ok': False, 'error': str(e)}
        logger.info("Producto eliminado %s", pid)
        return {'ok': True, 'id': pid}

    # =========================================================================
    # OPERACIONES DE VARIANTES
    # =========================================================================

    def _save_variants(self, uid: str, product: Dict[str, Any]) -> Dict[str, Any]:
        recompute_stock(product)
        try:
            self.store.update(
                self.store.document(uid, INVENTORY, product['id']),
                {'variants': product['variants'], 'stock': product['stock']}
            )
        except DocumentNotFoundError:
            return {'ok': False, 'error': 'Producto no encontrado', 'code': 'not_found'}
        except StoreError as e:
            logger.error("Error guardando variantes de %s: %s", product.get('id'), e)
            return {'ok': False, 'error': str(e)}
        return {'ok': True, 'id': product['id'], 'stock': product['stock']}

    def _load_for_variants(self, uid: str, pid: str) -> Dict[str, Any]:
        try:
            product = self.get_product(uid, pid)
        except StoreError as e:
            return {'ok': False, 'error': str(e)}
        if product is None:
            return {'ok': False, 'error': 'Producto no encontrado', 'code': 'not_found'}
        product.setdefault('variants', [])
        return {'ok': True, 'product': product}

    def add_variant(self, uid: str, pid: str, size: Any, color: Any, stock: Any = 0) -> Dict[str, Any]:
        """
        Agrega una variante talla/color a un producto.

        Returns:
            {'ok': True, 'stock': nuevo_total} o error si ya existe
        """
        size = str(size or '').strip()
        color = str(color or '').strip()
        if not size or not color:
            return {'ok': False, 'error': 'Debe ingresar talla y color'}
        try:
            stock = _parse_stock(stock if stock not in (None, '') else 0)
        except (TypeError, ValueError):
            return {'ok': False, 'error': 'El stock debe ser un número entero no negativo'}

        loaded = self._load_for_variants(uid, pid)
        if not loaded['ok']:
            return loaded
        product = loaded['product']

        if find_variant(product, size, color) is not None:
            return {'ok': False, 'error': f'La variante {size}/{color} ya existe', 'code': 'duplicate'}

        # La primera variante absorbe el stock propio del producto
        own_stock = int(product.get('stock', 0) or 0)
        if not product['variants'] and own_stock > 0:
            logger.info("Stock propio %s de %s pasa a la variante %s/%s", own_stock, pid, size, color)
            stock += own_stock

        product['variants'].append({'size': size, 'color': color, 'stock': stock})
        return self._save_variants(uid, product)

    def remove_variant(self, uid: str, pid: str, size: Any, color: Any) -> Dict[str, Any]:
        """Elimina una variante y recalcula el stock."""
        loaded = self._load_for_variants(uid, pid)
        if not loaded['ok']:
            return loaded
        product = loaded['product']

        variant = find_variant(product, size, color)
        if variant is None:
            return {'ok': False, 'error': f'Variante {size}/{color} no encontrada', 'code': 'not_found'}
        product['variants'].remove(variant)
        if not product['variants']:
            # Sin variantes el producto vuelve a usar su stock propio, que parte en cero
            product['stock'] = 0
        return self._save_variants(uid, product)

    def set_variant_stock(self, uid: str, pid: str, size: Any, color: Any, stock: Any) -> Dict[str, Any]:
        """Fija el stock de una variante (reposición o corrección manual)."""
        try:
            stock = _parse_stock(stock)
        except (TypeError, ValueError):
            return {'ok': False, 'error': 'El stock debe ser un número entero no negativo'}

        loaded = self._load_for_variants(uid, pid)
        if not loaded['ok']:
            return loaded
        product = loaded['product']

        variant = find_variant(product, size, color)
        if variant is None:
            return {'ok': False, 'error': f'Variante {size}/{color} no encontrada', 'code': 'not_found'}
        variant['stock'] = stock
        return self._save_variants(uid, product)
