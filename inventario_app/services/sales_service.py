# ==============================================================================
# SERVICIO DE VENTAS
# ==============================================================================
# Centraliza el ciclo de vida de una venta y su efecto sobre el stock:
#
#   crear    → validar stock → descontar por variante → guardar venta
#   editar   → reponer lo original → validar → descontar lo nuevo → guardar
#   eliminar → reponer lo original → borrar venta
#
# Todas las escrituras de una operación (productos + venta) se confirman
# en un único lote del almacén: si algo falla no queda nada a medias.
# ==============================================================================

import copy
import math
from typing import Any, Dict, List, Optional

from inventario_app.activity_log import get_logger, profile_function
from inventario_app.models.entities import PaymentMethod, Sale, SaleChannel, SaleLineItem, variant_key
from inventario_app.repositories.base import DocumentNotFoundError, StoreError
from inventario_app.repositories.document_store import SERVER_TIMESTAMP
from inventario_app.repositories.interfaces import IDocumentStore
from inventario_app.services.stock import (
    NO_VARIANT,
    apply_group,
    find_variant,
    group_by_product,
    line_variant,
)


logger = get_logger(__name__)

SALES = 'sales'
INVENTORY = 'inventory'


def _parse_quantity(value: Any) -> Optional[int]:
    """Cantidad entera positiva, o None si no es válida."""
    if isinstance(value, bool):
        return None
    try:
        if isinstance(value, float):
            if not value.is_integer():
                return None
            value = int(value)
        qty = value if isinstance(value, int) else int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return qty if qty > 0 else None


def _parse_price(value: Any) -> Optional[float]:
    """Precio unitario no negativo, o None si no es válido."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        price = float(value) if isinstance(value, (int, float)) else float(str(value).strip().replace(',', '.'))
    except (TypeError, ValueError):
        return None
    if not math.isfinite(price) or price < 0:
        return None
    return round(price, 2)


class SalesService:
    """
    Servicio para gestión de ventas.

    Responsabilidades:
    - Validar stock disponible antes de escribir
    - Resolver método de pago / canal efectivos por línea
    - Ajustar el stock de cada variante una sola vez por operación
    - Guardar, editar y eliminar la venta
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

    def list_sales(self, uid: str) -> List[Dict[str, Any]]:
        return self.store.list(self.store.collection(uid, SALES))

    def get_sale(self, uid: str, sale_id: str) -> Optional[Dict[str, Any]]:
        return self.store.get(self.store.document(uid, SALES, sale_id))

    def _load_products(self, uid: str) -> Dict[str, Dict[str, Any]]:
        """Copia de trabajo del inventario: {pid: producto}."""
        return {p['id']: p for p in self.store.list(self.store.collection(uid, INVENTORY))}

    # =========================================================================
    # NORMALIZACIÓN Y VALIDACIÓN
    # =========================================================================

    def normalize_draft(self, draft: Dict[str, Any]) -> Dict[str, Any]:
        """
        Valida la forma de un borrador de venta y resuelve los valores
        efectivos de cada línea.

        Una línea con override=False toma el método de pago y el canal de
        la venta; con override=True conserva los suyos.

        Returns:
            {'ok': True, 'items', 'payment_method', 'channel'} o error
        """
        if not isinstance(draft, dict):
            return {'ok': False, 'error': 'Datos de venta inválidos'}
        raw_items = draft.get('products')
        if not isinstance(raw_items, list) or not raw_items:
            return {'ok': False, 'error': 'La venta no tiene productos'}

        default_method = PaymentMethod.normalize(draft.get('payment_method') or PaymentMethod.EFECTIVO)
        default_channel = SaleChannel.normalize(draft.get('channel') or SaleChannel.LOCAL)

        items = []
        for index, raw in enumerate(raw_items, start=1):
            if not isinstance(raw, dict):
                return {'ok': False, 'error': f'Línea {index}: formato inválido'}
            product_id = raw.get('product_id')
            if not product_id:
                return {'ok': False, 'error': f'Línea {index}: falta el producto'}
            quantity = _parse_quantity(raw.get('quantity'))
            if quantity is None:
                return {'ok': False, 'error': f'Línea {index}: la cantidad debe ser un entero mayor que 0'}
            price = _parse_price(raw.get('price'))
            if price is None:
                return {'ok': False, 'error': f'Línea {index}: el precio debe ser numérico y no negativo'}

            variant = raw.get('variant') or None
            if variant is not None:
                if not isinstance(variant, dict):
                    return {'ok': False, 'error': f'Línea {index}: variante inválida'}
                size = str(variant.get('size') or '').strip()
                color = str(variant.get('color') or '').strip()
                if not size or not color:
                    return {'ok': False, 'error': f'Línea {index}: la variante necesita talla y color'}
                variant = {'size': size, 'color': color}

            override = bool(raw.get('override', False))
            if override:
                method = PaymentMethod.normalize(raw.get('payment_method'))
                channel = SaleChannel.normalize(raw.get('channel'))
            else:
                method = default_method
                channel = default_channel

            items.append(SaleLineItem(
                product_id=product_id,
                quantity=quantity,
                price=price,
                variant=variant,
                payment_method=method,
                channel=channel,
                override=override,
                product_name=str(raw.get('product_name') or ''),
            ).to_dict())

        return {
            'ok': True,
            'items': items,
            'payment_method': default_method.value,
            'channel': default_channel.value,
        }

    def check_availability(
        self,
        items: List[Dict[str, Any]],
        products: Dict[str, Dict[str, Any]]
    ) -> Optional[str]:
        """
        Verifica que haya stock para todas las líneas.

        Las cantidades de una misma variante se suman antes de comparar,
        así dos líneas de la misma variante no pueden superar el stock.

        Returns:
            Mensaje de error o None si todo está disponible
        """
        required: Dict[tuple, int] = {}
        errors = []
        for item in items:
            pid = item['product_id']
            product = products.get(pid)
            if product is None:
                errors.append(f"Producto {pid} no encontrado")
                continue
            name = product.get('name', pid)
            key, size, color = line_variant(item)
            if key is NO_VARIANT:
                if product.get('variants'):
                    errors.append(f"Debe seleccionar una variante de {name}")
                    continue
            else:
                if find_variant(product, size, color) is None:
                    errors.append(f"Variante {size}/{color} no encontrada en {name}")
                    continue
            required[(pid, key)] = required.get((pid, key), 0) + item['quantity']

        if errors:
            return '; '.join(errors)

        for (pid, key), quantity in required.items():
            product = products[pid]
            if key is NO_VARIANT:
                available = int(product.get('stock', 0) or 0)
                label = product.get('name', pid)
            else:
                variant = next(
                    v for v in product['variants']
                    if variant_key(v.get('size'), v.get('color')) == key
                )
                available = int(variant.get('stock', 0) or 0)
                label = f"{product.get('name', pid)} ({variant.get('size')}/{variant.get('color')})"
            if quantity > available:
                errors.append(
                    f"Stock insuficiente para {label}. "
                    f"Solicitado: {quantity}, Disponible: {available}"
                )

        return '; '.join(errors) if errors else None

    # =========================================================================
    # AJUSTES DE STOCK
    # =========================================================================

    def _apply(
        self,
        products: Dict[str, Dict[str, Any]],
        items: List[Dict[str, Any]],
        sign: int,
        touched: List[str]
    ) -> List[Dict[str, Any]]:
        """
        Aplica el efecto de las líneas sobre la copia de trabajo.

        Returns:
            Ajustes que no se pudieron aplicar (producto o variante inexistente)
        """
        missing = []
        for pid, group in group_by_product(items).items():
            product = products.get(pid)
            if product is None:
                logger.warning("Producto %s no encontrado al ajustar stock (%+d)", pid, sign)
                for item in group:
                    _, size, color = line_variant(item)
                    missing.append({
                        'product_id': pid,
                        'size': size,
                        'color': color,
                        'delta': sign * int(item.get('quantity', 0) or 0),
                    })
                continue
            missing.extend(apply_group(product, group, sign))
            if pid not in touched:
                touched.append(pid)
        return missing

    def _stage_products(self, batch, uid: str, products: Dict[str, Dict[str, Any]], touched: List[str]) -> None:
        """Una escritura por producto afectado."""
        for pid in touched:
            product = products[pid]
            batch.update(
                self.store.document(uid, INVENTORY, pid),
                {'variants': product.get('variants', []), 'stock': product.get('stock', 0)}
            )

    def _sale_record(self, normalized: Dict[str, Any]) -> Dict[str, Any]:
        sale = Sale(
            id=None,
            products=[SaleLineItem.from_dict(i) for i in normalized['items']],
            payment_method=normalized['payment_method'],
            channel=normalized['channel'],
        )
        record = sale.to_dict()
        record['date'] = SERVER_TIMESTAMP
        return record

    def _resolve_sale(self, uid: str, sale_id: str, sale_data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        if sale_data is not None:
            return {'ok': True, 'sale': sale_data}
        try:
            sale = self.get_sale(uid, sale_id)
        except StoreError as e:
            return {'ok': False, 'error': str(e)}
        if sale is None:
            return {'ok': False, 'error': 'Venta no encontrada', 'code': 'not_found'}
        return {'ok': True, 'sale': sale}

    # =========================================================================
    # OPERACIONES
    # =========================================================================

    @profile_function(name="Registrar venta")
    def create_sale(self, uid: str, draft: Dict[str, Any]) -> Dict[str, Any]:
        """
        Registra una venta y descuenta el stock.

        Args:
            uid: Dueño de las colecciones
            draft: {'products': [...], 'payment_method', 'channel'}

        Returns:
            {'ok': True, 'sale_id', 'total', 'missing'} o {'ok': False, 'error'}
        """
        normalized = self.normalize_draft(draft)
        if not normalized['ok']:
            return normalized
        items = normalized['items']

        try:
            products = self._load_products(uid)
        except StoreError as e:
            logger.error("Error leyendo inventario: %s", e)
            return {'ok': False, 'error': str(e)}

        error = self.check_availability(items, products)
        if error:
            return {'ok': False, 'error': error}

        touched: List[str] = []
        missing = self._apply(products, items, -1, touched)
        record = self._sale_record(normalized)

        try:
            with self.store.batch() as batch:
                self._stage_products(batch, uid, products, touched)
                sale_id = batch.create(self.store.collection(uid, SALES), record)
        except StoreError as e:
            logger.error("Error guardando venta: %s", e)
            return {'ok': False, 'error': f"Error al guardar la venta: {e}"}

        logger.info("Venta %s registrada: total %.2f, %d líneas", sale_id, record['total'], len(items))
        return {'ok': True, 'sale_id': sale_id, 'total': record['total'], 'missing': missing}

    @profile_function(name="Editar venta")
    def edit_sale(
        self,
        uid: str,
        sale_id: str,
        draft: Dict[str, Any],
        original_sale: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Edita una venta: repone lo vendido originalmente, valida y descuenta
        las nuevas líneas, y reemplaza la venta.

        Args:
            original_sale: Venta original; si no se pasa se lee del almacén
        """
        normalized = self.normalize_draft(draft)
        if not normalized['ok']:
            return normalized
        resolved = self._resolve_sale(uid, sale_id, original_sale)
        if not resolved['ok']:
            return resolved
        original_items = resolved['sale'].get('products', [])

        try:
            products = self._load_products(uid)
        except StoreError as e:
            logger.error("Error leyendo inventario: %s", e)
            return {'ok': False, 'error': str(e)}

        touched: List[str] = []
        missing = self._apply(products, copy.deepcopy(original_items), +1, touched)

        error = self.check_availability(normalized['items'], products)
        if error:
            return {'ok': False, 'error': error}

        missing.extend(self._apply(products, normalized['items'], -1, touched))
        record = self._sale_record(normalized)

        try:
            with self.store.batch() as batch:
                self._stage_products(batch, uid, products, touched)
                batch.update(self.store.document(uid, SALES, sale_id), record)
        except DocumentNotFoundError:
            return {'ok': False, 'error': 'Venta no encontrada', 'code': 'not_found'}
        except StoreError as e:
            logger.error("Error editando venta %s: %s", sale_id, e)
            return {'ok': False, 'error': f"Error al editar la venta: {e}"}

        logger.info("Venta %s editada: total %.2f", sale_id, record['total'])
        return {'ok': True, 'sale_id': sale_id, 'total': record['total'], 'missing': missing}

    @profile_function(name="Eliminar venta")
    def delete_sale(
        self,
        uid: str,
        sale_id: str,
        sale_data: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Elimina una venta y repone su stock.

        Args:
            sale_data: Venta a eliminar; si no se pasa se lee del almacén
        """
        resolved = self._resolve_sale(uid, sale_id, sale_data)
        if not resolved['ok']:
            return resolved
        items = resolved['sale'].get('products', [])

        try:
            products = self._load_products(uid)
        except StoreError as e:
            logger.error("Error leyendo inventario: %s", e)
            return {'ok': False, 'error': str(e)}

        touched: List[str] = []
        missing = self._apply(products, copy.deepcopy(items), +1, touched)

        try:
            with self.store.batch() as batch:
                self._stage_products(batch, uid, products, touched)
                batch.delete(self.store.document(uid, SALES, sale_id))
        except DocumentNotFoundError:
            return {'ok': False, 'error': 'Venta no encontrada', 'code': 'not_found'}
        except StoreError as e:
            logger.error("Error eliminando venta %s: %s", sale_id, e)
            return {'ok': False, 'error': f"Error al eliminar la venta: {e}"}

        logger.info("Venta %s eliminada", sale_id)
        return {'ok': True, 'sale_id': sale_id, 'total': resolved['sale'].get('total', 0), 'missing': missing}
