# ==============================================================================
# RECONCILIACIÓN DE STOCK
# ==============================================================================
# Funciones puras sobre diccionarios de producto / líneas de venta:
#
# - find_variant        → busca la variante (talla, color) sin mayúsculas
# - apply_stock_delta   → suma un delta a una variante y recalcula el total
# - group_by_product    → agrupa líneas de venta por producto
# - net_variant_deltas  → suma las cantidades de cada variante de un grupo
#
# Los productos se modifican in-place (igual que el inventario en memoria
# de SalesService); el llamador decide cuándo persistir.
# ==============================================================================

from typing import Any, Dict, List, Optional, Tuple

from inventario_app.activity_log import get_logger
from inventario_app.models.entities import variant_key


logger = get_logger(__name__)

# Clave usada para líneas sin variante (producto sin tallas/colores)
NO_VARIANT = None


def find_variant(product: Dict[str, Any], size: Any, color: Any) -> Optional[Dict[str, Any]]:
    """
    Busca la variante (size, color) de un producto.

    La comparación ignora mayúsculas y espacios. Si hubiera duplicados
    gana la primera coincidencia.

    Returns:
        El diccionario de la variante (mutable) o None
    """
    wanted = variant_key(size, color)
    for variant in product.get('variants') or []:
        if variant_key(variant.get('size'), variant.get('color')) == wanted:
            return variant
    return None


def recompute_stock(product: Dict[str, Any]) -> int:
    """
    Recalcula product['stock'] como suma de las variantes.
    Un producto sin variantes conserva su stock propio.
    """
    variants = product.get('variants') or []
    if variants:
        product['stock'] = sum(int(v.get('stock', 0) or 0) for v in variants)
    else:
        product['stock'] = int(product.get('stock', 0) or 0)
    return product['stock']


def apply_stock_delta(product: Dict[str, Any], size: Any, color: Any, delta: int) -> bool:
    """
    Aplica `delta` al stock de una variante y recalcula el stock del producto.

    Args:
        product: Producto (se modifica in-place)
        size: Talla
        color: Color
        delta: Cantidad con signo (negativa al vender, positiva al revertir)

    Returns:
        True si se aplicó; False si la variante no existe (el producto
        queda intacto y se registra una advertencia)
    """
    variant = find_variant(product, size, color)
    if variant is None:
        logger.warning(
            "Variante no encontrada al ajustar stock: producto=%s talla=%r color=%r delta=%+d",
            product.get('id'), size, color, delta
        )
        return False
    variant['stock'] = int(variant.get('stock', 0) or 0) + delta
    recompute_stock(product)
    return True


def apply_product_delta(product: Dict[str, Any], delta: int) -> bool:
    """
    Aplica `delta` al stock propio de un producto sin variantes.

    Returns:
        False si el producto tiene variantes (hay que indicar una)
    """
    if product.get('variants'):
        logger.warning(
            "Ajuste sin variante sobre producto con variantes: producto=%s delta=%+d",
            product.get('id'), delta
        )
        return False
    product['stock'] = int(product.get('stock', 0) or 0) + delta
    return True


def group_by_product(line_items: List[Dict[str, Any]]) -> Dict[Any, List[Dict[str, Any]]]:
    """
    Agrupa líneas de venta por product_id.

    El orden de los grupos es el de la primera aparición y dentro de cada
    grupo se respeta el orden original.
    """
    groups: Dict[Any, List[Dict[str, Any]]] = {}
    for item in line_items:
        groups.setdefault(item.get('product_id'), []).append(item)
    return groups


def line_variant(item: Dict[str, Any]) -> Tuple[Optional[tuple], str, str]:
    """
    Returns:
        (clave normalizada o NO_VARIANT, talla, color) de una línea
    """
    variant = item.get('variant') or None
    if not variant:
        return NO_VARIANT, '', ''
    size = variant.get('size', '')
    color = variant.get('color', '')
    return variant_key(size, color), size, color


def net_variant_deltas(items: List[Dict[str, Any]], sign: int) -> Dict[Optional[tuple], List[Any]]:
    """
    Suma las cantidades de las líneas de UN producto por variante.

    Args:
        items: Líneas del mismo producto
        sign: -1 para descontar (venta), +1 para reponer (reversión)

    Returns:
        {clave_variante: [talla, color, delta]} en orden de aparición
    """
    deltas: Dict[Optional[tuple], List[Any]] = {}
    for item in items:
        key, size, color = line_variant(item)
        qty = int(item.get('quantity', 0) or 0)
        if key not in deltas:
            deltas[key] = [size, color, 0]
        deltas[key][2] += sign * qty
    return deltas


def apply_group(product: Dict[str, Any], items: List[Dict[str, Any]], sign: int) -> List[Dict[str, Any]]:
    """
    Aplica el efecto neto de un grupo de líneas sobre un producto.
    Cada variante se ajusta una sola vez.

    Returns:
        Lista de ajustes no aplicados (variante inexistente)
    """
    missing = []
    for key, (size, color, delta) in net_variant_deltas(items, sign).items():
        if delta == 0:
            continue
        if key is NO_VARIANT:
            applied = apply_product_delta(product, delta)
        else:
            applied = apply_stock_delta(product, size, color, delta)
        if not applied:
            missing.append({
                'product_id': product.get('id'),
                'size': size,
                'color': color,
                'delta': delta,
            })
    return missing
