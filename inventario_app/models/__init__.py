# ==============================================================================
# CAPA DE MODELOS - Estructuras de datos del sistema
# ==============================================================================
# Entidades del dominio como dataclasses, independientes del almacenamiento.
# ==============================================================================

from .entities import (
    # Inventario
    Product,
    Variant,
    DEFAULT_CATEGORY,
    variant_key,

    # Ventas
    Sale,
    SaleLineItem,
    PaymentMethod,
    SaleChannel,

    # Usuarios
    User,
)

__all__ = [
    'Product',
    'Variant',
    'DEFAULT_CATEGORY',
    'variant_key',
    'Sale',
    'SaleLineItem',
    'PaymentMethod',
    'SaleChannel',
    'User',
]
