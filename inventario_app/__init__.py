# ==============================================================================
# INVENTARIO APP - Inventario por talla/color y registro de ventas
# ==============================================================================

__version__ = '1.0.0'
