# ==============================================================================
# ENTIDADES DEL DOMINIO - Definiciones de dataclasses
# ==============================================================================
# Cada entidad representa un concepto del negocio.
# Los documentos se guardan como diccionarios (claves snake_case);
# estas clases convierten en ambos sentidos con to_dict / from_dict.
# ==============================================================================

from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any
from enum import Enum


DEFAULT_CATEGORY = 'Ropa'


# ==============================================================================
# ENUMERACIONES
# ==============================================================================

class PaymentMethod(str, Enum):
    """Métodos de pago aceptados."""
    EFECTIVO = "Efectivo"
    TRANSFERENCIA = "Transferencia"
    DEUNA = "DEUNA"
    OTRO = "Otro"      # Cualquier valor desconocido cae aquí

    @classmethod
    def normalize(cls, value: Any) -> 'PaymentMethod':
        """Convierte un valor libre al método correspondiente (o OTRO)."""
        if isinstance(value, cls):
            return value
        text = str(value or '').strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        return cls.OTRO


class SaleChannel(str, Enum):
    """Canales de venta."""
    LOCAL = "Local"
    ONLINE = "Online"
    OTRO = "Otro"

    @classmethod
    def normalize(cls, value: Any) -> 'SaleChannel':
        """Convierte un valor libre al canal correspondiente (o OTRO)."""
        if isinstance(value, cls):
            return value
        text = str(value or '').strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        return cls.OTRO


# ==============================================================================
# ENTIDADES DE INVENTARIO
# ==============================================================================

@dataclass
class Variant:
    """
    Variante de un producto (talla + color).
    Es la unidad donde realmente vive el stock.

    Attributes:
        size: Talla (comparación sin distinguir mayúsculas)
        color: Color (comparación sin distinguir mayúsculas)
        stock: Unidades disponibles
    """
    size: str
    color: str
    stock: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {'size': self.size, 'color': self.color, 'stock': self.stock}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Variant':
        return cls(
            size=str(data.get('size', '')),
            color=str(data.get('color', '')),
            stock=int(data.get('stock', 0) or 0)
        )


@dataclass
class Product:
    """
    Producto del catálogo.

    Attributes:
        id: Identificador asignado por el almacén de documentos
        name: Nombre del producto
        brand: Marca
        category: Categoría (por defecto "Ropa")
        cost_price: Costo unitario
        sale_price: Precio de venta
        variants: Variantes talla/color
        stock: Suma del stock de las variantes (o stock propio si no tiene)
        date_incorporation: Fecha de alta, nunca se modifica
    """
    id: Optional[str]
    name: str
    brand: str
    category: str = DEFAULT_CATEGORY
    cost_price: float = 0.0
    sale_price: float = 0.0
    variants: List[Variant] = field(default_factory=list)
    stock: int = 0
    date_incorporation: Optional[str] = None

    @property
    def total_stock(self) -> int:
        """Stock calculado desde las variantes."""
        if self.variants:
            return sum(v.stock for v in self.variants)
        return self.stock

    def to_dict(self) -> Dict[str, Any]:
        """Convierte a diccionario para persistencia (sin el id)."""
        return {
            'name': self.name,
            'brand': self.brand,
            'category': self.category or DEFAULT_CATEGORY,
            'cost_price': round(self.cost_price, 2),
            'sale_price': round(self.sale_price, 2),
            'variants': [v.to_dict() for v in self.variants],
            'stock': self.total_stock,
            'date_incorporation': self.date_incorporation,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Product':
        return cls(
            id=data.get('id'),
            name=data.get('name', ''),
            brand=data.get('brand', ''),
            category=data.get('category') or DEFAULT_CATEGORY,
            cost_price=float(data.get('cost_price', 0) or 0),
            sale_price=float(data.get('sale_price', 0) or 0),
            variants=[Variant.from_dict(v) for v in data.get('variants', [])],
            stock=int(data.get('stock', 0) or 0),
            date_incorporation=data.get('date_incorporation')
        )


# ==============================================================================
# ENTIDADES DE VENTA
# ==============================================================================

@dataclass
class SaleLineItem:
    """
    Línea de una venta.

    El producto se referencia por id (relación débil): puede cambiar o
    eliminarse sin afectar a la venta ya registrada.
    """
    product_id: str
    quantity: int
    price: float
    variant: Optional[Dict[str, str]] = None
    payment_method: PaymentMethod = PaymentMethod.EFECTIVO
    channel: SaleChannel = SaleChannel.LOCAL
    override: bool = False
    product_name: str = ''

    def to_dict(self) -> Dict[str, Any]:
        d = {
            'product_id': self.product_id,
            'variant': dict(self.variant) if self.variant else None,
            'quantity': self.quantity,
            'price': round(self.price, 2),
            'payment_method': PaymentMethod.normalize(self.payment_method).value,
            'channel': SaleChannel.normalize(self.channel).value,
            'override': bool(self.override),
        }
        if self.product_name:
            d['product_name'] = self.product_name
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SaleLineItem':
        variant = data.get('variant')
        if variant:
            variant = {
                'size': str(variant.get('size', '')),
                'color': str(variant.get('color', ''))
            }
        return cls(
            product_id=data.get('product_id'),
            quantity=int(data.get('quantity', 0) or 0),
            price=float(data.get('price', 0) or 0),
            variant=variant or None,
            payment_method=PaymentMethod.normalize(data.get('payment_method')),
            channel=SaleChannel.normalize(data.get('channel')),
            override=bool(data.get('override', False)),
            product_name=data.get('product_name', '')
        )


@dataclass
class Sale:
    """
    Venta registrada.

    Attributes:
        id: Identificador asignado por el almacén
        products: Líneas de la venta
        payment_method: Método por defecto de la venta
        channel: Canal por defecto de la venta
        date: Fecha de creación o de la última edición
    """
    id: Optional[str]
    products: List[SaleLineItem] = field(default_factory=list)
    payment_method: PaymentMethod = PaymentMethod.EFECTIVO
    channel: SaleChannel = SaleChannel.LOCAL
    date: Optional[str] = None

    @property
    def total(self) -> float:
        """Suma de cantidad * precio de todas las líneas."""
        return round(sum(item.quantity * item.price for item in self.products), 2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'products': [item.to_dict() for item in self.products],
            'total': self.total,
            'payment_method': PaymentMethod.normalize(self.payment_method).value,
            'channel': SaleChannel.normalize(self.channel).value,
            'date': self.date,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Sale':
        return cls(
            id=data.get('id'),
            products=[SaleLineItem.from_dict(i) for i in data.get('products', [])],
            payment_method=PaymentMethod.normalize(data.get('payment_method')),
            channel=SaleChannel.normalize(data.get('channel')),
            date=data.get('date')
        )


# ==============================================================================
# ENTIDADES DE USUARIO
# ==============================================================================

@dataclass
class User:
    """
    Usuario autenticado.

    Attributes:
        uid: Identificador opaco usado para particionar las colecciones
        email: Correo (normalizado en minúsculas)
        password_hash: Hash werkzeug (nunca texto plano)
        created_at: Fecha de registro
    """
    uid: str
    email: str
    password_hash: str = ''
    created_at: Optional[str] = None

    def to_public_dict(self) -> Dict[str, Any]:
        """Datos seguros para exponer (sin hash)."""
        return {'uid': self.uid, 'email': self.email, 'created_at': self.created_at}

    def to_dict(self) -> Dict[str, Any]:
        return {
            'uid': self.uid,
            'password': self.password_hash,
            'created_at': self.created_at,
        }

    @classmethod
    def from_dict(cls, email: str, data: Dict[str, Any]) -> 'User':
        return cls(
            uid=data.get('uid', ''),
            email=email,
            password_hash=data.get('password', ''),
            created_at=data.get('created_at')
        )


def variant_key(size: Any, color: Any) -> tuple:
    """Clave normalizada para comparar variantes sin distinguir mayúsculas."""
    return (str(size or '').strip().lower(), str(color or '').strip().lower())
