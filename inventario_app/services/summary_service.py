# ==============================================================================
# SERVICIO DE RESÚMENES
# ==============================================================================
# Cifras de la pantalla de inicio y de reportes:
#
# - overview:      productos, ventas, unidades en stock, ingresos
# - period_report: ventas de hoy / semana / mes / rango, con desglose por
#                  método de pago, canal y día
#
# Trabaja sobre listas ya cargadas (por ejemplo las copias de AppState);
# no lee el almacén por su cuenta.
# ==============================================================================

from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from inventario_app.models.entities import PaymentMethod, SaleChannel


VALID_PERIODS = ('today', 'week', 'month', 'custom')


def parse_timestamp(value: Any) -> Optional[datetime]:
    """ISO 8601 → datetime con zona (UTC si no trae). None si no se puede."""
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SummaryService:
    """Cálculo de resúmenes de inventario y ventas."""

    def overview(self, products: List[Dict[str, Any]], sales: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Returns:
            {'total_products', 'total_sales', 'units_in_stock', 'revenue'}
        """
        units = sum(int(p.get('stock', 0) or 0) for p in products)
        revenue = sum(float(s.get('total', 0) or 0) for s in sales)
        return {
            'total_products': len(products),
            'total_sales': len(sales),
            'units_in_stock': units,
            'revenue': round(revenue, 2),
        }

    def date_range(
        self,
        period: str,
        start: Optional[str] = None,
        end: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Tuple[datetime, datetime]:
        """
        Rango UTC del período.

        Args:
            period: 'today', 'week' (desde el lunes), 'month', 'custom'
            start: YYYY-MM-DD (solo custom)
            end: YYYY-MM-DD inclusive (solo custom)
            now: Hora de referencia

        Raises:
            ValueError: Período desconocido o fechas custom inválidas
        """
        now = now or datetime.now(timezone.utc)
        today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)

        if period == 'today':
            return today_start, now
        if period == 'week':
            return today_start - timedelta(days=now.weekday()), now
        if period == 'month':
            return today_start.replace(day=1), now
        if period == 'custom':
            if not start or not end:
                raise ValueError('Debe indicar fecha de inicio y fin')
            range_start = datetime.strptime(start, '%Y-%m-%d').replace(tzinfo=timezone.utc)
            range_end = datetime.strptime(end, '%Y-%m-%d').replace(
                hour=23, minute=59, second=59, microsecond=999999, tzinfo=timezone.utc
            )
            if range_start > range_end:
                raise ValueError('La fecha de inicio es posterior a la de fin')
            return range_start, range_end
        raise ValueError(f'Período desconocido: {period}')

    def period_report(
        self,
        sales: List[Dict[str, Any]],
        period: str = 'today',
        start: Optional[str] = None,
        end: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Resumen de ventas del período.

        Los desgloses usan el método de pago y canal efectivos de cada
        línea, así una venta mixta reparte su importe.

        Returns:
            {'ok': True, 'period', 'date_range', 'summary',
             'by_payment_method', 'by_channel', 'daily'} o error
        """
        try:
            range_start, range_end = self.date_range(period, start, end, now)
        except ValueError as e:
            return {'ok': False, 'error': str(e)}

        by_method: Dict[str, float] = defaultdict(float)
        by_channel: Dict[str, float] = defaultdict(float)
        daily: Dict[str, Dict[str, Any]] = {}
        total = 0.0
        units = 0
        count = 0

        for sale in sales:
            sale_date = parse_timestamp(sale.get('date'))
            if sale_date is None or not (range_start <= sale_date <= range_end):
                continue
            count += 1
            day = sale_date.astimezone(timezone.utc).strftime('%Y-%m-%d')
            bucket = daily.setdefault(day, {'date': day, 'total': 0.0, 'sales': 0, 'units': 0})
            bucket['sales'] += 1

            for item in sale.get('products', []):
                quantity = int(item.get('quantity', 0) or 0)
                amount = quantity * float(item.get('price', 0) or 0)
                method = PaymentMethod.normalize(item.get('payment_method') or sale.get('payment_method')).value
                channel = SaleChannel.normalize(item.get('channel') or sale.get('channel')).value
                by_method[method] += amount
                by_channel[channel] += amount
                bucket['total'] += amount
                bucket['units'] += quantity
                total += amount
                units += quantity

        for bucket in daily.values():
            bucket['total'] = round(bucket['total'], 2)

        return {
            'ok': True,
            'period': period,
            'date_range': {'start': range_start.isoformat(), 'end': range_end.isoformat()},
            'summary': {
                'total': round(total, 2),
                'units_sold': units,
                'sales_count': count,
            },
            'by_payment_method': {k: round(v, 2) for k, v in by_method.items()},
            'by_channel': {k: round(v, 2) for k, v in by_channel.items()},
            'daily': [daily[d] for d in sorted(daily)],
        }
