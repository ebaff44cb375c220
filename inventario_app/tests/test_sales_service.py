# -*- coding: utf-8 -*-
"""
Tests del servicio de ventas: el stock debe quedar conciliado después de
crear, editar y eliminar ventas.
"""
import pytest

from inventario_app.activity_log import get_function_stats, reset_stats
from inventario_app.repositories.base import BaseRepository

from conftest import UID


def line(pid, qty, size=None, color=None, price=15, **extra):
    item = {'product_id': pid, 'quantity': qty, 'price': price}
    if size is not None:
        item['variant'] = {'size': size, 'color': color}
    item.update(extra)
    return item


def variant_stock(inventory, pid, size, color):
    product = inventory.get_product(UID, pid)
    for v in product['variants']:
        if v['size'] == size and v['color'] == color:
            return v['stock']
    raise AssertionError(f'variante {size}/{color} no encontrada')


def assert_stock_invariant(inventory):
    for product in inventory.list_products(UID):
        if product['variants']:
            assert product['stock'] == sum(v['stock'] for v in product['variants'])


# =========================================================================
# CREAR
# =========================================================================

def test_create_sale_decrements_variant(inventory, sales, shirt):
    result = sales.create_sale(UID, {'products': [line(shirt, 3, 'M', 'Rojo')]})
    assert result['ok'], result
    assert result['total'] == 45.0
    assert result['missing'] == []
    assert variant_stock(inventory, shirt, 'M', 'Rojo') == 7
    assert inventory.get_product(UID, shirt)['stock'] == 11

    sale = sales.get_sale(UID, result['sale_id'])
    assert sale['total'] == 45.0
    assert sale['date']
    assert sale['payment_method'] == 'Efectivo'
    assert sale['channel'] == 'Local'


def test_shirt_lifecycle_create_edit_delete(inventory, sales, shirt):
    created = sales.create_sale(UID, {'products': [line(shirt, 3, 'M', 'Rojo')]})
    assert variant_stock(inventory, shirt, 'M', 'Rojo') == 7

    edited = sales.edit_sale(UID, created['sale_id'], {'products': [line(shirt, 5, 'M', 'Rojo')]})
    assert edited['ok'], edited
    assert edited['total'] == 75.0
    assert variant_stock(inventory, shirt, 'M', 'Rojo') == 5

    deleted = sales.delete_sale(UID, created['sale_id'])
    assert deleted['ok'], deleted
    assert variant_stock(inventory, shirt, 'M', 'Rojo') == 10
    assert inventory.get_product(UID, shirt)['stock'] == 14
    assert sales.list_sales(UID) == []


def test_create_then_delete_restores_every_variant(inventory, sales, shirt, cap):
    before = {p['id']: p for p in inventory.list_products(UID)}
    created = sales.create_sale(UID, {'products': [
        line(shirt, 2, 'M', 'Rojo'),
        line(cap, 1, price=7),
        line(shirt, 4, 'L', 'Azul'),
    ]})
    assert created['ok'], created
    assert_stock_invariant(inventory)
    assert sales.delete_sale(UID, created['sale_id'])['ok']
    after = {p['id']: p for p in inventory.list_products(UID)}
    for pid, product in before.items():
        assert after[pid]['variants'] == product['variants']
        assert after[pid]['stock'] == product['stock']


def test_insufficient_stock_rejected_without_writes(inventory, sales, shirt):
    result = sales.create_sale(UID, {'products': [line(shirt, 11, 'M', 'Rojo')]})
    assert result['ok'] is False
    assert 'Stock insuficiente' in result['error']
    assert variant_stock(inventory, shirt, 'M', 'Rojo') == 10
    assert sales.list_sales(UID) == []


def test_repeated_variant_lines_are_summed_for_validation(inventory, sales, shirt):
    result = sales.create_sale(UID, {'products': [
        line(shirt, 6, 'M', 'Rojo'),
        line(shirt, 5, 'm', 'rojo'),
    ]})
    assert result['ok'] is False
    assert variant_stock(inventory, shirt, 'M', 'Rojo') == 10


def test_repeated_variant_lines_adjust_once(inventory, sales, shirt):
    result = sales.create_sale(UID, {'products': [
        line(shirt, 2, 'M', 'Rojo'),
        line(shirt, 3, 'M', 'Rojo'),
    ]})
    assert result['ok'], result
    assert variant_stock(inventory, shirt, 'M', 'Rojo') == 5


@pytest.mark.parametrize('draft, message', [
    ({'products': []}, 'La venta no tiene productos'),
    ({'products': [{'product_id': 'x', 'quantity': 0, 'price': 1}]}, 'cantidad'),
    ({'products': [{'product_id': 'x', 'quantity': 1.5, 'price': 1}]}, 'cantidad'),
    ({'products': [{'product_id': 'x', 'quantity': 1, 'price': -1}]}, 'precio'),
    ({'products': [{'product_id': 'x', 'quantity': 1, 'price': 'abc'}]}, 'precio'),
    ({'products': [{'product_id': 'x', 'quantity': 1, 'price': 'nan'}]}, 'precio'),
    ({'products': [{'product_id': 'x', 'quantity': 1, 'price': 'inf'}]}, 'precio'),
    ({'products': [{'product_id': 'x', 'quantity': 1, 'price': float('-inf')}]}, 'precio'),
    ({'products': [{'product_id': 'x', 'quantity': 1, 'price': 1, 'variant': {'size': None, 'color': 'Rojo'}}]}, 'talla y color'),
    ({'products': [{'quantity': 1, 'price': 1}]}, 'falta el producto'),
])
def test_invalid_drafts(sales, draft, message):
    result = sales.create_sale(UID, draft)
    assert result['ok'] is False
    assert message in result['error']


def test_unknown_product_and_variant(sales, shirt):
    assert 'no encontrado' in sales.create_sale(UID, {'products': [line('nope', 1)]})['error']
    result = sales.create_sale(UID, {'products': [line(shirt, 1, 'XL', 'Verde')]})
    assert 'no encontrada' in result['error']


def test_variant_required_when_product_has_variants(sales, shirt):
    result = sales.create_sale(UID, {'products': [line(shirt, 1)]})
    assert result['ok'] is False
    assert 'variante' in result['error']


def test_product_without_variants_uses_own_stock(inventory, sales, cap):
    assert sales.create_sale(UID, {'products': [line(cap, 2, price=7)]})['ok']
    assert inventory.get_product(UID, cap)['stock'] == 3
    assert sales.create_sale(UID, {'products': [line(cap, 4, price=7)]})['ok'] is False


def test_line_defaults_and_override(sales, shirt):
    result = sales.create_sale(UID, {
        'payment_method': 'Transferencia',
        'channel': 'Online',
        'products': [
            line(shirt, 1, 'M', 'Rojo', payment_method='DEUNA', channel='Local', override=False),
            line(shirt, 1, 'L', 'Azul', payment_method='deuna', channel='Local', override=True),
            line(shirt, 1, 'L', 'Azul', payment_method='Bitcoin', channel='Feria', override=True),
        ],
    })
    items = sales.get_sale(UID, result['sale_id'])['products']
    assert (items[0]['payment_method'], items[0]['channel']) == ('Transferencia', 'Online')
    assert (items[1]['payment_method'], items[1]['channel']) == ('DEUNA', 'Local')
    assert (items[2]['payment_method'], items[2]['channel']) == ('Otro', 'Otro')


def test_sale_total_matches_lines(sales, shirt, cap):
    result = sales.create_sale(UID, {'products': [
        line(shirt, 2, 'M', 'Rojo', price=12.5),
        line(cap, 3, price='7,10'),
    ]})
    sale = sales.get_sale(UID, result['sale_id'])
    assert sale['total'] == round(sum(i['quantity'] * i['price'] for i in sale['products']), 2)
    assert sale['total'] == 46.3


# =========================================================================
# EDITAR
# =========================================================================

def test_edit_with_same_lines_keeps_stock(inventory, sales, shirt, cap):
    draft = {'products': [line(shirt, 2, 'M', 'Rojo'), line(shirt, 1, 'L', 'Azul'), line(cap, 1, price=7)]}
    created = sales.create_sale(UID, draft)
    before = inventory.list_products(UID)
    assert sales.edit_sale(UID, created['sale_id'], draft)['ok']
    after = inventory.list_products(UID)
    assert [(p['variants'], p['stock']) for p in after] == [(p['variants'], p['stock']) for p in before]


def test_edit_validates_against_stock_after_reversal(inventory, sales, shirt):
    created = sales.create_sale(UID, {'products': [line(shirt, 8, 'M', 'Rojo')]})
    # Quedan 2; con la reversión vuelven a estar disponibles 10
    assert sales.edit_sale(UID, created['sale_id'], {'products': [line(shirt, 10, 'M', 'Rojo')]})['ok']
    assert variant_stock(inventory, shirt, 'M', 'Rojo') == 0

    failed = sales.edit_sale(UID, created['sale_id'], {'products': [line(shirt, 11, 'M', 'Rojo')]})
    assert failed['ok'] is False
    assert variant_stock(inventory, shirt, 'M', 'Rojo') == 0
    assert sales.get_sale(UID, created['sale_id'])['total'] == 150.0


def test_edit_moves_stock_between_variants_and_products(inventory, sales, shirt, cap):
    created = sales.create_sale(UID, {'products': [line(shirt, 2, 'M', 'Rojo')]})
    result = sales.edit_sale(UID, created['sale_id'], {'products': [
        line(shirt, 1, 'L', 'Azul'),
        line(cap, 2, price=7),
    ]})
    assert result['ok'], result
    assert variant_stock(inventory, shirt, 'M', 'Rojo') == 10
    assert variant_stock(inventory, shirt, 'L', 'Azul') == 3
    assert inventory.get_product(UID, cap)['stock'] == 3
    assert_stock_invariant(inventory)


def test_edit_and_delete_unknown_sale(sales, shirt):
    draft = {'products': [line(shirt, 1, 'M', 'Rojo')]}
    assert sales.edit_sale(UID, 'nope', draft)['code'] == 'not_found'
    assert sales.delete_sale(UID, 'nope')['code'] == 'not_found'


# =========================================================================
# REFERENCIAS PERDIDAS
# =========================================================================

def test_delete_sale_reports_removed_variant(inventory, sales, shirt):
    created = sales.create_sale(UID, {'products': [
        line(shirt, 2, 'M', 'Rojo'),
        line(shirt, 1, 'L', 'Azul'),
    ]})
    inventory.remove_variant(UID, shirt, 'L', 'Azul')

    result = sales.delete_sale(UID, created['sale_id'])
    assert result['ok']
    assert result['missing'] == [{'product_id': shirt, 'size': 'L', 'color': 'Azul', 'delta': 1}]
    assert variant_stock(inventory, shirt, 'M', 'Rojo') == 10


def test_delete_sale_of_deleted_product(inventory, sales, cap):
    created = sales.create_sale(UID, {'products': [line(cap, 1, price=7)]})
    inventory.delete_product(UID, cap)
    result = sales.delete_sale(UID, created['sale_id'])
    assert result['ok']
    assert result['missing'][0]['product_id'] == cap
    assert sales.list_sales(UID) == []


# =========================================================================
# ATOMICIDAD
# =========================================================================

def test_failed_write_leaves_store_unchanged(monkeypatch, inventory, sales, shirt):
    def broken_write(self, data):
        raise OSError('disco lleno')

    monkeypatch.setattr(BaseRepository, '_write_raw', broken_write)
    result = sales.create_sale(UID, {'products': [line(shirt, 3, 'M', 'Rojo')]})
    monkeypatch.undo()

    assert result['ok'] is False
    assert 'disco lleno' in result['error']
    assert variant_stock(inventory, shirt, 'M', 'Rojo') == 10
    assert sales.list_sales(UID) == []


def test_sale_operations_are_profiled(sales, shirt):
    reset_stats()
    sales.create_sale(UID, {'products': [line(shirt, 1, 'M', 'Rojo')]})
    stats = get_function_stats()
    assert stats['Registrar venta']['calls'] == 1
