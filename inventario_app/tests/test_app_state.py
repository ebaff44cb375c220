# -*- coding: utf-8 -*-
"""
Tests del estado por usuario y su enlace con las sesiones.
"""
from conftest import UID


def test_state_follows_store_changes(container, inventory, sales, shirt):
    state = container.state_for(UID)
    assert state.is_authenticated
    assert [p['id'] for p in state.products] == [shirt]
    assert state.sales == ()

    sales.create_sale(UID, {'products': [
        {'product_id': shirt, 'quantity': 2, 'price': 15, 'variant': {'size': 'M', 'color': 'Rojo'}},
    ]})
    assert len(state.sales) == 1
    assert state.product_by_id(shirt)['stock'] == 12
    assert state.product_by_id('nope') is None


def test_snapshots_are_read_only_tuples(container, shirt):
    state = container.state_for(UID)
    assert isinstance(state.products, tuple)


def test_unbind_clears_and_unsubscribes(container, store, shirt):
    state = container.state_for(UID)
    inventory_ref = store.collection(UID, 'inventory')
    assert store.listener_count(inventory_ref) == 1

    container.release_state(UID)
    assert not state.is_authenticated
    assert state.products == ()
    assert store.listener_count(inventory_ref) == 0


def test_auth_changes_bind_and_release_state(container):
    auth = container.auth_service
    uid = auth.register('ana@tienda.com', 'secreto1')['user']['uid']
    assert container.active_states() == 1
    assert container.state_for(uid).user['email'] == 'ana@tienda.com'

    auth.logout(uid)
    assert container.active_states() == 0


def test_states_are_isolated_per_user(container, inventory, shirt):
    other = container.state_for('user-2')
    assert other.products == ()
    inventory.create_product('user-2', {'name': 'Pantalón', 'brand': 'Acme', 'cost_price': 1, 'sale_price': 2})
    assert len(other.products) == 1
    assert len(container.state_for(UID).products) == 1
