# -*- coding: utf-8 -*-
"""
Fixtures compartidas: cada test trabaja sobre su propio directorio de datos.
"""
import pytest

from inventario_app.activity_log import reset_stats
from inventario_app.app_container import AppContainer
from inventario_app.main import create_app


UID = 'user-1'


@pytest.fixture
def container(tmp_path):
    c = AppContainer(str(tmp_path))
    yield c
    c.reset()
    reset_stats()


@pytest.fixture
def store(container):
    return container.store


@pytest.fixture
def inventory(container):
    return container.inventory_service


@pytest.fixture
def sales(container):
    return container.sales_service


@pytest.fixture
def shirt(inventory):
    """Camisa con variantes M/Rojo (10) y L/Azul (4)."""
    result = inventory.create_product(UID, {
        'name': 'Camisa',
        'brand': 'Acme',
        'cost_price': 8,
        'sale_price': 15,
        'variants': [
            {'size': 'M', 'color': 'Rojo', 'stock': 10},
            {'size': 'L', 'color': 'Azul', 'stock': 4},
        ],
    })
    assert result['ok'], result
    return result['id']


@pytest.fixture
def cap(inventory):
    """Gorra sin variantes con stock propio 5."""
    result = inventory.create_product(UID, {
        'name': 'Gorra', 'brand': 'Acme', 'cost_price': 3, 'sale_price': 7, 'stock': 5,
    })
    assert result['ok'], result
    return result['id']


@pytest.fixture
def app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret',
        'DATA_DIR': str(tmp_path / 'data'),
        'PROFILING': False,
    })
    yield app
    app.extensions['inventario'].reset()


@pytest.fixture
def client(app):
    with app.test_client() as c:
        yield c
