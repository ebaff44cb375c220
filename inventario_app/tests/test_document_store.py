# -*- coding: utf-8 -*-
"""
Tests del almacén de documentos JSON.
"""
import json
import os

import pytest

from inventario_app.repositories import (
    DocumentNotFoundError,
    JSONDocumentStore,
    SERVER_TIMESTAMP,
    StoreError,
)


@pytest.fixture
def docs(tmp_path):
    return JSONDocumentStore(str(tmp_path))


def test_create_get_list(docs):
    ref = docs.collection('u1', 'inventory')
    pid = docs.create(ref, {'name': 'Camisa', 'stock': 3})
    assert docs.get(ref.document(pid)) == {'id': pid, 'name': 'Camisa', 'stock': 3}
    assert [d['id'] for d in docs.list(ref)] == [pid]


def test_collections_are_partitioned_by_user(docs):
    docs.create(docs.collection('u1', 'sales'), {'total': 1})
    assert docs.list(docs.collection('u2', 'sales')) == []


def test_invalid_collection_or_missing_uid(docs):
    with pytest.raises(StoreError):
        docs.collection('u1', 'otros')
    with pytest.raises(StoreError):
        docs.collection('', 'inventory')


def test_update_merges_and_delete(docs):
    ref = docs.collection('u1', 'inventory')
    pid = docs.create(ref, {'name': 'Camisa', 'stock': 3})
    docs.update(ref.document(pid), {'stock': 5})
    assert docs.get(ref.document(pid))['name'] == 'Camisa'
    assert docs.get(ref.document(pid))['stock'] == 5
    docs.delete(ref.document(pid))
    assert docs.get(ref.document(pid)) is None


def test_missing_document_raises(docs):
    ref = docs.document('u1', 'inventory', 'nope')
    with pytest.raises(DocumentNotFoundError):
        docs.update(ref, {'stock': 1})
    with pytest.raises(DocumentNotFoundError):
        docs.delete(ref)


def test_server_timestamp_is_resolved(docs):
    ref = docs.collection('u1', 'sales')
    sid = docs.create(ref, {'date': SERVER_TIMESTAMP})
    date = docs.get(ref.document(sid))['date']
    assert isinstance(date, str) and date.endswith('+00:00')


def test_returned_documents_are_copies(docs):
    ref = docs.collection('u1', 'inventory')
    pid = docs.create(ref, {'variants': [{'size': 'M', 'stock': 1}]})
    doc = docs.get(ref.document(pid))
    doc['variants'][0]['stock'] = 99
    assert docs.get(ref.document(pid))['variants'][0]['stock'] == 1


def test_batch_commits_once(docs):
    inv = docs.collection('u1', 'inventory')
    pid = docs.create(inv, {'stock': 3})
    with docs.batch() as batch:
        batch.update(inv.document(pid), {'stock': 1})
        sid = batch.create(docs.collection('u1', 'sales'), {'total': 10})
        # Nada visible antes de confirmar
        assert docs.get(inv.document(pid))['stock'] == 3
    assert docs.get(inv.document(pid))['stock'] == 1
    assert docs.get(docs.document('u1', 'sales', sid))['total'] == 10


def test_batch_discards_on_exception(docs):
    inv = docs.collection('u1', 'inventory')
    pid = docs.create(inv, {'stock': 3})
    with pytest.raises(RuntimeError):
        with docs.batch() as batch:
            batch.update(inv.document(pid), {'stock': 0})
            raise RuntimeError('fallo')
    assert docs.get(inv.document(pid))['stock'] == 3


def test_batch_with_missing_document_writes_nothing(docs):
    inv = docs.collection('u1', 'inventory')
    pid = docs.create(inv, {'stock': 3})
    with pytest.raises(DocumentNotFoundError):
        with docs.batch() as batch:
            batch.update(inv.document(pid), {'stock': 0})
            batch.delete(inv.document('nope'))
    assert docs.get(inv.document(pid))['stock'] == 3


def test_subscribe_delivers_snapshots(docs):
    ref = docs.collection('u1', 'inventory')
    received = []
    unsubscribe = docs.subscribe(ref, received.append)
    assert received == [[]]

    pid = docs.create(ref, {'name': 'Camisa'})
    assert [d['id'] for d in received[-1]] == [pid]

    # Otra colección no notifica
    docs.create(docs.collection('u1', 'sales'), {'total': 1})
    assert len(received) == 2

    unsubscribe()
    docs.create(ref, {'name': 'Gorra'})
    assert len(received) == 2
    assert docs.listener_count(ref) == 0


def test_broken_listener_does_not_undo_write(docs):
    ref = docs.collection('u1', 'inventory')
    calls = []

    def broken(snapshot):
        calls.append(snapshot)
        if len(calls) > 1:
            raise ValueError('oyente roto')

    docs.subscribe(ref, broken)
    pid = docs.create(ref, {'name': 'Camisa'})
    assert docs.get(ref.document(pid)) is not None


def test_corrupt_file_raises_store_error(tmp_path):
    docs = JSONDocumentStore(str(tmp_path))
    with open(os.path.join(str(tmp_path), 'store.json'), 'w', encoding='utf-8') as f:
        f.write('{no es json')
    with pytest.raises(StoreError):
        docs.list(docs.collection('u1', 'inventory'))


def test_file_layout(tmp_path):
    docs = JSONDocumentStore(str(tmp_path))
    pid = docs.create(docs.collection('u1', 'inventory'), {'name': 'Camisa'})
    with open(os.path.join(str(tmp_path), 'store.json'), encoding='utf-8') as f:
        data = json.load(f)
    assert data == {'u1': {'inventory': {pid: {'name': 'Camisa'}}}}
