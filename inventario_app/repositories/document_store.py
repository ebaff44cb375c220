# ==============================================================================
# ALMACÉN DE DOCUMENTOS
# ==============================================================================
# Colecciones por usuario guardadas en un único store.json:
#
# {
#     "<uid>": {
#         "inventory": {"<doc_id>": {...producto...}},
#         "sales":     {"<doc_id>": {...venta...}}
#     }
# }
#
# Un solo archivo permite que un lote (batch) confirme productos y venta
# con una única escritura atómica.
# ==============================================================================

import copy
import os
import threading
import uuid
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from inventario_app.activity_log import get_logger
from inventario_app.repositories.base import BaseRepository, DocumentNotFoundError, StoreError


logger = get_logger(__name__)

# Colecciones válidas por usuario
VALID_COLLECTIONS = frozenset(['inventory', 'sales'])


class _ServerTimestamp:
    """Marcador: el almacén lo reemplaza por la hora UTC al escribir."""

    def __repr__(self) -> str:
        return 'SERVER_TIMESTAMP'

    def __copy__(self) -> '_ServerTimestamp':
        return self

    def __deepcopy__(self, memo) -> '_ServerTimestamp':
        return self


SERVER_TIMESTAMP = _ServerTimestamp()


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class CollectionRef:
    """Referencia a una colección de un usuario."""
    uid: str
    name: str

    def document(self, doc_id: str) -> 'DocumentRef':
        return DocumentRef(self.uid, self.name, doc_id)


@dataclass(frozen=True)
class DocumentRef:
    """Referencia a un documento."""
    uid: str
    collection: str
    doc_id: str

    @property
    def parent(self) -> CollectionRef:
        return CollectionRef(self.uid, self.collection)


class WriteBatch:
    """
    Lote de escrituras pendientes.

    Las operaciones se guardan en orden y se aplican todas juntas en
    commit(); si alguna falla no se escribe nada.
    """

    def __init__(self, store: 'JSONDocumentStore'):
        self._store = store
        self._ops: List[Tuple[str, Any, Optional[Dict[str, Any]]]] = []
        self.committed = False

    def create(self, collection_ref: CollectionRef, record: Dict[str, Any]) -> str:
        """Agrega una creación; retorna el id que tendrá el documento."""
        doc_id = uuid.uuid4().hex
        self._ops.append(('create', collection_ref.document(doc_id), copy.deepcopy(record)))
        return doc_id

    def update(self, doc_ref: DocumentRef, partial: Dict[str, Any]) -> None:
        self._ops.append(('update', doc_ref, copy.deepcopy(partial)))

    def delete(self, doc_ref: DocumentRef) -> None:
        self._ops.append(('delete', doc_ref, None))

    def __len__(self) -> int:
        return len(self._ops)

    def commit(self) -> None:
        if self.committed:
            raise StoreError("El lote ya fue confirmado")
        self._store._commit(self._ops)
        self.committed = True


class JSONDocumentStore(BaseRepository):
    """
    Almacén de documentos sin esquema respaldado por un archivo JSON.

    Operaciones:
    - create / get / list / update / delete
    - subscribe: notifica el conjunto completo de la colección en cada cambio
    - batch: agrupa escrituras en una sola confirmación atómica
    """

    def __init__(self, base_path: str, filename: str = 'store.json'):
        """
        Args:
            base_path: Directorio de datos
            filename: Nombre del archivo del almacén
        """
        super().__init__(os.path.join(base_path, filename))
        self._listeners: Dict[CollectionRef, List[Callable]] = defaultdict(list)
        self._listeners_lock = threading.RLock()

    def _empty_data(self) -> Dict:
        return {}

    # =========================================================================
    # REFERENCIAS
    # =========================================================================

    def collection(self, uid: str, name: str) -> CollectionRef:
        if not uid:
            raise StoreError("Usuario no autenticado")
        if name not in VALID_COLLECTIONS:
            raise StoreError(f"Colección desconocida: {name}")
        return CollectionRef(uid, name)

    def document(self, uid: str, name: str, doc_id: str) -> DocumentRef:
        return self.collection(uid, name).document(doc_id)

    # =========================================================================
    # LECTURAS
    # =========================================================================

    def _collection_data(self, data: Dict[str, Any], ref: CollectionRef) -> Dict[str, Any]:
        return data.get(ref.uid, {}).get(ref.name, {})

    def get(self, doc_ref: DocumentRef) -> Optional[Dict[str, Any]]:
        """Obtiene un documento con su id incluido, o None."""
        record = self._collection_data(self._read_raw(), doc_ref.parent).get(doc_ref.doc_id)
        if record is None:
            return None
        return _with_id(doc_ref.doc_id, record)

    def list(self, collection_ref: CollectionRef) -> List[Dict[str, Any]]:
        """Obtiene todos los documentos de la colección (orden de inserción)."""
        docs = self._collection_data(self._read_raw(), collection_ref)
        return [_with_id(doc_id, record) for doc_id, record in docs.items()]

    # =========================================================================
    # ESCRITURAS
    # =========================================================================

    def create(self, collection_ref: CollectionRef, record: Dict[str, Any]) -> str:
        with self.batch() as batch:
            doc_id = batch.create(collection_ref, record)
        return doc_id

    def update(self, doc_ref: DocumentRef, partial: Dict[str, Any]) -> None:
        with self.batch() as batch:
            batch.update(doc_ref, partial)

    def delete(self, doc_ref: DocumentRef) -> None:
        with self.batch() as batch:
            batch.delete(doc_ref)

    @contextmanager
    def batch(self) -> Iterator[WriteBatch]:
        """
        Agrupa escrituras:

            with store.batch() as batch:
                batch.update(ref_producto, {...})
                sale_id = batch.create(ref_ventas, {...})

        Al salir normalmente se confirma todo con una escritura. Si el
        bloque lanza una excepción se descartan las operaciones pendientes.
        """
        batch = WriteBatch(self)
        yield batch
        if not batch.committed and len(batch):
            batch.commit()

    def _commit(self, ops: List[Tuple[str, Any, Optional[Dict[str, Any]]]]) -> None:
        """Aplica las operaciones sobre una copia y la escribe de una vez."""
        touched = []
        with self._file_lock:
            data = self._read_raw()
            now = utc_now_iso()
            for op, ref, payload in ops:
                docs = data.setdefault(ref.uid, {}).setdefault(ref.collection, {})
                if op == 'create':
                    docs[ref.doc_id] = _resolve_timestamps(payload, now)
                elif op == 'update':
                    if ref.doc_id not in docs:
                        raise DocumentNotFoundError(f"Documento no encontrado: {ref.collection}/{ref.doc_id}")
                    docs[ref.doc_id].update(_resolve_timestamps(payload, now))
                elif op == 'delete':
                    if docs.pop(ref.doc_id, None) is None:
                        raise DocumentNotFoundError(f"Documento no encontrado: {ref.collection}/{ref.doc_id}")
                if ref.parent not in touched:
                    touched.append(ref.parent)
            try:
                self._write_raw(data)
            except OSError as e:
                raise StoreError(f"No se pudo guardar: {e}") from e

        logger.debug("Lote confirmado: %d operaciones en %s", len(ops), [c.name for c in touched])
        for collection_ref in touched:
            self._notify(collection_ref)

    # =========================================================================
    # SUSCRIPCIONES
    # =========================================================================

    def subscribe(self, collection_ref: CollectionRef, callback: Callable) -> Callable[[], None]:
        """
        Suscribe `callback` a la colección. Recibe la lista completa de
        documentos ahora mismo y después de cada cambio confirmado.

        Returns:
            Función que cancela la suscripción
        """
        with self._listeners_lock:
            self._listeners[collection_ref].append(callback)
        callback(self.list(collection_ref))

        def unsubscribe() -> None:
            with self._listeners_lock:
                listeners = self._listeners.get(collection_ref, [])
                if callback in listeners:
                    listeners.remove(callback)

        return unsubscribe

    def listener_count(self, collection_ref: CollectionRef) -> int:
        with self._listeners_lock:
            return len(self._listeners.get(collection_ref, []))

    def _notify(self, collection_ref: CollectionRef) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners.get(collection_ref, []))
        if not listeners:
            return
        snapshot = self.list(collection_ref)
        for callback in listeners:
            try:
                callback(copy.deepcopy(snapshot))
            except Exception:
                # La escritura ya está confirmada; un oyente roto no la revierte
                logger.exception("Error en suscriptor de %s/%s", collection_ref.uid, collection_ref.name)


def _with_id(doc_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
    doc = copy.deepcopy(record)
    doc['id'] = doc_id
    return doc


def _resolve_timestamps(record: Dict[str, Any], now: str) -> Dict[str, Any]:
    resolved = {}
    for key, value in record.items():
        if key == 'id':
            continue
        resolved[key] = now if value is SERVER_TIMESTAMP else value
    return resolved
