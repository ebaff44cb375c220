# ==============================================================================
# REPOSITORIO DE USUARIOS
# ==============================================================================
# Encapsula todo el acceso a users.json
# Los usuarios se almacenan como diccionario: {email: {uid, password, created_at}}
# ==============================================================================

import os
from typing import Any, Dict, Optional

from inventario_app.repositories.base import DictRepository


class UserRepository(DictRepository):
    """
    Repositorio de identidades.

    Formato de datos en users.json:
    {
        "ana@tienda.com": {
            "uid": "9f1c...",
            "password": "scrypt:...",
            "created_at": "2024-01-01T10:00:00+00:00"
        }
    }
    """

    def __init__(self, base_path: str):
        """
        Args:
            base_path: Directorio de datos
        """
        file_path = os.path.join(base_path, 'users.json')
        super().__init__(file_path)

    def load(self) -> Dict[str, Dict[str, Any]]:
        """Carga todos los usuarios."""
        return self.get_all()

    def get_user(self, email: str) -> Optional[Dict[str, Any]]:
        """Obtiene un usuario por email."""
        return self.load().get(email)

    def create_user(self, email: str, uid: str, password_hash: str, created_at: str) -> bool:
        """
        Crea un nuevo usuario.

        Returns:
            True si se creó, False si el email ya estaba registrado
        """
        with self._file_lock:
            users = self.load()
            if email in users:
                return False
            users[email] = {
                'uid': uid,
                'password': password_hash,
                'created_at': created_at
            }
            self.save_all(users)
            return True

    def get_by_uid(self, uid: str) -> Optional[Dict[str, Any]]:
        """
        Busca un usuario por uid.

        Returns:
            Datos del usuario con su 'email' incluido, o None
        """
        for email, data in self.load().items():
            if data.get('uid') == uid:
                record = dict(data)
                record['email'] = email
                return record
        return None
