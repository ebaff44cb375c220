# ==============================================================================
# SERVICIO DE AUTENTICACIÓN
# ==============================================================================
# Proveedor de identidad: registro, login, logout y aviso de cambios de
# sesión. Todo el acceso a datos de un usuario cuelga de su uid.
#
# Las contraseñas se guardan SIEMPRE con hash (werkzeug.security).
# ==============================================================================

import re
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from inventario_app.activity_log import get_logger
from inventario_app.models.entities import User
from inventario_app.repositories.base import StoreError
from inventario_app.repositories.interfaces import IUserRepository


logger = get_logger(__name__)

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
MIN_PASSWORD_LENGTH = 6

AuthListener = Callable[[str, Optional[Dict[str, Any]]], None]


class AuthError(Exception):
    """Error de identidad (credenciales, registro duplicado, datos inválidos)."""
    pass


class AuthService:
    """
    Servicio de identidad.

    Responsabilidades:
    - Registro con validación de email y contraseña
    - Login / logout
    - Notificar a los suscriptores cada cambio de sesión
    """

    def __init__(self, user_repo: IUserRepository):
        """
        Args:
            user_repo: Repositorio de usuarios
        """
        self.user_repo = user_repo
        self._listeners: List[AuthListener] = []
        self._lock = threading.Lock()

    # =========================================================================
    # VALIDACIONES
    # =========================================================================

    @staticmethod
    def normalize_email(email: Any) -> str:
        return str(email or '').strip().lower()

    def _validate_credentials(self, email: str, password: Any) -> None:
        if not email or not password:
            raise AuthError('Debe ingresar email y contraseña')
        if not EMAIL_RE.match(email):
            raise AuthError('El email no es válido')
        if len(str(password)) < MIN_PASSWORD_LENGTH:
            raise AuthError(f'La contraseña debe tener al menos {MIN_PASSWORD_LENGTH} caracteres')

    @staticmethod
    def _public(email: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """Datos del usuario sin el hash."""
        return User.from_dict(email, record).to_public_dict()

    # =========================================================================
    # OPERACIONES
    # =========================================================================

    def register(self, email: Any, password: Any) -> Dict[str, Any]:
        """
        Registra un usuario e inicia su sesión.

        Returns:
            {'ok': True, 'user': {...}} o {'ok': False, 'error'}
        """
        email = self.normalize_email(email)
        try:
            self._validate_credentials(email, password)
            uid = uuid.uuid4().hex
            created_at = datetime.now(timezone.utc).isoformat()
            created = self.user_repo.create_user(
                email, uid, generate_password_hash(str(password)), created_at
            )
            if not created:
                raise AuthError('El email ya está registrado')
        except AuthError as e:
            return {'ok': False, 'error': str(e)}
        except StoreError as e:
            logger.error("Error registrando usuario %s: %s", email, e)
            return {'ok': False, 'error': str(e)}

        user = User(uid=uid, email=email, created_at=created_at).to_public_dict()
        logger.info("Usuario registrado: %s", email)
        self._emit(uid, user)
        return {'ok': True, 'user': user}

    def login(self, email: Any, password: Any) -> Dict[str, Any]:
        """
        Autentica un usuario.

        Returns:
            {'ok': True, 'user': {...}} o {'ok': False, 'error'}
        """
        email = self.normalize_email(email)
        try:
            if not email or not password:
                raise AuthError('Debe ingresar email y contraseña')
            record = self.user_repo.get_user(email)
            if not record or not check_password_hash(record.get('password', ''), str(password)):
                raise AuthError('Email o contraseña incorrectos')
        except AuthError as e:
            logger.info("Login fallido para %s", email or '-')
            return {'ok': False, 'error': str(e)}
        except StoreError as e:
            logger.error("Error leyendo usuarios: %s", e)
            return {'ok': False, 'error': str(e)}

        user = self._public(email, record)
        logger.info("Sesión iniciada: %s", email)
        self._emit(user['uid'], user)
        return {'ok': True, 'user': user}

    def logout(self, uid: str) -> Dict[str, Any]:
        """Cierra la sesión de `uid`."""
        if not uid:
            return {'ok': False, 'error': 'Usuario no autenticado'}
        logger.info("Sesión cerrada: %s", uid)
        self._emit(uid, None)
        return {'ok': True}

    def get_user(self, uid: str) -> Optional[Dict[str, Any]]:
        """Usuario público por uid, o None."""
        if not uid:
            return None
        record = self.user_repo.get_by_uid(uid)
        if record is None:
            return None
        return self._public(record['email'], record)

    # =========================================================================
    # SUSCRIPCIONES
    # =========================================================================

    def on_auth_change(self, callback: AuthListener) -> Callable[[], None]:
        """
        Suscribe `callback(uid, user_o_None)` a los cambios de sesión.

        Returns:
            Función que cancela la suscripción
        """
        with self._lock:
            self._listeners.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    def _emit(self, uid: str, user: Optional[Dict[str, Any]]) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for callback in listeners:
            try:
                callback(uid, user)
            except Exception:
                logger.exception("Error en listener de sesión")
