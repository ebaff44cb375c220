# ==============================================================================
# LOGGING Y PROFILING
# ==============================================================================
# - get_logger(): logger con formato común (consola + archivo opcional)
# - init_profiling(app): mide cada request Flask y avisa si es lenta
# - profile_function: decorador para operaciones clave (ventas)
#
# ACTIVAR/DESACTIVAR profiling: INVENTARIO_PROFILING=0
# ==============================================================================

import logging
import os
import threading
import time
from collections import defaultdict
from functools import wraps
from logging.handlers import RotatingFileHandler


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Umbrales de tiempo (en milisegundos)
THRESHOLD_WARNING = 300
THRESHOLD_CRITICAL = 700

ROOT_LOGGER_NAME = 'inventario_app'


def get_logger(name=ROOT_LOGGER_NAME):
    """
    Obtiene un logger del paquete. El handler de consola se instala una
    sola vez en el logger raíz del paquete; los hijos propagan hacia él.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not root.handlers:
        root.setLevel(logging.INFO)
        ch = logging.StreamHandler()
        ch.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(ch)
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + '.'):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def configure_file_logging(log_dir, level=logging.INFO):
    """
    Agrega un archivo rotativo (logs/app.log) al logger del paquete.

    Returns:
        Ruta del archivo de log
    """
    os.makedirs(log_dir, exist_ok=True)
    path = os.path.join(log_dir, 'app.log')
    root = get_logger()
    for handler in root.handlers:
        if isinstance(handler, RotatingFileHandler) and handler.baseFilename == os.path.abspath(path):
            return path
    fh = RotatingFileHandler(path, maxBytes=1024 * 1024, backupCount=5, encoding='utf-8')
    fh.setFormatter(logging.Formatter(LOG_FORMAT))
    fh.setLevel(level)
    root.addHandler(fh)
    return path


perf_logger = get_logger('performance')


# ═══════════════════════════════════════════════════════════════════════════
# ESTADÍSTICAS DE FUNCIONES (en memoria)
# ═══════════════════════════════════════════════════════════════════════════

# Estructura: {nombre_funcion: {calls: int, total_time: float, max_time: float}}
_function_stats = defaultdict(lambda: {'calls': 0, 'total_time': 0.0, 'max_time': 0.0})
_stats_lock = threading.Lock()


def _log_elapsed(label, time_ms, user=None):
    """Registra una duración con el nivel que corresponde al umbral."""
    user_str = user or 'anónimo'
    if time_ms >= THRESHOLD_CRITICAL:
        perf_logger.error("MUY LENTA %s (%s): %.0f ms", label, user_str, time_ms)
    elif time_ms >= THRESHOLD_WARNING:
        perf_logger.warning("LENTA %s (%s): %.0f ms", label, user_str, time_ms)
    else:
        perf_logger.debug("%s (%s): %.0f ms", label, user_str, time_ms)


# ═══════════════════════════════════════════════════════════════════════════
# HOOKS PARA FLASK (before/after request)
# ═══════════════════════════════════════════════════════════════════════════

def init_profiling(app):
    """
    Registra hooks before_request y after_request que miden cada request.
    No hace nada si app.config['PROFILING'] es falso.
    """
    if not app.config.get('PROFILING', True):
        return

    @app.before_request
    def _start_timer():
        from flask import g
        g.start_time = time.perf_counter()

    @app.after_request
    def _log_request(response):
        from flask import g, request, session

        if not hasattr(g, 'start_time'):
            return response
        elapsed = (time.perf_counter() - g.start_time) * 1000
        if request.path.startswith('/static'):
            return response
        _log_elapsed(f"{request.method} {request.path} -> {response.status_code}",
                     elapsed, session.get('email'))
        return response


# ═══════════════════════════════════════════════════════════════════════════
# DECORADOR PARA FUNCIONES CLAVE
# ═══════════════════════════════════════════════════════════════════════════

def profile_function(func=None, name=None):
    """
    Decorador para medir operaciones críticas.

    Uso:
        @profile_function(name="Registrar venta")
        def create_sale(...):
            ...

    Registra cantidad de llamadas, tiempo promedio y tiempo máximo.
    """
    def decorator(fn):
        func_name = name or fn.__name__

        @wraps(fn)
        def wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                elapsed_ms = (time.perf_counter() - start) * 1000
                with _stats_lock:
                    stats = _function_stats[func_name]
                    stats['calls'] += 1
                    stats['total_time'] += elapsed_ms
                    if elapsed_ms > stats['max_time']:
                        stats['max_time'] = elapsed_ms
                if elapsed_ms >= THRESHOLD_WARNING:
                    _log_elapsed(f"función {func_name}", elapsed_ms)

        return wrapper

    # Permitir uso sin paréntesis: @profile_function
    if func is not None:
        return decorator(func)
    return decorator


def get_function_stats():
    """
    Returns:
        dict: {nombre: {calls, avg_time, max_time}}
    """
    with _stats_lock:
        result = {}
        for func_name, stats in _function_stats.items():
            calls = stats['calls']
            avg = stats['total_time'] / calls if calls > 0 else 0
            result[func_name] = {
                'calls': calls,
                'avg_time': round(avg, 2),
                'max_time': round(stats['max_time'], 2)
            }
        return result


def reset_stats():
    """Reinicia todas las estadísticas (útil para testing)"""
    with _stats_lock:
        _function_stats.clear()


__all__ = [
    'get_logger',
    'configure_file_logging',
    'init_profiling',
    'profile_function',
    'get_function_stats',
    'reset_stats',
]
