# ==============================================================================
# APLICACIÓN FLASK - API JSON de inventario y ventas
# ==============================================================================
# Las rutas solo orquestan request → servicio → respuesta.
# Toda la lógica de negocio vive en services/.
#
# Configuración por variables de entorno:
#   INVENTARIO_SECRET_KEY  → clave de sesión (OBLIGATORIA en producción)
#   INVENTARIO_DATA_DIR    → directorio de store.json / users.json (./data)
#   INVENTARIO_LOG_DIR     → directorio de logs rotativos (opcional)
#   INVENTARIO_PROFILING   → "0" desactiva la medición de requests
#
# El estado en memoria (instantáneas por usuario, suscripciones y el lock
# del archivo) vive en un solo proceso: servir con UN worker.
# ==============================================================================

import os
import uuid
from functools import wraps

from flask import Blueprint, Flask, current_app, request, session
from werkzeug.exceptions import HTTPException

from inventario_app.activity_log import configure_file_logging, get_logger, init_profiling
from inventario_app.app_container import AppContainer


logger = get_logger(__name__)

_DEFAULT_SECRET = "inventario_dev_secret_key_change_in_production"

api = Blueprint('api', __name__, url_prefix='/api')

# Código de resultado del servicio → estado HTTP
STATUS_BY_CODE = {
    'not_found': 404,
    'duplicate': 409,
}


# ═══════════════════════════════════════════════════════════════════════════════
# UTILIDADES DE RUTAS
# ═══════════════════════════════════════════════════════════════════════════════

def get_container() -> AppContainer:
    return current_app.extensions['inventario']


def current_uid():
    return session.get('uid')


def respond(result, success_status=200):
    """Convierte el dict de un servicio en respuesta JSON con su estado."""
    if result.get('ok'):
        return result, success_status
    return result, STATUS_BY_CODE.get(result.get('code'), 400)


def json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def login_required(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        if not current_uid():
            return {"ok": False, "error": "Debes iniciar sesión"}, 401
        return f(*args, **kwargs)
    return wrapper


def generate_csrf_token():
    if 'csrf_token' not in session:
        session['csrf_token'] = uuid.uuid4().hex
    return session['csrf_token']


def verify_csrf(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        if request.method in ('POST', 'PUT', 'DELETE'):
            token = session.get('csrf_token')
            sent = (
                request.headers.get('X-CSRF-Token') or
                request.headers.get('X-CSRFToken') or
                request.form.get('csrf_token')
            )
            if not sent and request.is_json:
                sent = json_body().get('csrf_token')
            if not token or not sent or token != sent:
                return {"ok": False, "error": "CSRF token inválido"}, 403
        return f(*args, **kwargs)
    return wrapper


def _start_session(user):
    session.clear()
    session.permanent = True
    session['uid'] = user['uid']
    session['email'] = user['email']
    return generate_csrf_token()


# ═══════════════════════════════════════════════════════════════════════════════
# SESIÓN Y AUTENTICACIÓN
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/session', methods=['GET'])
def api_session():
    """Estado de la sesión + token CSRF para las siguientes escrituras."""
    token = generate_csrf_token()
    uid = current_uid()
    user = get_container().auth_service.get_user(uid) if uid else None
    if uid and user is None:
        session.pop('uid', None)
        session.pop('email', None)
    return {"ok": True, "authenticated": user is not None, "user": user, "csrf_token": token}


@api.route('/auth/register', methods=['POST'])
@verify_csrf
def api_register():
    data = json_body()
    result = get_container().auth_service.register(data.get('email'), data.get('password'))
    if not result['ok']:
        return respond(result)
    result['csrf_token'] = _start_session(result['user'])
    return result, 201


@api.route('/auth/login', methods=['POST'])
@verify_csrf
def api_login():
    data = json_body()
    result = get_container().auth_service.login(data.get('email'), data.get('password'))
    if not result['ok']:
        return result, 401
    result['csrf_token'] = _start_session(result['user'])
    return result


@api.route('/auth/logout', methods=['POST'])
@login_required
@verify_csrf
def api_logout():
    result = get_container().auth_service.logout(current_uid())
    session.clear()
    return respond(result)


# ═══════════════════════════════════════════════════════════════════════════════
# PRODUCTOS
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/products', methods=['GET'])
@login_required
def api_products():
    state = get_container().state_for(current_uid())
    return {"ok": True, "products": list(state.products)}


@api.route('/products', methods=['POST'])
@login_required
@verify_csrf
def api_product_create():
    result = get_container().inventory_service.create_product(current_uid(), json_body())
    return respond(result, 201)


@api.route('/products/<pid>', methods=['GET'])
@login_required
def api_product_detail(pid):
    product = get_container().state_for(current_uid()).product_by_id(pid)
    if product is None:
        return {"ok": False, "error": "Producto no encontrado"}, 404
    return {"ok": True, "product": product}


@api.route('/products/<pid>', methods=['PUT'])
@login_required
@verify_csrf
def api_product_update(pid):
    return respond(get_container().inventory_service.update_product(current_uid(), pid, json_body()))


@api.route('/products/<pid>', methods=['DELETE'])
@login_required
@verify_csrf
def api_product_delete(pid):
    return respond(get_container().inventory_service.delete_product(current_uid(), pid))


@api.route('/products/<pid>/variants', methods=['POST'])
@login_required
@verify_csrf
def api_variant_add(pid):
    data = json_body()
    result = get_container().inventory_service.add_variant(
        current_uid(), pid, data.get('size'), data.get('color'), data.get('stock', 0)
    )
    return respond(result, 201)


@api.route('/products/<pid>/variants/delete', methods=['POST'])
@login_required
@verify_csrf
def api_variant_delete(pid):
    data = json_body()
    result = get_container().inventory_service.remove_variant(
        current_uid(), pid, data.get('size'), data.get('color')
    )
    return respond(result)


@api.route('/products/<pid>/variants/stock', methods=['POST'])
@login_required
@verify_csrf
def api_variant_stock(pid):
    data = json_body()
    result = get_container().inventory_service.set_variant_stock(
        current_uid(), pid, data.get('size'), data.get('color'), data.get('stock')
    )
    return respond(result)


# ═══════════════════════════════════════════════════════════════════════════════
# VENTAS
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/sales', methods=['GET'])
@login_required
def api_sales():
    state = get_container().state_for(current_uid())
    return {"ok": True, "sales": list(state.sales)}


@api.route('/sales', methods=['POST'])
@login_required
@verify_csrf
def api_sale_create():
    result = get_container().sales_service.create_sale(current_uid(), json_body())
    return respond(result, 201)


@api.route('/sales/<sid>', methods=['PUT'])
@login_required
@verify_csrf
def api_sale_update(sid):
    return respond(get_container().sales_service.edit_sale(current_uid(), sid, json_body()))


@api.route('/sales/<sid>', methods=['DELETE'])
@login_required
@verify_csrf
def api_sale_delete(sid):
    return respond(get_container().sales_service.delete_sale(current_uid(), sid))


# ═══════════════════════════════════════════════════════════════════════════════
# RESÚMENES
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/summary', methods=['GET'])
@login_required
def api_summary():
    container = get_container()
    state = container.state_for(current_uid())
    overview = container.summary_service.overview(list(state.products), list(state.sales))
    return {"ok": True, "summary": overview}


@api.route('/reports', methods=['GET'])
@login_required
def api_reports():
    container = get_container()
    state = container.state_for(current_uid())
    result = container.summary_service.period_report(
        list(state.sales),
        request.args.get('period', 'today'),
        request.args.get('start'),
        request.args.get('end'),
    )
    return respond(result)


# ═══════════════════════════════════════════════════════════════════════════════
# FÁBRICA DE LA APLICACIÓN
# ═══════════════════════════════════════════════════════════════════════════════

def create_app(config=None):
    """
    Crea y configura la aplicación.

    Args:
        config: Sobrescrituras (DATA_DIR, SECRET_KEY, TESTING, LOG_DIR, PROFILING)

    Returns:
        Aplicación Flask lista para servir
    """
    config = config or {}
    app = Flask(__name__)

    secret_key = config.get('SECRET_KEY') or os.environ.get('INVENTARIO_SECRET_KEY')
    if not secret_key:
        if not config.get('TESTING'):
            logger.warning("INVENTARIO_SECRET_KEY no definida; usando clave de desarrollo")
        secret_key = _DEFAULT_SECRET

    app.config.update(
        SECRET_KEY=secret_key,
        DATA_DIR=os.environ.get('INVENTARIO_DATA_DIR', os.path.join(os.getcwd(), 'data')),
        LOG_DIR=os.environ.get('INVENTARIO_LOG_DIR'),
        PROFILING=os.environ.get('INVENTARIO_PROFILING', '1') != '0',
        SESSION_COOKIE_HTTPONLY=True,      # Protege contra XSS
        SESSION_COOKIE_SECURE=False,       # True solo detrás de HTTPS
        SESSION_COOKIE_SAMESITE='Lax',
        PERMANENT_SESSION_LIFETIME=86400,  # 24 horas
    )
    app.config.update({k: v for k, v in config.items() if k != 'SECRET_KEY'})

    if app.config.get('LOG_DIR'):
        configure_file_logging(app.config['LOG_DIR'])

    workers = os.environ.get('WEB_CONCURRENCY', '1')
    if workers.isdigit() and int(workers) > 1:
        logger.warning(
            "WEB_CONCURRENCY=%s: el estado y el lock del almacén son por proceso; usar un solo worker",
            workers
        )

    app.extensions['inventario'] = AppContainer(app.config['DATA_DIR'])
    init_profiling(app)
    app.register_blueprint(api)

    @app.after_request
    def set_security_headers(response):
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['Referrer-Policy'] = 'no-referrer-when-downgrade'
        response.headers['Permissions-Policy'] = 'geolocation=(), microphone=()'
        if request.is_secure:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
        return response

    @app.errorhandler(Exception)
    def handle_error(error):
        if isinstance(error, HTTPException):
            return {"ok": False, "error": error.description}, error.code
        logger.exception("Error no controlado en %s %s", request.method, request.path)
        return {"ok": False, "error": f"Error interno: {error}"}, 500

    logger.info("Aplicación iniciada (datos en %s)", app.config['DATA_DIR'])
    return app
