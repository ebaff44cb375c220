# ==============================================================================
# WSGI Entry Point - Para Gunicorn en producción
# ==============================================================================
# USO:
#   gunicorn wsgi:app --bind 0.0.0.0:$PORT --workers 1 --threads 4
#
#   Un solo worker: las instantáneas por usuario, las suscripciones del
#   almacén y su lock viven en memoria de ese proceso. Con varios workers
#   cada uno vería su propia copia y las escrituras podrían pisarse.
#   Para concurrencia usar --threads.
#
# ESTRUCTURA DEL PROYECTO:
#   repo_root/             <- Directorio de trabajo (en sys.path automáticamente)
#   ├── wsgi.py            <- Este archivo
#   ├── pyproject.toml
#   └── inventario_app/    <- Paquete Python
#       ├── main.py
#       ├── services/
#       └── repositories/
# ==============================================================================

from inventario_app.main import create_app

app = create_app()

# Para desarrollo local:
#   python wsgi.py
if __name__ == '__main__':
    app.run(debug=True, host='0.0.0.0', port=5000)
