import os

# Directorio base del proyecto; la base SQLite por defecto vive en 'instance/'
BASE_DIR = os.path.abspath(os.path.dirname(__file__))
INSTANCE_DIR = os.path.join(BASE_DIR, 'instance')


class Config:
    """Configuración por defecto, sobreescribible con variables de entorno."""

    DATABASE_URL = os.environ.get(
        'DATABASE_URL', f"sqlite:///{os.path.join(INSTANCE_DIR, 'debate.db')}"
    )
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    # Flask la exige aunque no haya sesiones web
    SECRET_KEY = os.environ.get('SECRET_KEY', 'cambia_esta_clave_en_produccion')
