"""Motor, sesiones e inicialización del esquema."""
import logging
import os
import sqlite3

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker, scoped_session

from models import Base
import schema_objects  # noqa: F401  registra trigger, vistas y procedimientos en Base.metadata
import tournament_logic as logic

logger = logging.getLogger(__name__)

# scoped_session: una sesión por hilo, el app factory la enlaza al motor
Session = scoped_session(sessionmaker())


@event.listens_for(Engine, "connect")
def _activar_claves_foraneas(dbapi_connection, connection_record):
    """SQLite ignora ON DELETE CASCADE / SET NULL si no se activa por conexión."""
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_db_engine(url, **kwargs):
    """Crea el motor; para SQLite en fichero crea antes la carpeta contenedora."""
    url = make_url(url)
    if url.get_backend_name() == 'sqlite' and url.database and url.database != ':memory:':
        carpeta = os.path.dirname(os.path.abspath(url.database))
        os.makedirs(carpeta, exist_ok=True)
    return create_engine(url, **kwargs)


def init_db(engine):
    """Crea tablas, trigger y vistas (y procedimientos en MySQL) y carga los roles."""
    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine)()
    try:
        logic.ensure_roles(session)
    finally:
        session.close()
    logger.info(f"Esquema inicializado en {engine.url.render_as_string(hide_password=True)}")


def drop_db(engine):
    Base.metadata.drop_all(engine)
    logger.info(f"Esquema eliminado en {engine.url.render_as_string(hide_password=True)}")
