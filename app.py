import logging

import click
from flask import Flask
from sqlalchemy.exc import IntegrityError

from config import Config
from database import Session, create_db_engine, init_db, drop_db
import tournament_logic as logic # Importamos nuestra lógica de negocio


def create_app(config_object=None):
    """
    Función factoría para crear y configurar la aplicación Flask.
    La aplicación no sirve rutas: solo guarda la configuración, el motor
    de base de datos y los comandos 'flask' para gestionar el esquema.
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if isinstance(config_object, dict):
        app.config.from_mapping(config_object)
    elif config_object is not None:
        app.config.from_object(config_object)

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    # 1. Creación del motor; el esquema lo crea el comando init-db
    engine = create_db_engine(app.config['DATABASE_URL'])
    app.extensions['db_engine'] = engine

    # 2. La sesión global pasa a apuntar a este motor
    Session.remove()
    Session.configure(bind=engine)

    @app.teardown_appcontext
    def remove_session(exception=None):
        """Cierra la sesión de SQLAlchemy al final del contexto de aplicación."""
        Session.remove()

    register_commands(app)
    return app


def _ejecutar(operacion, *args, **kwargs):
    # Las violaciones de restricciones se muestran como mensaje, no como traza
    try:
        return operacion(Session(), *args, **kwargs)
    except IntegrityError as e:
        raise click.ClickException(str(e.orig))


# --- COMANDOS DE LA APLICACIÓN ---

def register_commands(app):

    @app.cli.command('init-db')
    def init_db_command():
        """Crea tablas, trigger y vistas si no existen."""
        init_db(app.extensions['db_engine'])
        click.echo('Base de datos inicializada.')

    @app.cli.command('drop-db')
    @click.confirmation_option(prompt='¿Seguro que quieres borrar todas las tablas?')
    def drop_db_command():
        """Elimina tablas, trigger y vistas."""
        Session.remove()
        drop_db(app.extensions['db_engine'])
        click.echo('Base de datos eliminada.')

    @app.cli.command('seed')
    def seed_command():
        """Carga un torneo de ejemplo completo."""
        torneo = _ejecutar(logic.load_sample_data)
        click.echo(f'Datos de ejemplo cargados en el torneo "{torneo.name}" (id {torneo.tournament_id}).')

    @app.cli.command('add-tournament')
    @click.argument('name')
    @click.argument('date', type=click.DateTime(formats=['%Y-%m-%d']))
    def add_tournament_command(name, date):
        """Equivalente a AddTournament(NAME, DATE)."""
        torneo = _ejecutar(logic.add_tournament, name, date.date())
        click.echo(f'Torneo "{torneo.name}" creado con id {torneo.tournament_id}.')

    @app.cli.command('assign-judge')
    @click.argument('judge_id', type=int)
    @click.argument('tournament_id', type=int)
    def assign_judge_command(judge_id, tournament_id):
        """Equivalente a AssignJudgeToTournament(JUDGE_ID, TOURNAMENT_ID)."""
        _ejecutar(logic.assign_judge_to_tournament, judge_id, tournament_id)
        click.echo(f'Usuario {judge_id} asignado al torneo {tournament_id}.')

    @app.cli.command('delete-tournament')
    @click.argument('tournament_id', type=int)
    def delete_tournament_command(tournament_id):
        """Borra un torneo y todo lo que cuelga de él."""
        if not _ejecutar(logic.delete_tournament, tournament_id):
            raise click.ClickException(f"Torneo {tournament_id} no encontrado.")
        click.echo(f'Torneo {tournament_id} eliminado.')

    @app.cli.command('tournament-details')
    def tournament_details_command():
        """Muestra la vista TournamentDetails."""
        filas = logic.tournament_details(Session())
        if not filas:
            click.echo('No hay torneos.')
        for fila in filas:
            click.echo(f'{fila.tournament_id}\t{fila.name}\t{fila.date}\trondas: {fila.NumberOfRounds}')

    @app.cli.command('debater-overview')
    @click.option('--tournament-id', type=int, default=None, help='Filtra por torneo.')
    def debater_overview_command(tournament_id):
        """Muestra la vista DebaterPerformanceOverview."""
        filas = logic.debater_performance_overview(Session(), tournament_id)
        if not filas:
            click.echo('No hay actuaciones registradas.')
        for fila in filas:
            # AvgSpeaks es NULL si ninguna actuación del debater tiene speaks
            media = '-' if fila.AvgSpeaks is None else f'{fila.AvgSpeaks:.2f}'
            click.echo(f'{fila.TournamentName}\t{fila.DebaterName}\tmedia: {media}')
