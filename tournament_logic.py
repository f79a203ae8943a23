import datetime
import logging
from contextlib import contextmanager
from decimal import Decimal

from sqlalchemy import delete, insert, select
from sqlalchemy.exc import SQLAlchemyError

from models import (
    Tournament, Round, Matchup, Team, Debater, Role, Judge, Performance, User, TournamentUser,
    DebaterLevel, JudgeLevel, UserRole, SpeakingRole,
)
from schema_objects import tournament_details_view, debater_performance_view

logger = logging.getLogger(__name__)


@contextmanager
def _transaccion(session, accion):
    """Confirma la operación o deshace la sesión y propaga el error del motor."""
    try:
        yield
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"{accion} falló: {e}")
        raise
    logger.info(f"{accion} confirmado")


def _como_fecha(valor):
    if isinstance(valor, str):
        return datetime.date.fromisoformat(valor)
    return valor


# ==============================================================================
# 1. PROCEDIMIENTOS: AddTournament / AssignJudgeToTournament
# ==============================================================================

def add_tournament(session, name, date):
    """
    Inserta un torneo nuevo. 'date' puede ser un datetime.date o 'YYYY-MM-DD'.
    Retorna el objeto Tournament con su id ya asignado.
    """
    nuevo_torneo = Tournament(name=name, date=_como_fecha(date))
    with _transaccion(session, f"AddTournament({name!r}, {date})"):
        session.add(nuevo_torneo)
    return nuevo_torneo


def assign_judge_to_tournament(session, judge_id, tournament_id):
    """
    Asocia un usuario (juez) a un torneo en Tournament_User.

    No comprueba que el usuario tenga rol Judge. Si alguno de los ids no existe
    falla la clave foránea; si el par ya existe lo rechaza el trigger.
    """
    # INSERT directo, igual que el procedimiento almacenado
    with _transaccion(session, f"AssignJudgeToTournament({judge_id}, {tournament_id})"):
        session.execute(insert(TournamentUser).values(tournament_id=tournament_id, user_id=judge_id))


# ==============================================================================
# 2. ALTAS DEL RESTO DE ENTIDADES
# ==============================================================================

def add_round(session, tournament_id, round_number):
    ronda = Round(tournament_id=tournament_id, round_number=round_number)
    with _transaccion(session, f"Alta de ronda {round_number} en torneo {tournament_id}"):
        session.add(ronda)
    return ronda


def add_matchup(session, round_id):
    matchup = Matchup(round_id=round_id)
    with _transaccion(session, f"Alta de matchup en ronda {round_id}"):
        session.add(matchup)
    return matchup


def add_team(session, name):
    equipo = Team(name=name)
    with _transaccion(session, f"Alta de equipo {name!r}"):
        session.add(equipo)
    return equipo


def add_debater(session, name, experience_level, team_id=None):
    debater = Debater(name=name, experience_level=DebaterLevel(experience_level), team_id=team_id)
    with _transaccion(session, f"Alta de debater {name!r}"):
        session.add(debater)
    return debater


def add_judge(session, name, experience_level):
    juez = Judge(name=name, experience_level=JudgeLevel(experience_level))
    with _transaccion(session, f"Alta de juez {name!r}"):
        session.add(juez)
    return juez


def add_user(session, name, role):
    usuario = User(name=name, role=UserRole(role))
    with _transaccion(session, f"Alta de usuario {name!r} ({usuario.role.value})"):
        session.add(usuario)
    return usuario


def record_performance(session, debater_id, round_id, speaks=None, feedback=None):
    """
    Registra la actuación puntuada de un debater en una ronda.
    El motor rechaza speaks fuera de DECIMAL(3,1): negativos, 100 o más, o con dos decimales.
    """
    if speaks is not None and not isinstance(speaks, Decimal):
        speaks = Decimal(str(speaks))
    actuacion = Performance(debater_id=debater_id, round_id=round_id, speaks=speaks, feedback=feedback)
    with _transaccion(session, f"Actuación de debater {debater_id} en ronda {round_id}"):
        session.add(actuacion)
    return actuacion


def ensure_roles(session):
    """Carga las cuatro posiciones de orador si faltan. Idempotente."""
    existentes = {rol.role_name for rol in session.query(Role).all()}
    faltantes = [Role(role_name=rol) for rol in SpeakingRole if rol not in existentes]
    if not faltantes:
        return 0
    with _transaccion(session, f"Carga de {len(faltantes)} roles de orador"):
        session.add_all(faltantes)
    return len(faltantes)


# ==============================================================================
# 3. BORRADOS (el motor propaga las cascadas)
# ==============================================================================

def _borrar(session, modelo, columna, identificador):
    # DELETE masivo: las cascadas y SET NULL las aplica el motor, no el ORM
    with _transaccion(session, f"Borrado de {modelo.__tablename__} {identificador}"):
        resultado = session.execute(delete(modelo).where(columna == identificador))
    return resultado.rowcount > 0


def delete_tournament(session, tournament_id):
    """Borra el torneo con sus rondas, matchups, actuaciones y asignaciones."""
    return _borrar(session, Tournament, Tournament.tournament_id, tournament_id)


def delete_round(session, round_id):
    return _borrar(session, Round, Round.round_id, round_id)


def delete_team(session, team_id):
    """Borra el equipo; sus debaters quedan sin equipo (team_id NULL)."""
    return _borrar(session, Team, Team.team_id, team_id)


def delete_debater(session, debater_id):
    return _borrar(session, Debater, Debater.debater_id, debater_id)


# ==============================================================================
# 4. CONSULTAS
# ==============================================================================

def tournament_details(session):
    """Filas de la vista TournamentDetails, una por torneo, ordenadas por id."""
    vista = tournament_details_view
    return session.execute(select(vista).order_by(vista.c.tournament_id)).all()


def debater_performance_overview(session, tournament_id=None):
    """Media de speaks por (debater, torneo) desde la vista DebaterPerformanceOverview."""
    vista = debater_performance_view
    consulta = select(vista).order_by(vista.c.tournament_id, vista.c.debater_id)
    if tournament_id is not None:
        consulta = consulta.where(vista.c.tournament_id == tournament_id)
    return session.execute(consulta).all()


def rounds_for_tournament(session, tournament_id):
    return session.query(Round).filter(
        Round.tournament_id == tournament_id
    ).order_by(Round.round_number, Round.round_id).all()


def debaters_with_teams(session):
    """Debaters con el nombre de su equipo (None si no tienen)."""
    return session.query(
        Debater.debater_id,
        Debater.name,
        Debater.experience_level,
        Team.name.label('team_name'),
    ).outerjoin(Team, Debater.team_id == Team.team_id).order_by(Debater.debater_id).all()


def performances_for_round(session, round_id):
    return session.query(
        Performance.performance_id,
        Debater.name.label('debater_name'),
        Performance.speaks,
        Performance.feedback,
    ).join(Debater, Performance.debater_id == Debater.debater_id).filter(
        Performance.round_id == round_id
    ).order_by(Performance.performance_id).all()


def users_for_tournament(session, tournament_id):
    """Usuarios asignados al torneo; lista vacía si el torneo no existe."""
    torneo = session.get(Tournament, tournament_id)
    if not torneo:
        return []
    return list(torneo.users)


# ==============================================================================
# 5. DATOS DE EJEMPLO
# ==============================================================================

def load_sample_data(session):
    """
    Carga un torneo de ejemplo completo: equipos, debaters, jueces, usuarios,
    dos rondas con su matchup, actuaciones y la asignación de un juez.
    Retorna el torneo creado.
    """
    ensure_roles(session)
    torneo = add_tournament(session, 'Test Cup', '2025-05-01')

    yale = add_team(session, 'Yale AB')
    brown = add_team(session, 'Brown CD')
    debaters = [
        add_debater(session, 'Alice Moreno', 'Varsity', yale.team_id),
        add_debater(session, 'Ben Ortiz', 'Novice', yale.team_id),
        add_debater(session, 'Carla Diaz', 'Varsity', brown.team_id),
        add_debater(session, 'Dan Reyes', 'Novice', brown.team_id),
    ]

    add_judge(session, 'Helen Park', 'Experienced')
    add_judge(session, 'Ivan Cruz', 'Novice')

    add_user(session, 'Olivia Grant', 'Organizer')
    add_user(session, 'Adam Lowe', 'Administrator')
    juez = add_user(session, 'Helen Park', 'Judge')

    speaks = {1: ['26.5', '25.0', '27.0', '24.5'], 2: ['27.5', '25.5', '26.0', '25.0']}
    for numero, puntuaciones in speaks.items():
        ronda = add_round(session, torneo.tournament_id, numero)
        add_matchup(session, ronda.round_id)
        for debater, puntuacion in zip(debaters, puntuaciones):
            record_performance(session, debater.debater_id, ronda.round_id, puntuacion)

    assign_judge_to_tournament(session, juez.user_id, torneo.tournament_id)
    return torneo
