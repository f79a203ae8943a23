"""Procedimientos, trigger anti-duplicados, vistas y consultas."""

import datetime

import pytest
from sqlalchemy import create_mock_engine, inspect, text
from sqlalchemy.exc import IntegrityError

import tournament_logic as logic
from database import drop_db, init_db
from models import Base, Tournament, TournamentUser, UserRole
from schema_objects import DUPLICATE_ASSIGNMENT_MESSAGE


# ==============================================================================
# AddTournament
# ==============================================================================

def test_add_tournament_next_to_direct_insert(session):
    session.add(Tournament(name='Test Cup', date=datetime.date(2025, 5, 1)))
    session.commit()

    nuevo = logic.add_tournament(session, 'Test Cup 2', '2025-06-01')

    torneos = session.query(Tournament).order_by(Tournament.tournament_id).all()
    assert [(t.name, t.date) for t in torneos] == [
        ('Test Cup', datetime.date(2025, 5, 1)),
        ('Test Cup 2', datetime.date(2025, 6, 1)),
    ]
    assert torneos[0].tournament_id != torneos[1].tournament_id
    assert nuevo.tournament_id == torneos[1].tournament_id


def test_add_tournament_accepts_date_objects(session):
    torneo = logic.add_tournament(session, 'Spring Open', datetime.date(2025, 3, 8))
    assert torneo.date == datetime.date(2025, 3, 8)


def test_add_tournament_rejects_malformed_date(session):
    with pytest.raises(ValueError):
        logic.add_tournament(session, 'Spring Open', '2025-13-45')


# ==============================================================================
# AssignJudgeToTournament y trigger
# ==============================================================================

def test_assign_judge_twice_fails(session, tournament):
    for i in range(5):
        usuario = logic.add_user(session, f'Usuario {i + 1}', 'Judge')
    assert usuario.user_id == 5
    assert tournament.tournament_id == 1

    logic.assign_judge_to_tournament(session, 5, 1)
    with pytest.raises(IntegrityError) as excinfo:
        logic.assign_judge_to_tournament(session, 5, 1)

    assert DUPLICATE_ASSIGNMENT_MESSAGE in str(excinfo.value)
    assert session.query(TournamentUser).count() == 1


def test_direct_duplicate_insert_is_blocked_by_trigger(session, tournament):
    usuario = logic.add_user(session, 'Helen Park', 'Judge')
    insercion = text('INSERT INTO Tournament_User (tournament_id, user_id) VALUES (:t, :u)')
    parametros = {'t': tournament.tournament_id, 'u': usuario.user_id}
    session.execute(insercion, parametros)
    session.commit()

    with pytest.raises(IntegrityError) as excinfo:
        session.execute(insercion, parametros)
    session.rollback()

    assert DUPLICATE_ASSIGNMENT_MESSAGE in str(excinfo.value)


def test_primary_key_still_blocks_duplicates_without_trigger(session, tournament):
    usuario = logic.add_user(session, 'Helen Park', 'Judge')
    session.execute(text('DROP TRIGGER prevent_duplicate_tournament_user'))
    session.commit()

    logic.assign_judge_to_tournament(session, usuario.user_id, tournament.tournament_id)
    with pytest.raises(IntegrityError) as excinfo:
        logic.assign_judge_to_tournament(session, usuario.user_id, tournament.tournament_id)

    assert 'UNIQUE' in str(excinfo.value)


def test_assign_judge_requires_existing_rows(session, tournament):
    with pytest.raises(IntegrityError):
        logic.assign_judge_to_tournament(session, 42, tournament.tournament_id)

    usuario = logic.add_user(session, 'Helen Park', 'Judge')
    with pytest.raises(IntegrityError):
        logic.assign_judge_to_tournament(session, usuario.user_id, 42)

    assert session.query(TournamentUser).count() == 0


def test_assign_judge_does_not_check_user_role(session, tournament):
    organizador = logic.add_user(session, 'Olivia Grant', 'Organizer')
    logic.assign_judge_to_tournament(session, organizador.user_id, tournament.tournament_id)

    usuarios = logic.users_for_tournament(session, tournament.tournament_id)
    assert [u.role for u in usuarios] == [UserRole.ORGANIZER]


def test_same_user_in_two_tournaments(session, tournament):
    otro = logic.add_tournament(session, 'Test Cup 2', '2025-06-01')
    usuario = logic.add_user(session, 'Helen Park', 'Judge')

    logic.assign_judge_to_tournament(session, usuario.user_id, tournament.tournament_id)
    logic.assign_judge_to_tournament(session, usuario.user_id, otro.tournament_id)

    assert session.query(TournamentUser).count() == 2


# ==============================================================================
# Vistas
# ==============================================================================

def test_tournament_details_one_row_per_tournament(session, tournament):
    vacio = logic.add_tournament(session, 'Empty Invitational', '2025-07-01')
    for numero in (1, 2, 3):
        logic.add_round(session, tournament.tournament_id, numero)

    filas = logic.tournament_details(session)

    assert len(filas) == session.query(Tournament).count()
    rondas = {fila.tournament_id: fila.NumberOfRounds for fila in filas}
    assert rondas == {tournament.tournament_id: 3, vacio.tournament_id: 0}
    assert filas[0].name == 'Test Cup'
    assert filas[0].date == datetime.date(2025, 5, 1)


def test_tournament_details_empty_database(session):
    assert logic.tournament_details(session) == []


def test_debater_overview_is_mean_per_tournament(session, tournament):
    otro = logic.add_tournament(session, 'Test Cup 2', '2025-06-01')
    alice = logic.add_debater(session, 'Alice Moreno', 'Varsity')
    sin_actuaciones = logic.add_debater(session, 'Ben Ortiz', 'Novice')

    for numero, speaks in enumerate(['26.5', '25.0', '27.0'], start=1):
        ronda = logic.add_round(session, tournament.tournament_id, numero)
        logic.record_performance(session, alice.debater_id, ronda.round_id, speaks)
    ronda_otro = logic.add_round(session, otro.tournament_id, 1)
    logic.record_performance(session, alice.debater_id, ronda_otro.round_id, '24.0')

    filas = logic.debater_performance_overview(session)

    assert [(f.debater_id, f.tournament_id) for f in filas] == [
        (alice.debater_id, tournament.tournament_id),
        (alice.debater_id, otro.tournament_id),
    ]
    assert filas[0].AvgSpeaks == pytest.approx((26.5 + 25.0 + 27.0) / 3)
    assert filas[1].AvgSpeaks == pytest.approx(24.0)
    assert filas[0].DebaterName == 'Alice Moreno'
    assert filas[0].TournamentName == 'Test Cup'
    assert sin_actuaciones.debater_id not in {f.debater_id for f in filas}


def test_debater_overview_filtered_by_tournament(session, tournament):
    otro = logic.add_tournament(session, 'Test Cup 2', '2025-06-01')
    debater = logic.add_debater(session, 'Carla Diaz', 'Varsity')
    for torneo in (tournament, otro):
        ronda = logic.add_round(session, torneo.tournament_id, 1)
        logic.record_performance(session, debater.debater_id, ronda.round_id, '26.0')

    filas = logic.debater_performance_overview(session, tournament_id=otro.tournament_id)

    assert len(filas) == 1
    assert filas[0].TournamentName == 'Test Cup 2'


def test_views_follow_cascading_deletes(session, tournament):
    debater = logic.add_debater(session, 'Dan Reyes', 'Novice')
    ronda = logic.add_round(session, tournament.tournament_id, 1)
    logic.record_performance(session, debater.debater_id, ronda.round_id, '25.5')

    logic.delete_tournament(session, tournament.tournament_id)

    assert logic.tournament_details(session) == []
    assert logic.debater_performance_overview(session) == []


# ==============================================================================
# Consultas simples
# ==============================================================================

def test_debaters_with_teams_uses_left_join(session):
    equipo = logic.add_team(session, 'Brown CD')
    logic.add_debater(session, 'Carla Diaz', 'Varsity', equipo.team_id)
    logic.add_debater(session, 'Zoe Vidal', 'Novice')

    filas = logic.debaters_with_teams(session)

    assert [(f.name, f.team_name) for f in filas] == [('Carla Diaz', 'Brown CD'), ('Zoe Vidal', None)]


def test_performances_for_round(session, tournament):
    ronda = logic.add_round(session, tournament.tournament_id, 1)
    debater = logic.add_debater(session, 'Alice Moreno', 'Varsity')
    logic.record_performance(session, debater.debater_id, ronda.round_id, '27.5', 'Excelente refutación')

    filas = logic.performances_for_round(session, ronda.round_id)

    assert len(filas) == 1
    assert filas[0].debater_name == 'Alice Moreno'
    assert filas[0].feedback == 'Excelente refutación'


def test_rounds_for_tournament_sorted_by_number(session, tournament):
    for numero in (3, 1, 2):
        logic.add_round(session, tournament.tournament_id, numero)
    assert [r.round_number for r in logic.rounds_for_tournament(session, tournament.tournament_id)] == [1, 2, 3]


# ==============================================================================
# Datos de ejemplo e inicialización
# ==============================================================================

def test_load_sample_data(session):
    torneo = logic.load_sample_data(session)

    detalle = logic.tournament_details(session)
    assert [(f.name, f.NumberOfRounds) for f in detalle] == [('Test Cup', 2)]

    resumen = logic.debater_performance_overview(session, torneo.tournament_id)
    medias = {f.DebaterName: f.AvgSpeaks for f in resumen}
    assert medias['Alice Moreno'] == pytest.approx(27.0)
    assert medias['Dan Reyes'] == pytest.approx(24.75)

    jueces = logic.users_for_tournament(session, torneo.tournament_id)
    assert [u.name for u in jueces] == ['Helen Park']


def test_init_db_is_idempotent(engine, session):
    logic.add_tournament(session, 'Test Cup', '2025-05-01')
    init_db(engine)
    assert len(logic.tournament_details(session)) == 1


def test_drop_db_removes_tables_and_views(engine):
    drop_db(engine)
    inspector = inspect(engine)
    assert inspector.get_table_names() == []
    assert inspector.get_view_names() == []


def test_users_for_unknown_tournament_is_empty(session):
    assert logic.users_for_tournament(session, 404) == []


def _ddl_emitido(url):
    sentencias = []

    def ejecutor(sql, *multiparams, **params):
        sentencias.append(str(sql.compile(dialect=motor.dialect)))

    motor = create_mock_engine(url, ejecutor)
    Base.metadata.create_all(motor, checkfirst=False)
    return '\n'.join(sentencias)


def test_mysql_gets_views_trigger_and_procedures():
    ddl = _ddl_emitido('mysql+pymysql://')

    assert 'CREATE OR REPLACE VIEW TournamentDetails' in ddl
    assert 'CREATE OR REPLACE VIEW DebaterPerformanceOverview' in ddl
    assert "SIGNAL SQLSTATE '45000'" in ddl
    assert 'CREATE PROCEDURE AddTournament' in ddl
    assert 'CREATE PROCEDURE AssignJudgeToTournament' in ddl


def test_other_engines_only_get_tables():
    ddl = _ddl_emitido('postgresql+psycopg2://')

    assert 'CREATE TABLE "Tournament_User"' in ddl
    assert 'VIEW' not in ddl
    assert 'TRIGGER' not in ddl
    assert 'PROCEDURE' not in ddl
