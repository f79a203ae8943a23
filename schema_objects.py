"""Objetos del lado del motor: trigger, vistas y procedimientos almacenados.

Se enganchan a los eventos ``after_create`` / ``before_drop`` de
``Base.metadata``, así que ``create_all()`` y ``drop_all()`` los crean y
eliminan junto con las tablas. Todas las sentencias son idempotentes para que
``init_db`` se pueda ejecutar sobre una base ya inicializada.

Trigger, vistas y procedimientos solo existen en SQLite y MySQL; en el resto de
motores se crean únicamente las tablas.
"""
from sqlalchemy import DDL, Column, Integer, String, Date, Numeric, MetaData, Table, event

from models import Base

DUPLICATE_ASSIGNMENT_MESSAGE = 'Duplicate entry: user is already assigned to this tournament'
TRIGGER_NAME = 'prevent_duplicate_tournament_user'


def _sqlite_o_mysql(ddl, target, bind, **kw):
    return bind.dialect.name in ('sqlite', 'mysql')


# ==============================================================================
# 1. TRIGGER ANTI-DUPLICADOS EN Tournament_User
# ==============================================================================

_TRIGGER_SQLITE = DDL(f"""
CREATE TRIGGER IF NOT EXISTS {TRIGGER_NAME}
BEFORE INSERT ON Tournament_User
FOR EACH ROW
WHEN EXISTS (
    SELECT 1 FROM Tournament_User
    WHERE tournament_id = NEW.tournament_id AND user_id = NEW.user_id
)
BEGIN
    SELECT RAISE(ABORT, '{DUPLICATE_ASSIGNMENT_MESSAGE}');
END
""")

_TRIGGER_MYSQL = DDL(f"""
CREATE TRIGGER {TRIGGER_NAME}
BEFORE INSERT ON Tournament_User
FOR EACH ROW
BEGIN
    IF EXISTS (
        SELECT 1 FROM Tournament_User
        WHERE tournament_id = NEW.tournament_id AND user_id = NEW.user_id
    ) THEN
        SIGNAL SQLSTATE '45000' SET MESSAGE_TEXT = '{DUPLICATE_ASSIGNMENT_MESSAGE}';
    END IF;
END
""")

# ==============================================================================
# 2. VISTAS
# ==============================================================================

_SELECT_TOURNAMENT_DETAILS = """
SELECT t.tournament_id, t.name, t.date, COUNT(r.round_id) AS NumberOfRounds
FROM Tournament t
LEFT JOIN Round r ON r.tournament_id = t.tournament_id
GROUP BY t.tournament_id, t.name, t.date
"""

# Inner joins: un debater sin actuaciones en un torneo no genera fila
_SELECT_DEBATER_OVERVIEW = """
SELECT d.debater_id, d.name AS DebaterName,
       t.tournament_id, t.name AS TournamentName,
       AVG(p.speaks) AS AvgSpeaks
FROM Debater d
JOIN Performance p ON p.debater_id = d.debater_id
JOIN Round r ON r.round_id = p.round_id
JOIN Tournament t ON t.tournament_id = r.tournament_id
GROUP BY d.debater_id, d.name, t.tournament_id, t.name
"""


def _crear_vista(nombre, consulta):
    # SQLite no tiene CREATE OR REPLACE VIEW; MySQL no tiene CREATE VIEW IF NOT EXISTS.
    # Los identificadores van sin comillas: en otros motores las vistas no se crean.
    return [
        DDL(f"CREATE VIEW IF NOT EXISTS {nombre} AS {consulta}").execute_if(dialect='sqlite'),
        DDL(f"CREATE OR REPLACE VIEW {nombre} AS {consulta}").execute_if(dialect='mysql'),
    ]


# Las vistas viven en su propio MetaData: create_all() no debe crearlas como tablas,
# pero así se pueden consultar con select().
view_metadata = MetaData()

tournament_details_view = Table(
    'TournamentDetails', view_metadata,
    Column('tournament_id', Integer, primary_key=True),
    Column('name', String(255)),
    Column('date', Date),
    Column('NumberOfRounds', Integer),
)

debater_performance_view = Table(
    'DebaterPerformanceOverview', view_metadata,
    Column('debater_id', Integer, primary_key=True),
    Column('DebaterName', String(255)),
    Column('tournament_id', Integer, primary_key=True),
    Column('TournamentName', String(255)),
    Column('AvgSpeaks', Numeric(asdecimal=False)),
)

# ==============================================================================
# 3. PROCEDIMIENTOS ALMACENADOS (solo MySQL; en Python ver tournament_logic)
# ==============================================================================

_PROC_ADD_TOURNAMENT = DDL("""
CREATE PROCEDURE AddTournament(IN p_name VARCHAR(255), IN p_date DATE)
BEGIN
    INSERT INTO Tournament (name, date) VALUES (p_name, p_date);
END
""")

_PROC_ASSIGN_JUDGE = DDL("""
CREATE PROCEDURE AssignJudgeToTournament(IN p_judge_id INT, IN p_tournament_id INT)
BEGIN
    INSERT INTO Tournament_User (tournament_id, user_id) VALUES (p_tournament_id, p_judge_id);
END
""")

# ==============================================================================
# 4. REGISTRO EN LOS EVENTOS DEL METADATA
# ==============================================================================

_CREAR = [
    _TRIGGER_SQLITE.execute_if(dialect='sqlite'),
    DDL(f'DROP TRIGGER IF EXISTS {TRIGGER_NAME}').execute_if(dialect='mysql'),
    _TRIGGER_MYSQL.execute_if(dialect='mysql'),
    *_crear_vista('TournamentDetails', _SELECT_TOURNAMENT_DETAILS),
    *_crear_vista('DebaterPerformanceOverview', _SELECT_DEBATER_OVERVIEW),
    DDL('DROP PROCEDURE IF EXISTS AddTournament').execute_if(dialect='mysql'),
    _PROC_ADD_TOURNAMENT.execute_if(dialect='mysql'),
    DDL('DROP PROCEDURE IF EXISTS AssignJudgeToTournament').execute_if(dialect='mysql'),
    _PROC_ASSIGN_JUDGE.execute_if(dialect='mysql'),
]

_ELIMINAR = [
    DDL('DROP PROCEDURE IF EXISTS AssignJudgeToTournament').execute_if(dialect='mysql'),
    DDL('DROP PROCEDURE IF EXISTS AddTournament').execute_if(dialect='mysql'),
    DDL('DROP VIEW IF EXISTS DebaterPerformanceOverview').execute_if(callable_=_sqlite_o_mysql),
    DDL('DROP VIEW IF EXISTS TournamentDetails').execute_if(callable_=_sqlite_o_mysql),
    DDL(f'DROP TRIGGER IF EXISTS {TRIGGER_NAME}').execute_if(callable_=_sqlite_o_mysql),
]

for _ddl in _CREAR:
    event.listen(Base.metadata, 'after_create', _ddl)

for _ddl in _ELIMINAR:
    event.listen(Base.metadata, 'before_drop', _ddl)
