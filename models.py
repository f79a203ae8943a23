import enum

from sqlalchemy import (
    Column, Integer, String, Date, Numeric, Text, Enum, ForeignKey, CheckConstraint, PrimaryKeyConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

# Define la base declarativa para SQLAlchemy
Base = declarative_base()


def _valores(enum_cls):
    # Guardamos el valor del enum ('Novice'), no el nombre del miembro (NOVICE)
    return [miembro.value for miembro in enum_cls]


class DebaterLevel(enum.Enum):
    NOVICE = 'Novice'
    VARSITY = 'Varsity'


class JudgeLevel(enum.Enum):
    NOVICE = 'Novice'
    EXPERIENCED = 'Experienced'


class UserRole(enum.Enum):
    """Rol de acceso al sistema (no confundir con el rol de orador)."""
    ORGANIZER = 'Organizer'
    ADMINISTRATOR = 'Administrator'
    JUDGE = 'Judge'


class SpeakingRole(enum.Enum):
    """Las cuatro posiciones de un debate parlamentario APDA."""
    PRIME_MINISTER = 'Prime Minister'
    MEMBER_OF_GOVERNMENT = 'Member of Government'
    LEADER_OF_OPPOSITION = 'Leader of Opposition'
    MEMBER_OF_OPPOSITION = 'Member of Opposition'


def _enum_column(enum_cls, nombre):
    # create_constraint añade un CHECK en motores sin ENUM nativo (SQLite)
    return Enum(enum_cls, name=nombre, values_callable=_valores, create_constraint=True)


class Tournament(Base):
    __tablename__ = 'Tournament'

    tournament_id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    date = Column(Date, nullable=False)

    # Relación 1:N con Round. El borrado en cascada lo hace el motor (ON DELETE CASCADE)
    rounds = relationship("Round", back_populates="tournament", cascade="all, delete-orphan", passive_deletes=True)
    # Solo lectura: las asignaciones se insertan con assign_judge_to_tournament
    users = relationship("User", secondary="Tournament_User", order_by="User.user_id", viewonly=True)

    def __repr__(self):
        return f"<Tournament(id={self.tournament_id}, name='{self.name}', date={self.date})>"


class Round(Base):
    __tablename__ = 'Round'

    round_id = Column(Integer, primary_key=True, autoincrement=True)
    tournament_id = Column(Integer, ForeignKey('Tournament.tournament_id', ondelete='CASCADE'), nullable=False)
    # Sin restricción UNIQUE (tournament_id, round_number): se permiten números repetidos
    round_number = Column(Integer, nullable=False)

    tournament = relationship("Tournament", back_populates="rounds")
    matchups = relationship("Matchup", back_populates="round", cascade="all, delete-orphan", passive_deletes=True)
    performances = relationship("Performance", back_populates="round", cascade="all, delete-orphan", passive_deletes=True)

    def __repr__(self):
        return f"<Round(id={self.round_id}, tournament={self.tournament_id}, number={self.round_number})>"


class Matchup(Base):
    __tablename__ = 'Matchup'

    matchup_id = Column(Integer, primary_key=True, autoincrement=True)
    round_id = Column(Integer, ForeignKey('Round.round_id', ondelete='CASCADE'), nullable=False)

    round = relationship("Round", back_populates="matchups")

    def __repr__(self):
        return f"<Matchup(id={self.matchup_id}, round={self.round_id})>"


class Team(Base):
    __tablename__ = 'Team'

    team_id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)

    # Al borrar el equipo el motor pone team_id a NULL en sus debaters (ON DELETE SET NULL)
    debaters = relationship("Debater", back_populates="team", passive_deletes=True)

    def __repr__(self):
        return f"<Team(id={self.team_id}, name='{self.name}')>"


class Debater(Base):
    __tablename__ = 'Debater'

    debater_id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    experience_level = Column(_enum_column(DebaterLevel, 'debater_experience_level'), nullable=False)
    team_id = Column(Integer, ForeignKey('Team.team_id', ondelete='SET NULL'), nullable=True)

    team = relationship("Team", back_populates="debaters")
    performances = relationship("Performance", back_populates="debater", cascade="all, delete-orphan", passive_deletes=True)

    def __repr__(self):
        return f"<Debater(id={self.debater_id}, name='{self.name}', team={self.team_id})>"


class Role(Base):
    __tablename__ = 'Role'

    role_id = Column(Integer, primary_key=True, autoincrement=True)
    role_name = Column(_enum_column(SpeakingRole, 'speaking_role'), nullable=False)

    def __repr__(self):
        return f"<Role(id={self.role_id}, name='{self.role_name.value}')>"


class Judge(Base):
    __tablename__ = 'Judge'

    judge_id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    experience_level = Column(_enum_column(JudgeLevel, 'judge_experience_level'), nullable=False)

    def __repr__(self):
        return f"<Judge(id={self.judge_id}, name='{self.name}')>"


class Performance(Base):
    __tablename__ = 'Performance'

    performance_id = Column(Integer, primary_key=True, autoincrement=True)
    debater_id = Column(Integer, ForeignKey('Debater.debater_id', ondelete='CASCADE'), nullable=False)
    round_id = Column(Integer, ForeignKey('Round.round_id', ondelete='CASCADE'), nullable=False)

    # Puntuación del orador en la ronda (ej. 26.5)
    speaks = Column(Numeric(3, 1))
    feedback = Column(Text)

    debater = relationship("Debater", back_populates="performances")
    round = relationship("Round", back_populates="performances")

    # El motor hace cumplir DECIMAL(3,1) aunque no tenga tipo decimal nativo (SQLite)
    __table_args__ = (
        CheckConstraint(
            "speaks IS NULL OR (speaks >= 0 AND speaks < 100 AND round(speaks, 1) = speaks)",
            name="ck_performance_speaks",
        ),
    )

    def __repr__(self):
        return f"<Performance(id={self.performance_id}, debater={self.debater_id}, round={self.round_id}, speaks={self.speaks})>"


class User(Base):
    __tablename__ = 'User'

    user_id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    role = Column(_enum_column(UserRole, 'user_role'), nullable=False)

    def __repr__(self):
        return f"<User(id={self.user_id}, name='{self.name}', role='{self.role.value}')>"


class TournamentUser(Base):
    __tablename__ = 'Tournament_User'

    tournament_id = Column(Integer, ForeignKey('Tournament.tournament_id', ondelete='CASCADE'), nullable=False)
    user_id = Column(Integer, ForeignKey('User.user_id', ondelete='CASCADE'), nullable=False)

    # Clave primaria compuesta: un usuario aparece una sola vez por torneo
    __table_args__ = (PrimaryKeyConstraint('tournament_id', 'user_id'),)

    def __repr__(self):
        return f"<TournamentUser(tournament={self.tournament_id}, user={self.user_id})>"
