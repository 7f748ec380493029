"""
Utility helpers for running the team example end-to-end.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from keelorm.adapters import ConnectionConfig, SQLiteAdapter
from keelorm.persistence import Session
from keelorm.schema import SchemaBuilder

from .models import IdMember, Member, Team

MODELS = (Team, IdMember, Member)


@dataclass(frozen=True)
class MemberWithTeamInfo:
    member_name: str
    team_name: str


def bootstrap_session(dsn: str = "sqlite:///:memory:", **session_options) -> Session:
    """
    Create a SQLite-backed session and ensure the team schema exists.
    """

    session = Session(SQLiteAdapter(), connection_config=ConnectionConfig.from_dsn(dsn), **session_options)
    SchemaBuilder(session.dialect).create_tables(session.store, MODELS)
    return session


def member_with_team_info(session: Session, member_id: int) -> Optional[MemberWithTeamInfo]:
    """
    Assemble a member and its team name from two lookups by key.
    """

    member = session.find(IdMember, member_id)
    if member is None:
        return None
    team = session.find(Team, member.team_id) if member.team_id is not None else None
    return MemberWithTeamInfo(member.username, team.name if team is not None else "")


def members_of_team(session: Session, team_name: str) -> List[Tuple]:
    """
    Join members to teams with a native statement; rows come back as tuples.
    """

    return session.query(
        'SELECT m."member_id", m."username", t."team_id", t."name" '
        'FROM "id_member" m JOIN "team" t ON m."team_id" = t."team_id" '
        'WHERE t."name" = :team_name ORDER BY m."member_id"',
        {"team_name": team_name},
    )


def team_roster(session: Session, team_id: int) -> List[Member]:
    """
    Members of one team, found by filtering across the lazy reference.
    """

    return session.query(Member).filter(team__team_id=team_id).order_by("member_id").all()


def reassign(session: Session, member: Member, team: Team) -> None:
    member.team = team
    session.flush()


def seed_sample_data(session: Session) -> List[Team]:
    teams = [Team(name="Team A"), Team(name="Team B")]
    session.persist(*teams)
    for index in range(1, 6):
        session.persist(Member(username=f"member{index}", team=teams[0] if index <= 3 else teams[1]))
    session.flush()
    return teams


def run_demo(dsn: str = "sqlite:///:memory:") -> List[str]:
    """
    Seed the database and render one line per member, fetched with a join.
    """

    session = bootstrap_session(dsn)
    try:
        seed_sample_data(session)
        session.clear()
        members = session.query(Member).select_related("team").order_by("member_id")
        return [f"{member.username} - {member.team.name}" for member in members]
    finally:
        session.close()


if __name__ == "__main__":
    for line in run_demo():
        print(line)
