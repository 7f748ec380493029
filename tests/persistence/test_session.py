import pytest

from examples.hr_app.models import Location
from examples.team_app import bootstrap_session
from examples.team_app.models import IdMember, Member, Team
from keelorm.core import EntityState, InvalidKeyError, ManyToOne, Model
from keelorm.errors import (
    DanglingReferenceError,
    IdentityConflictError,
    PersistenceError,
    SessionClosedError,
    StaleReferenceError,
    StoreConstraintError,
    TransientReferenceError,
)


class LooseMember(Model):
    class Meta:
        table = "loose_member"

    team = ManyToOne(Team, db_constraint=False)


def _count(session, table):
    return session.query(f'SELECT COUNT(*) FROM "{table}"')[0][0]


def test_find_returns_cached_instance_with_one_fetch(team_session):
    team = Team(name="DevTeam")
    team_session.persist(team)
    team_session.flush()
    team_session.clear()
    team_session.stats.reset()

    first = team_session.find(Team, team.team_id)
    second = team_session.find(Team, team.team_id)
    assert first is second
    assert first.name == "DevTeam"
    assert team_session.stats.fetches == 1


def test_find_after_persist_needs_no_fetch(team_session):
    team = Team(name="DevTeam")
    team_session.persist(team)
    team_session.flush()
    team_session.stats.reset()
    assert team_session.find(Team, team.team_id) is team
    assert team_session.stats.round_trips == 0


def test_find_missing_row_returns_none(team_session):
    assert team_session.find(Team, 404) is None


def test_find_requires_complete_key(team_session):
    with pytest.raises(InvalidKeyError):
        team_session.find(Team)


def test_clear_forces_refetch_and_detaches(team_session):
    team = Team(name="DevTeam")
    team_session.persist(team)
    team_session.flush()
    team_session.clear()
    team_session.stats.reset()

    reloaded = team_session.find(Team, team.team_id)
    assert reloaded is not team
    assert team_session.stats.fetches == 1
    assert team.state is EntityState.DETACHED
    assert team.name == "DevTeam"
    with pytest.raises(StaleReferenceError):
        team.name = "Renamed"
    with pytest.raises(StaleReferenceError):
        team_session.persist(team)


def test_id_reference_round_trip(team_session):
    team = Team(name="DevTeam")
    team_session.persist(team)
    team_session.flush()
    alice = IdMember(username="Alice", team_id=team.team_id)
    team_session.persist(alice)
    team_session.flush()
    team_session.clear()

    loaded = team_session.find(IdMember, alice.member_id)
    assert loaded.team_id == team.team_id


def test_lazy_reference_fetches_target_once(team_session):
    t1, t2 = Team(name="T1"), Team(name="T2")
    team_session.persist(t1, t2)
    alice = Member(username="Alice", team=t1)
    team_session.persist(alice)
    team_session.flush()
    team_session.clear()

    member = team_session.find(Member, alice.member_id)
    team_session.stats.reset()
    proxy = member.team
    assert not proxy.is_initialized
    assert team_session.stats.fetches == 0
    assert proxy.name == "T1"
    assert team_session.stats.fetches == 1
    assert member.team is proxy
    assert member.team.name == "T1"
    assert team_session.stats.fetches == 1

    found = team_session.find(Team, t1.team_id)
    assert proxy == found
    assert proxy.entity is found
    assert team_session.stats.fetches == 1
    assert len({proxy, found}) == 1


def test_persist_with_transient_target_fails_before_any_write(team_session):
    team = Team(name="Unsaved")
    member = Member(username="Alice", team=team)
    team_session.stats.reset()
    with pytest.raises(TransientReferenceError) as excinfo:
        team_session.persist(member)
    assert excinfo.value.attribute == "team"
    assert member.state is EntityState.TRANSIENT
    assert team_session.stats.round_trips == 0

    team_session.persist(team)
    team_session.persist(member)
    team_session.flush()
    assert member._field_values["team"] == team.team_id


def test_removed_target_is_rejected_before_any_write(team_session):
    team = Team(name="Leaving")
    team_session.persist(team)
    team_session.flush()
    team_session.remove(team)
    team_session.stats.reset()

    with pytest.raises(TransientReferenceError):
        team_session.persist(Member(username="Alice", team=team))

    staying = Team(name="Staying")
    member = Member(username="Bob", team=staying)
    team_session.persist(staying, member)
    member.team = team
    with pytest.raises(TransientReferenceError):
        team_session.flush()
    assert team_session.stats.writes == 0


def test_persisting_target_in_same_call_is_allowed(team_session):
    team = Team(name="New")
    member = Member(username="Alice", team=team)
    team_session.persist(member, team)
    team_session.flush()
    team_session.clear()
    assert team_session.find(Member, member.member_id).team.name == "New"


def test_rejected_id_reference_keeps_committed_value(team_session):
    team = Team(name="DevTeam")
    team_session.persist(team)
    team_session.flush()
    member = IdMember(username="Alice", team_id=team.team_id)
    team_session.persist(member)
    team_session.flush()

    member.team_id = 999
    with pytest.raises(StoreConstraintError):
        team_session.flush()
    assert member.team_id == 999

    team_session.clear()
    assert team_session.find(IdMember, member.member_id).team_id == team.team_id


def test_failed_flush_restores_generated_keys_and_writes_nothing(team_session):
    team = Team(name="Fresh")
    member = IdMember(username="Alice", team_id=999)
    team_session.persist(team, member)
    with pytest.raises(StoreConstraintError):
        team_session.flush()
    assert team.team_id is None
    assert _count(team_session, "team") == 0

    member.team_id = None
    team_session.flush()
    assert team.team_id is not None
    assert _count(team_session, "team") == 1
    assert _count(team_session, "id_member") == 1


def test_attribute_changes_are_flushed(team_session):
    team = Team(name="Before")
    team_session.persist(team)
    team_session.flush()
    team.name = "After"
    assert team in team_session.unit_of_work.dirty
    team_session.flush()
    team_session.clear()
    assert team_session.find(Team, team.team_id).name == "After"


def test_primary_key_of_managed_entity_is_immutable(team_session):
    team = Team(name="DevTeam")
    team_session.persist(team)
    team_session.flush()
    with pytest.raises(ValueError):
        team.team_id = team.team_id + 1


def test_removed_entity_is_not_found(team_session):
    team = Team(name="Doomed")
    team_session.persist(team)
    team_session.flush()

    team_session.remove(team)
    assert team.state is EntityState.REMOVED
    assert team_session.find(Team, team.team_id) is None
    team_session.flush()
    assert team.state is EntityState.TRANSIENT
    assert _count(team_session, "team") == 0


def test_removed_entity_can_be_persisted_again(team_session):
    team = Team(name="Kept")
    team_session.persist(team)
    team_session.flush()
    team_session.remove(team)
    team_session.persist(team)
    assert team in team_session
    team_session.flush()
    assert _count(team_session, "team") == 1


def test_removing_unflushed_entity_cancels_insert(team_session):
    team = Team(name="Never")
    team_session.persist(team)
    team_session.remove(team)
    team_session.stats.reset()
    team_session.flush()
    assert team.state is EntityState.TRANSIENT
    assert team_session.stats.round_trips == 0


def test_remove_requires_managed_entity(team_session):
    with pytest.raises(PersistenceError):
        team_session.remove(Team(name="Stranger"))


def test_second_instance_for_same_identity_is_rejected(make_session):
    session = make_session(Location)
    session.persist(Location(location_id=1700, city="Seattle"))
    with pytest.raises(IdentityConflictError):
        session.persist(Location(location_id=1700, city="Elsewhere"))
    with pytest.raises(IdentityConflictError):
        session.persist(Location(location_id=2400, city="London"), Location(location_id=2400, city="Paris"))


def test_entity_cannot_move_between_sessions(team_dsn):
    first = bootstrap_session(team_dsn)
    second = bootstrap_session(team_dsn)
    try:
        team = Team(name="Owned")
        first.persist(team)
        with pytest.raises(PersistenceError):
            second.persist(team)
    finally:
        first.close()
        second.close()


def test_dangling_reference_raises_on_access(make_session):
    session = make_session(Team, LooseMember)
    session.execute('INSERT INTO "loose_member" ("team_id") VALUES (?)', [42])
    member = session.find(LooseMember, 1)
    with pytest.raises(DanglingReferenceError):
        member.team.name


def test_proxy_becomes_stale_after_clear(team_session):
    team = Team(name="T1")
    member = Member(username="Alice", team=team)
    team_session.persist(team, member)
    team_session.flush()
    team_session.clear()

    loaded = team_session.find(Member, member.member_id)
    proxy = loaded.team
    team_session.clear()
    with pytest.raises(StaleReferenceError):
        proxy.name
    with pytest.raises(StaleReferenceError):
        loaded.team


def test_closed_session_rejects_operations(team_dsn):
    session = bootstrap_session(team_dsn)
    team = Team(name="T1")
    session.persist(team)
    session.flush()
    session.close()
    session.close()

    assert session.is_closed
    with pytest.raises(SessionClosedError):
        session.find(Team, team.team_id)
    with pytest.raises(SessionClosedError):
        session.flush()
    with pytest.raises(StaleReferenceError):
        team.name = "Late"


def test_context_manager_flushes_on_success(team_dsn):
    with bootstrap_session(team_dsn) as session:
        session.persist(Team(name="Committed"))

    with bootstrap_session(team_dsn) as check:
        assert _count(check, "team") == 1


def test_context_manager_discards_on_error(team_dsn):
    with pytest.raises(RuntimeError):
        with bootstrap_session(team_dsn) as session:
            session.persist(Team(name="Discarded"))
            raise RuntimeError("boom")

    with bootstrap_session(team_dsn) as check:
        assert _count(check, "team") == 0


def test_autoflush_before_queries(team_dsn):
    session = bootstrap_session(team_dsn, autoflush=True)
    try:
        session.persist(Team(name="Auto"))
        assert session.query(Team).count() == 1
    finally:
        session.close()


def test_native_query_bypasses_identity_map(team_session):
    team = Team(name="DevTeam")
    team_session.persist(team)
    team_session.flush()
    team_session.clear()

    rows = team_session.query('SELECT "team_id", "name" FROM "team" WHERE "name" = ?', ["DevTeam"])
    assert rows == [(team.team_id, "DevTeam")]
    assert len(team_session.identity_map) == 0


def test_object_query_rejects_params(team_session):
    with pytest.raises(TypeError):
        team_session.query(Team, [1])
    with pytest.raises(TypeError):
        team_session.query(42)
