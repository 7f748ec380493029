from datetime import date

import pytest

from examples.hr_app.models import Department, JobHistory, Location
from examples.team_app.models import IdMember, Member, Team
from keelorm.core import ManyToOne, Model, StringField
from keelorm.errors import FlushCycleError, StoreConstraintError, TransientReferenceError
from keelorm.persistence import FlushPlanner, OperationKind


class CycleNode(Model):
    class Meta:
        table = "cycle_node"

    label = StringField()
    partner = ManyToOne("CycleNode")


def plan_for(session):
    planner = FlushPlanner(
        session.unit_of_work,
        session.store,
        session=session,
        check_id_references=session.check_id_references,
    )
    return [(op.kind, op.entity) for op in planner.plan()]


def test_independent_operations_keep_scheduling_order(team_session):
    first, second = Team(name="A"), Team(name="B")
    team_session.persist(first)
    team_session.persist(second)
    assert plan_for(team_session) == [
        (OperationKind.INSERT, first),
        (OperationKind.INSERT, second),
    ]


def test_parent_insert_precedes_child_insert(team_session):
    team = Team(name="A")
    member = Member(username="alice", team=team)
    team_session.persist(member, team)
    assert plan_for(team_session) == [
        (OperationKind.INSERT, team),
        (OperationKind.INSERT, member),
    ]
    team_session.flush()
    assert member._field_values["team"] == team.team_id


def test_natural_keys_order_raw_references(hr_session):
    history = JobHistory(
        employee_id=101,
        start_date=date(1997, 9, 21),
        end_date=date(2001, 10, 27),
        job_id="AC_ACCOUNT",
        department_id=10,
    )
    department = Department(department_id=10, department_name="Administration", location_id=1700)
    location = Location(location_id=1700, city="Seattle")
    hr_session.persist(history)
    hr_session.persist(department)
    hr_session.persist(location)

    assert [entity for _, entity in plan_for(hr_session)] == [location, department, history]
    hr_session.flush()
    hr_session.clear()
    assert hr_session.find(JobHistory, employee_id=101, start_date=date(1997, 9, 21)) is not None


def test_child_delete_precedes_parent_delete(team_session):
    team = Team(name="A")
    member = Member(username="alice", team=team)
    team_session.persist(team, member)
    team_session.flush()

    team_session.remove(team)
    team_session.remove(member)
    assert plan_for(team_session) == [
        (OperationKind.DELETE, member),
        (OperationKind.DELETE, team),
    ]
    team_session.flush()
    assert team_session.query('SELECT COUNT(*) FROM "team"') == [(0,)]


def test_reference_moves_away_before_parent_delete(team_session):
    old_team, new_team = Team(name="Old"), Team(name="New")
    member = Member(username="alice", team=old_team)
    team_session.persist(old_team, new_team, member)
    team_session.flush()

    team_session.remove(old_team)
    member.team = new_team
    assert plan_for(team_session) == [
        (OperationKind.UPDATE, member),
        (OperationKind.DELETE, old_team),
    ]
    team_session.flush()
    team_session.clear()
    assert team_session.find(Member, member.member_id).team.name == "New"


def test_update_writes_only_changed_columns(team_session):
    team = Team(name="A")
    member = Member(username="alice", team=team)
    team_session.persist(team, member)
    team_session.flush()

    member.username = "alicia"
    sql, params = team_session.store.statements.update(member, member.changed_fields())
    assert sql == 'UPDATE "member" SET "username" = ? WHERE "member_id" = ?'
    assert params == ["alicia", member.member_id]


def test_cycle_fails_before_any_write(make_session):
    session = make_session(CycleNode)
    a, b = CycleNode(label="a"), CycleNode(label="b")
    a.partner = b
    b.partner = a
    session.persist(a, b)
    session.stats.reset()

    with pytest.raises(FlushCycleError) as excinfo:
        session.flush()
    assert len(excinfo.value.operations) == 2
    assert session.stats.writes == 0

    b.partner = None
    session.flush()
    assert a._field_values["partner"] == b.id


def test_target_swapped_for_transient_entity_fails_at_flush(team_session):
    team = Team(name="A")
    team_session.persist(team)
    member = Member(username="alice", team=team)
    team_session.persist(member)
    member.team = Team(name="Ghost")
    team_session.stats.reset()

    with pytest.raises(TransientReferenceError):
        team_session.flush()
    assert team_session.stats.writes == 0


def test_unconstrained_reference_is_checked_before_writing(hr_session):
    hr_session.persist(
        JobHistory(
            employee_id=101,
            start_date=date(1997, 9, 21),
            end_date=date(2001, 10, 27),
            job_id="AC_ACCOUNT",
            department_id=99,
        )
    )
    hr_session.stats.reset()
    with pytest.raises(StoreConstraintError, match="missing Department"):
        hr_session.flush()
    assert hr_session.stats.writes == 0
    assert hr_session.stats.fetches == 1


def test_reference_to_row_being_deleted_is_rejected(hr_session):
    hr_session.persist(
        Location(location_id=1700, city="Seattle"),
        Department(department_id=40, department_name="Human Resources", location_id=1700),
    )
    hr_session.flush()

    hr_session.remove(hr_session.find(Department, 40))
    hr_session.persist(
        JobHistory(
            employee_id=102,
            start_date=date(2001, 1, 1),
            end_date=date(2002, 1, 1),
            job_id="HR_REP",
            department_id=40,
        )
    )
    with pytest.raises(StoreConstraintError, match="being deleted"):
        hr_session.flush()


def test_opt_in_check_for_constrained_references(make_session):
    session = make_session(Team, IdMember, check_id_references=True)
    session.persist(IdMember(username="alice", team_id=999))
    session.stats.reset()
    with pytest.raises(StoreConstraintError):
        session.flush()
    assert session.stats.writes == 0


def test_self_reference_receives_generated_key(make_session):
    session = make_session(CycleNode)
    node = CycleNode(label="loop")
    node.partner = node
    session.persist(node)
    session.stats.reset()
    session.flush()

    assert session.stats.writes == 2
    assert session.query('SELECT "id", "partner_id" FROM "cycle_node"') == [(node.id, node.id)]
    assert not session.unit_of_work.has_pending()
    session.flush()
    session.clear()
    reloaded = session.find(CycleNode, node.id)
    assert reloaded.partner.entity is None
    assert reloaded.partner.label == "loop"
    assert reloaded.partner.entity is reloaded


def test_mutually_referencing_rows_update_together(make_session):
    session = make_session(CycleNode)
    a, b = CycleNode(label="a"), CycleNode(label="b")
    a.partner = b
    session.persist(a, b)
    session.flush()
    b.partner = a
    session.flush()

    a.label = "a2"
    b.label = "b2"
    assert [kind for kind, _ in plan_for(session)] == [OperationKind.UPDATE, OperationKind.UPDATE]
    session.flush()
    session.clear()
    labels = session.query('SELECT "label", "partner_id" FROM "cycle_node" ORDER BY "id"')
    assert labels == [("a2", b.id), ("b2", a.id)]
