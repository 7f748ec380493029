import pytest

from examples.hr_app.models import JobHistory
from examples.team_app.models import IdMember, Member, Team
from keelorm.core import Model
from keelorm.dialects import MySQLDialect, PostgresDialect, SQLiteDialect
from keelorm.query import NativeQuery, Q, SQLCompiler, StatementCompiler

MEMBER_COLUMNS = 't0."member_id" AS "member_id", t0."username" AS "username", t0."team_id" AS "team_id"'


def compile_member(dialect=None, **options):
    return SQLCompiler(Member, dialect or SQLiteDialect(), **options).compile()


def test_simple_filter():
    sql, params = compile_member(where=Q(username="alice"))
    assert sql == f'SELECT {MEMBER_COLUMNS} FROM "member" t0 WHERE t0."username" = ?'
    assert params == ["alice"]


def test_ordering_limit_and_offset():
    sql, params = compile_member(where=Q(member_id__gte=2), ordering=("-username",), limit=5, offset=10)
    assert sql == (
        f'SELECT {MEMBER_COLUMNS} FROM "member" t0 WHERE t0."member_id" >= ? '
        'ORDER BY t0."username" DESC LIMIT 5 OFFSET 10'
    )
    assert params == [2]


def test_combined_and_negated_q_objects():
    sql, params = compile_member(where=Q(username="alice") | ~Q(member_id__lt=3))
    assert sql.endswith('WHERE (t0."username" = ?) OR (NOT (t0."member_id" < ?))')
    assert params == ["alice", 3]


def test_lookup_across_association_adds_join():
    sql, params = compile_member(where=Q(team__name__iexact="Team A"))
    assert sql == (
        f'SELECT {MEMBER_COLUMNS} FROM "member" t0 '
        'LEFT JOIN "team" t1 ON t0."team_id" = t1."team_id" '
        'WHERE LOWER(t1."name") = ?'
    )
    assert params == ["team a"]


def test_select_related_labels_related_columns():
    sql, params = compile_member(select_related=("team",), ordering=("member_id",))
    assert sql == (
        f'SELECT {MEMBER_COLUMNS}, t1."team_id" AS "team__team_id", t1."name" AS "team__name" '
        'FROM "member" t0 LEFT JOIN "team" t1 ON t0."team_id" = t1."team_id" '
        'ORDER BY t0."member_id"'
    )
    assert params == []


def test_join_is_shared_between_select_related_and_filter():
    sql, _ = compile_member(select_related=("team",), where=Q(team__name="Team A"))
    assert sql.count("LEFT JOIN") == 1


@pytest.mark.parametrize(
    ("lookup", "fragment", "params"),
    [
        ({"team": None}, 't0."team_id" IS NULL', []),
        ({"team__isnull": False}, 't0."team_id" IS NOT NULL', []),
        ({"username__contains": "li"}, 't0."username" LIKE ?', ["%li%"]),
        ({"member_id__in": [1, 2]}, 't0."member_id" IN (?, ?)', [1, 2]),
        ({"member_id__in": []}, "1 = 0", []),
        ({"team": Team(team_id=4, name="A")}, 't0."team_id" = ?', [4]),
    ],
)
def test_lookups(lookup, fragment, params):
    sql, compiled_params = compile_member(where=Q(**lookup))
    assert sql.endswith(f"WHERE {fragment}")
    assert compiled_params == params


def test_unsupported_null_comparison_raises():
    with pytest.raises(ValueError):
        compile_member(where=Q(member_id__gt=None))


def test_count_query():
    sql, params = SQLCompiler(Member, SQLiteDialect(), where=Q(team__name="Team A")).compile_count()
    assert sql == (
        'SELECT COUNT(*) FROM "member" t0 LEFT JOIN "team" t1 ON t0."team_id" = t1."team_id" '
        'WHERE t1."name" = ?'
    )
    assert params == ["Team A"]


def test_postgres_placeholders():
    sql, params = compile_member(PostgresDialect(), where=Q(username="alice"), limit=1)
    assert sql.endswith('WHERE t0."username" = %s LIMIT 1')
    assert params == ["alice"]


def test_select_related_requires_lazy_reference():
    compiler = SQLCompiler(IdMember, SQLiteDialect())
    with pytest.raises(ValueError):
        compiler.relation_for_path("team_id")
    with pytest.raises(ValueError):
        SQLCompiler(Member, SQLiteDialect()).relation_for_path("username")


def test_eager_paths_include_prefixes():
    compiler = SQLCompiler(Member, SQLiteDialect(), select_related=("team",))
    assert compiler.eager_paths() == ["team"]
    assert compiler.relation_for_path("team") is Member.team


def test_statement_compiler_addresses_composite_keys():
    statements = StatementCompiler(SQLiteDialect())
    history = JobHistory._from_row(
        {
            "employee_id": 101,
            "start_date": JobHistory.start_date.to_python("1997-09-21"),
            "end_date": None,
            "job_id": "AC_ACCOUNT",
            "department_id": 10,
        }
    )
    sql, params = statements.delete(history)
    assert sql == 'DELETE FROM "job_history" WHERE "employee_id" = ? AND "start_date" = ?'
    assert params == [101, "1997-09-21"]


def test_insert_statements_per_dialect():
    team = Team(name="A")
    sql, params, generated = StatementCompiler(SQLiteDialect()).insert(team)
    assert sql == 'INSERT INTO "team" ("name") VALUES (?)'
    assert params == ["A"]
    assert generated == "team_id"

    sql, _, _ = StatementCompiler(PostgresDialect()).insert(team)
    assert sql == 'INSERT INTO "team" ("name") VALUES (%s) RETURNING "team_id"'


def test_insert_without_explicit_columns():
    class Counter(Model):
        pass

    sql, params, _ = StatementCompiler(MySQLDialect()).insert(Counter())
    assert sql == "INSERT INTO `counter` () VALUES ()"
    assert params == []
    sql, _, _ = StatementCompiler(SQLiteDialect()).insert(Counter())
    assert sql == 'INSERT INTO "counter" DEFAULT VALUES'


def test_native_named_parameters_become_positional():
    query = NativeQuery(
        "SELECT * FROM team WHERE name = :name AND note <> ':name' AND created::date = :day",
        {"name": "Team A", "day": "2024-01-01"},
        PostgresDialect(),
    )
    sql, params = query.translate()
    assert sql == "SELECT * FROM team WHERE name = %s AND note <> ':name' AND created::date = %s"
    assert params == ["Team A", "2024-01-01"]


def test_native_positional_parameters_pass_through():
    query = NativeQuery("SELECT * FROM team WHERE team_id = ?", (3,), SQLiteDialect())
    assert query.translate() == ("SELECT * FROM team WHERE team_id = ?", [3])


def test_native_missing_named_parameter():
    with pytest.raises(ValueError):
        NativeQuery("SELECT :missing", {}, SQLiteDialect()).translate()
