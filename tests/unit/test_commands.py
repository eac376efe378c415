import sqlite3

import pytest

from relational.commands import CommandSpec, count_placeholders
from relational.errors import CommandExecutionError, ParameterMismatchError


def test_count_placeholders_ignores_quoted_text():
    assert count_placeholders("SELECT * FROM \"we?ird\" WHERE a = ? AND b = '?'", "?") == 1
    assert count_placeholders("SELECT '100%s', a FROM t WHERE a LIKE %s AND b = %s", "%s") == 2
    assert count_placeholders("SELECT 5 %% 2 WHERE a = %s", "%s") == 1


def test_command_spec_rejects_parameter_mismatch():
    with pytest.raises(ParameterMismatchError, match="2 placeholder"):
        CommandSpec("SELECT * FROM t WHERE a = ? AND b = ?", (1,), "?")

    spec = CommandSpec("SELECT * FROM t WHERE a = ?", (1,), "?")
    with pytest.raises(ParameterMismatchError):
        spec.with_parameters((1, 2))
    assert spec.with_parameters([5]).parameters == (5,)
    assert spec.parameters == (1,)


def test_same_spec_runs_independently_on_two_connections(tmp_path):
    paths = [tmp_path / "a.db", tmp_path / "b.db"]
    for index, path in enumerate(paths):
        conn = sqlite3.connect(str(path))
        conn.execute("CREATE TABLE t (v INTEGER)")
        conn.executemany("INSERT INTO t VALUES (?)", [(n,) for n in range(index + 2)])
        conn.commit()
        conn.close()

    spec = CommandSpec("SELECT v FROM t WHERE v >= ? ORDER BY v", (0,), "?")
    results = []
    for path in paths:
        conn = sqlite3.connect(str(path))
        try:
            results.append([dict(row) for row in spec.get_command(conn).execute_reader(fetch_size=1)])
        finally:
            conn.close()
    assert results == [[{"v": 0}, {"v": 1}], [{"v": 0}, {"v": 1}, {"v": 2}]]


def test_execution_errors_carry_the_command():
    class FailingCursor:
        rowcount = -1

        def execute(self, sql, params=None):
            raise RuntimeError("relation does not exist")

        def close(self):
            return None

    class FakeConn:
        def cursor(self):
            return FailingCursor()

    spec = CommandSpec("DELETE FROM ghosts WHERE id = %s", (7,), "%s")
    with pytest.raises(CommandExecutionError) as info:
        spec.get_command(FakeConn()).execute_non_query()
    assert info.value.sql == "DELETE FROM ghosts WHERE id = %s"
    assert info.value.parameters == (7,)
    assert isinstance(info.value.__cause__, RuntimeError)


def test_execute_scalar_and_non_query(tmp_path):
    conn = sqlite3.connect(str(tmp_path / "s.db"))
    try:
        conn.execute("CREATE TABLE t (v INTEGER)")
        inserted = CommandSpec("INSERT INTO t (v) VALUES (?)", (3,), "?").get_command(conn).execute_non_query()
        assert inserted == 1
        assert CommandSpec("SELECT COUNT(*) FROM t", (), "?").get_command(conn).execute_scalar() == 1
    finally:
        conn.close()
