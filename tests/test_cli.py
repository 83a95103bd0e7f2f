import io

from taskhub.cli import render_table, task_stats

from conftest import create_task


def test_task_stats_counts_live_tasks_per_user(client, test_env, alice, bob):
    create_task(client, alice, "One")
    gone = create_task(client, alice, "Two")
    create_task(client, alice, "Three")
    client.delete(f"/api/tasks/{gone['id']}", headers=alice)

    out = io.StringIO()
    with test_env.session_factory() as db:
        assert task_stats(db, out) == 2
    text = out.getvalue()

    assert "--- User Task Statistics Report ---" in text
    lines = [line for line in text.splitlines() if line.startswith("| ")]
    assert [c.strip() for c in lines[1].split("|")[1:4]] == ["Alice", "alice@example.com", "2"]
    assert "bob@example.com" in lines[2]
    assert lines[2].split("|")[3].strip() == "0"


def test_task_stats_without_users(test_env):
    out = io.StringIO()
    with test_env.session_factory() as db:
        assert task_stats(db, out) == 0
    assert out.getvalue() == "No users found in the system.\n"


def test_render_table_pads_columns():
    table = render_table([("a", "bb", 1)], headers=("x", "y", "z"))
    assert table.splitlines() == [
        "+---+----+---+",
        "| x | y  | z |",
        "+---+----+---+",
        "| a | bb | 1 |",
        "+---+----+---+",
    ]
