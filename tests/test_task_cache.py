# tests/test_task_cache.py
# PURPOSE: listings are served from cache and every task write invalidates them.

from taskhub.cache import task_list_cache_key
from taskhub.db_models import TaskDB

from conftest import create_task


def _ids(client, headers, query=""):
    r = client.get(f"/api/tasks{query}", headers=headers)
    assert r.status_code == 200
    return [t["id"] for t in r.json()]


def test_status_lists_follow_create_and_update(client, alice):
    # Warm every status listing first so stale hits would show up
    for q in ("", "?status=pending", "?status=completed"):
        assert _ids(client, alice, q) == []

    task = create_task(client, alice, "Cached", status="pending")
    assert task["id"] in _ids(client, alice, "?status=all")
    assert task["id"] in _ids(client, alice, "?status=pending")

    r = client.put(f"/api/tasks/{task['id']}", data={"status": "completed"}, headers=alice)
    assert r.status_code == 200

    assert task["id"] not in _ids(client, alice, "?status=pending")
    assert task["id"] in _ids(client, alice, "?status=completed")


def test_listing_is_served_from_cache(client, test_env, alice):
    task = create_task(client, alice, "Original title")
    first = client.get("/api/tasks", headers=alice).json()
    assert first[0]["title"] == "Original title"

    # Change the row behind the service's back: the cached listing still wins
    with test_env.session_factory() as db:
        db.get(TaskDB, task["id"]).title = "Changed in DB"
        db.commit()
    assert client.get("/api/tasks", headers=alice).json()[0]["title"] == "Original title"

    # Any write through the API drops the cached listing
    create_task(client, alice, "Another")
    titles = [t["title"] for t in client.get("/api/tasks", headers=alice).json()]
    assert "Changed in DB" in titles


def test_search_listing_is_invalidated_on_write(client, alice):
    create_task(client, alice, "Buy milk")
    assert len(_ids(client, alice, "?search=milk")) == 1

    second = create_task(client, alice, "More milk")
    assert second["id"] in _ids(client, alice, "?search=milk")

    client.delete(f"/api/tasks/{second['id']}", headers=alice)
    assert second["id"] not in _ids(client, alice, "?search=milk")


def test_delete_is_reflected_in_every_status_listing(client, alice):
    task = create_task(client, alice, "Short lived", status="in_progress")
    assert task["id"] in _ids(client, alice, "?status=in_progress")
    assert task["id"] in _ids(client, alice)

    client.delete(f"/api/tasks/{task['id']}", headers=alice)
    assert _ids(client, alice, "?status=in_progress") == []
    assert _ids(client, alice) == []


def test_rejected_write_keeps_cache(client, test_env, alice, bob):
    task = create_task(client, alice, "Alice's")
    _ids(client, alice)
    key = task_list_cache_key(task["user_id"], None, None)
    assert key in test_env.cache.keys()

    assert client.put(f"/api/tasks/{task['id']}", data={"title": "x"}, headers=bob).status_code == 403
    assert client.delete(f"/api/tasks/{task['id']}", headers=bob).status_code == 403
    assert key in test_env.cache.keys()


def test_writes_only_touch_own_cache(client, test_env, alice, bob):
    a_task = create_task(client, alice, "Alice's")
    _ids(client, alice)
    a_key = task_list_cache_key(a_task["user_id"], None, None)

    create_task(client, bob, "Bob's")
    assert a_key in test_env.cache.keys()
