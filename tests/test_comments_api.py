# tests/test_comments_api.py
# PURPOSE: comment CRUD, author-only edits, owner notification on create.

import pytest

from taskhub.api.deps import get_notifier
from taskhub.main import app

from conftest import create_task


def _comment(client, headers, task_id, content="This is a test comment."):
    return client.post(f"/api/tasks/{task_id}/comments", json={"content": content}, headers=headers)


def test_authenticated_user_can_comment_on_any_task(client, alice, bob):
    task = create_task(client, alice, "Discuss me")
    r = _comment(client, bob, task["id"])
    assert r.status_code == 201
    comment = r.json()["comment"]
    assert comment["content"] == "This is a test comment."
    assert comment["task_id"] == task["id"]
    assert comment["user"]["name"] == "Bob"


@pytest.mark.parametrize("content", ["", "x", "   "])
def test_comment_content_too_short(client, test_env, alice, content):
    task = create_task(client, alice, "Discuss me")
    r = _comment(client, alice, task["id"], content)
    assert r.status_code == 422
    assert "content" in r.json()["errors"]
    assert test_env.notifier.sent == []


def test_comment_requires_content_field(client, alice):
    task = create_task(client, alice, "Discuss me")
    r = client.post(f"/api/tasks/{task['id']}/comments", json={}, headers=alice)
    assert r.status_code == 422
    assert "content" in r.json()["errors"]


def test_comment_list_newest_first_with_authors(client, alice, bob):
    task = create_task(client, alice, "Discuss me")
    first = _comment(client, alice, task["id"], "first!").json()["comment"]
    second = _comment(client, bob, task["id"], "second!").json()["comment"]

    r = client.get(f"/api/tasks/{task['id']}/comments", headers=alice)
    assert r.status_code == 200
    got = r.json()
    assert [c["id"] for c in got] == [second["id"], first["id"]]
    assert [c["user"]["name"] for c in got] == ["Bob", "Alice"]


def test_comments_on_missing_task_are_404(client, alice):
    assert _comment(client, alice, 9999).status_code == 404
    assert client.get("/api/tasks/9999/comments", headers=alice).status_code == 404


def test_comment_notifies_task_owner_once(client, test_env, alice, bob):
    task = create_task(client, alice, "Discuss me")
    owner_id = task["user_id"]

    _comment(client, bob, task["id"], "Notification test comment")
    sent = test_env.notifier.sent_to(owner_id, "comment_added")
    assert len(sent) == 1
    assert sent[0].subject == "New Comment on your Task"
    assert any("Discuss me" in line for line in sent[0].lines)
    assert sent[0].action_url.endswith(f"/api/tasks/{task['id']}")
    assert len(test_env.notifier.sent) == 1

    # The owner commenting on their own task is notified too
    _comment(client, alice, task["id"], "Owner note")
    assert len(test_env.notifier.sent_to(owner_id)) == 2
    assert all(rcpt.email == "alice@example.com" for rcpt, _ in test_env.notifier.sent)


def test_notifier_failure_does_not_fail_comment(client, alice):
    class BrokenNotifier:
        def send(self, recipient, message):
            raise RuntimeError("mail server down")

    app.dependency_overrides[get_notifier] = lambda: BrokenNotifier()
    task = create_task(client, alice, "Discuss me")
    r = _comment(client, alice, task["id"])
    assert r.status_code == 201
    assert len(client.get(f"/api/tasks/{task['id']}/comments", headers=alice).json()) == 1


def test_get_comment_includes_author_and_task_for_owner(client, alice, bob):
    task = create_task(client, alice, "Discuss me")
    comment = _comment(client, bob, task["id"]).json()["comment"]

    r = client.get(f"/api/comments/{comment['id']}", headers=alice)
    assert r.status_code == 200
    body = r.json()
    assert body["user"]["email"] == "bob@example.com"
    assert body["task"]["id"] == task["id"]

    assert client.get("/api/comments/9999", headers=alice).status_code == 404


def test_only_author_can_update_or_delete(client, alice, bob):
    task = create_task(client, alice, "Discuss me")
    comment = _comment(client, bob, task["id"], "Bob wrote this").json()["comment"]
    cid = comment["id"]

    # Task owner is not the author either
    r = client.put(f"/api/comments/{cid}", json={"content": "Edited by Alice"}, headers=alice)
    assert r.status_code == 403
    assert client.delete(f"/api/comments/{cid}", headers=alice).status_code == 403
    assert client.get(f"/api/comments/{cid}", headers=alice).json()["content"] == "Bob wrote this"

    r = client.put(f"/api/comments/{cid}", json={"content": "Edited by Bob"}, headers=bob)
    assert r.status_code == 200
    assert r.json()["comment"]["content"] == "Edited by Bob"

    r = client.put(f"/api/comments/{cid}", json={"content": "x"}, headers=bob)
    assert r.status_code == 422
    assert "content" in r.json()["errors"]

    r = client.delete(f"/api/comments/{cid}", headers=bob)
    assert r.status_code == 200
    assert client.get(f"/api/comments/{cid}", headers=bob).status_code == 404


def test_get_comment_hides_task_from_other_users(client, alice, bob):
    task = create_task(client, alice, "Alice secret", description="private notes")
    comment = _comment(client, alice, task["id"]).json()["comment"]

    assert client.get(f"/api/tasks/{task['id']}", headers=bob).status_code == 403
    r = client.get(f"/api/comments/{comment['id']}", headers=bob)
    assert r.status_code == 200
    body = r.json()
    assert body["task_id"] == task["id"]
    assert body["task"] is None
    assert "Alice secret" not in r.text
    assert "private notes" not in r.text


def test_non_author_gets_403_whatever_the_body(client, alice, bob):
    task = create_task(client, alice, "Discuss me")
    cid = _comment(client, bob, task["id"], "Bob wrote this").json()["comment"]["id"]

    assert client.put(f"/api/comments/{cid}", headers=alice).status_code == 403
    r = client.put(
        f"/api/comments/{cid}",
        content=b"{not json",
        headers={**alice, "Content-Type": "application/json"},
    )
    assert r.status_code == 403
    assert client.put(f"/api/comments/{cid}", content=b"plain text", headers=alice).status_code == 403

    # the author sending the same bodies gets validation errors
    r = client.put(
        f"/api/comments/{cid}",
        content=b"{not json",
        headers={**bob, "Content-Type": "application/json"},
    )
    assert r.status_code == 422
    assert "body" in r.json()["errors"]
    r = client.put(f"/api/comments/{cid}", headers=bob)
    assert r.status_code == 422
    assert "content" in r.json()["errors"]


def test_comment_accepts_form_body(client, alice):
    task = create_task(client, alice, "Discuss me")
    r = client.post(f"/api/tasks/{task['id']}/comments", data={"content": "From a form"}, headers=alice)
    assert r.status_code == 201
    assert r.json()["comment"]["content"] == "From a form"
