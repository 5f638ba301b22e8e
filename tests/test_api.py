# tests/test_api.py

from __future__ import annotations

from models import today_local


def _post(client, url, payload=None):
    return client.post(url, json=payload or {})


def test_generic_crud_roundtrip(client) -> None:
    created = _post(client, "/api/tasks", {"title": "Book the hall", "priority": "high"})
    assert created.status_code == 201
    task_id = created.get_json()["id"]

    patched = client.patch(f"/api/tasks/{task_id}", json={"due_date": "2026-03-04"})
    assert patched.get_json()["due_date"] == "2026-03-04"

    assert [t["title"] for t in client.get("/api/tasks").get_json()] == ["Book the hall"]
    assert client.delete(f"/api/tasks/{task_id}").get_json() == {"ok": True}
    assert client.get(f"/api/tasks/{task_id}").status_code == 404


def test_errors_are_json(client) -> None:
    missing = client.get("/api/nonsense")
    assert missing.status_code == 404
    assert missing.get_json()["ok"] is False

    bad = _post(client, "/api/tasks", {"title": "x", "colour": "red"})
    assert bad.status_code == 400
    assert "colour" in bad.get_json()["error"]


def test_list_filters_from_query_string(client) -> None:
    _post(client, "/api/tasks", {"title": "a", "priority": "low"})
    _post(client, "/api/tasks", {"title": "b", "priority": "high"})
    assert [t["title"] for t in client.get("/api/tasks?priority=high").get_json()] == ["b"]


def test_task_toggle_sets_completed_at(client) -> None:
    task_id = _post(client, "/api/tasks", {"title": "Call"}).get_json()["id"]

    done = _post(client, f"/api/tasks/{task_id}/toggle").get_json()
    assert done["status"] == "done"
    assert done["completed_at"] is not None

    undone = _post(client, f"/api/tasks/{task_id}/toggle").get_json()
    assert undone["status"] == "pending"
    assert undone["completed_at"] is None


def test_pipeline_create_and_stage_move(client) -> None:
    item = _post(client, "/api/pipeline", {"title": "Drasha", "stage": "ready"}).get_json()
    assert item["stage"] == "idea"

    moved = _post(client, f"/api/pipeline/{item['id']}/stage", {"stage": "draft"})
    assert moved.get_json()["stage"] == "draft"
    assert _post(client, f"/api/pipeline/{item['id']}/stage", {"stage": "x"}).status_code == 400

    summary = client.get("/api/pipeline/summary").get_json()
    assert {s["stage"]: s["count"] for s in summary["stages"]}["draft"] == 1
    assert summary["board"]["draft"][0]["title"] == "Drasha"


def test_ritual_toggle_defaults_to_today(client) -> None:
    ritual = _post(client, "/api/rituals", {"name": "Modeh Ani"}).get_json()

    toggled = _post(client, f"/api/rituals/{ritual['id']}/toggle").get_json()
    assert toggled["completed"] is True
    assert toggled["date"] == today_local().isoformat()

    today = client.get("/api/rituals/today").get_json()
    assert today["completed_count"] == 1
    assert today["rituals"][0]["completed"] is True


def test_shas_routes(client) -> None:
    seders = client.get("/api/shas/masechtos").get_json()
    berachos = seders["masechtos"]["zeraim"][0]
    assert berachos["name"] == "Berachos"

    toggled = _post(client, "/api/shas/toggle", {"masechta_id": berachos["id"], "completion_type": "gemara"})
    assert toggled.get_json()["completed"] is True

    progress = client.get("/api/shas/progress?type=gemara").get_json()
    assert progress["completed"] == 1
    assert progress["completed_units"] == 63
    assert progress["total"] == 40

    assert client.get("/api/shas/progress?type=bavli").status_code == 400
    assert _post(client, "/api/shas/toggle", {"completion_type": "gemara"}).status_code == 400


def test_topics_and_document_content(client) -> None:
    doc = _post(client, "/api/documents", {"title": "Shmiras Halashon", "category": "mitzvah"}).get_json()
    assert doc["slug"] == "shmiras-halashon"

    updated = client.put(f"/api/documents/{doc['id']}/content",
                         json={"content": "# Shmiras Halashon\n## Sources\n"}).get_json()
    assert [s["id"] for s in updated["sections"]] == ["shmiras-halashon", "sources"]

    topics = client.get("/api/topics?search=halashon").get_json()
    assert [g["topic_slug"] for g in topics["groups"]] == ["shmiras-halashon"]
    assert topics["counts"] == {"all": 1, "mitzvah": 1}
    assert client.get("/api/documents/slug/shmiras-halashon").get_json()["id"] == doc["id"]
    assert client.get(f"/api/documents/{doc['id']}/quiz").get_json() is None


def test_send_comments_writes_feedback_file(app, client, tmp_path) -> None:
    doc = _post(client, "/api/documents", {"title": "Tzedakah", "category": "mitzvah"}).get_json()
    assert _post(client, f"/api/documents/{doc['id']}/send-comments").status_code == 400

    _post(client, "/api/comments", {"document_id": doc["id"], "section_id": "tzedakah",
                                    "content": "Needs a story", "comment_type": "add-story"})
    sent = _post(client, f"/api/documents/{doc['id']}/send-comments").get_json()

    assert sent == {"success": True, "file": "tzedakah-comments.md", "comment_count": 1}
    assert (tmp_path / "coaching" / "feedback" / "tzedakah-comments.md").exists()


def test_reflections(client) -> None:
    saved = client.put("/api/reflections/2026-03-02", json={"wins": "Finished Berachos"}).get_json()
    assert saved["streak_count"] == 1
    assert client.get("/api/reflections/2026-03-02").get_json()["wins"] == "Finished Berachos"
    assert client.get("/api/reflections/2026-03-03").get_json() is None
    assert client.get("/api/reflections/not-a-date").status_code == 400


def test_captures_prompt_and_promote(client) -> None:
    capture = _post(client, "/api/captures", {"prompt_day": 1, "prompt_text": "p", "response": "r"}).get_json()
    story = _post(client, "/api/stories", {"title": "The wagon", "content": "..."}).get_json()

    stats = client.get("/api/captures/stats").get_json()
    assert stats["total_captures"] == 1
    assert stats["current_streak"] == 1

    prompt = client.get("/api/captures/prompt").get_json()
    assert prompt["past_prompt"]["day"] == 2
    assert prompt["captured_today"] is True

    promoted = _post(client, f"/api/captures/{capture['id']}/promote", {"story_id": story["id"]}).get_json()
    assert promoted["promoted_to_story_id"] == story["id"]


def test_usage_and_profile(client) -> None:
    assert _post(client, "/api/usage", {"page": "/shas"}).status_code == 201
    assert _post(client, "/api/usage", {}).status_code == 400
    assert client.get("/api/usage/stats").get_json()["stats"] == [{"page": "/shas", "count": 1}]
    assert client.get("/api/profile").get_json() == {}


def test_dashboard_summary(client) -> None:
    _post(client, "/api/tasks", {"title": "low one", "priority": "low"})
    _post(client, "/api/tasks", {"title": "urgent", "priority": "high"})
    _post(client, "/api/rituals", {"name": "Shema"})

    dash = client.get("/api/dashboard").get_json()

    assert [t["title"] for t in dash["priority_tasks"]] == ["urgent", "low one"]
    assert dash["rituals"] == {"completed": 0, "total": 1}
    assert dash["practice_this_week"] == 0
    assert "ritual" in [n["type"] for n in dash["nudges"]]
    assert client.get("/api/nudges").status_code == 200
    assert isinstance(client.get("/api/reminders").get_json(), list)


def test_import_routes(app, client, tmp_path) -> None:
    folder = tmp_path / "content" / "drafts"
    folder.mkdir(parents=True)
    (folder / "siyum.md").write_text("# Siyum Masechta\n", encoding="utf-8")

    result = _post(client, "/api/import").get_json()
    assert result["imported"] == ["draft: siyum.md"]
    assert _post(client, "/api/import/parsha/noach").status_code == 404

    courses = _post(client, "/api/import/courses",
                    {"courses": [{"title": "Mussar", "segments": [{"title": "1"}]}]}).get_json()
    assert courses["imported"] == ["course: Mussar (1 segments)"]
    assert client.get("/api/lessons/daily").get_json()[0]["segment"]["segment_number"] == 1


def test_cli_seed_profile(app, tmp_path, monkeypatch) -> None:
    import json

    import app as app_module

    monkeypatch.setattr(app_module, "_cli_logging", lambda: None)
    path = tmp_path / "profile.json"
    path.write_text(json.dumps({"name": "Yossi"}), encoding="utf-8")

    result = app.test_cli_runner().invoke(args=["seed-profile", str(path)])

    assert result.exit_code == 0
    assert "Seeded: name" in result.output


def test_document_without_title_is_rejected(client) -> None:
    resp = _post(client, "/api/documents", {"title": None, "category": "mitzvah"})
    assert resp.status_code == 400
    assert resp.get_json()["ok"] is False


def test_send_comments_keeps_file_in_feedback_dir(client, tmp_path) -> None:
    doc = _post(client, "/api/documents", {"title": "Tzedakah", "category": "mitzvah"}).get_json()
    _post(client, "/api/comments", {"document_id": doc["id"], "section_id": "tzedakah", "content": "Trim"})

    sent = _post(client, f"/api/documents/{doc['id']}/send-comments", {"slug": "../../../owned"}).get_json()

    assert sent["file"] == "owned-comments.md"
    assert (tmp_path / "coaching" / "feedback" / "owned-comments.md").exists()
    assert _post(client, f"/api/documents/{doc['id']}/send-comments", {"slug": "/.."}).status_code == 400


def test_import_routes_default_to_shipped_data(client) -> None:
    stories = _post(client, "/api/import/stories").get_json()
    courses = _post(client, "/api/import/courses").get_json()

    assert len(stories["imported"]) == 15
    assert "course: Daily Affirmations (2 segments)" in courses["imported"]
    assert len(client.get("/api/rituals").get_json()) == 3


def test_cli_seed_profile_defaults_to_shipped_profile(app, client, monkeypatch) -> None:
    import app as app_module

    monkeypatch.setattr(app_module, "_cli_logging", lambda: None)

    result = app.test_cli_runner().invoke(args=["seed-profile"])

    assert result.exit_code == 0
    assert "personality_traits" in result.output
    assert "growth_prompts" in client.get("/api/profile").get_json()
