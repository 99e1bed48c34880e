FRAGEBOGEN = "/api/fragebogen/fragebogen"
SHOW_IF_NO = [{
    "trigger_question_id": "temp-1", "operator": "equals", "trigger_answer": "Nein",
    "action": "show", "target_question_ids": ["temp-2"],
}]


def test_create_requires_modules_and_dates(client, markets):
    resp = client.post(FRAGEBOGEN, json={"name": "Leer", "module_ids": [], "always_active": True})
    assert resp.status_code == 400
    assert "module" in resp.get_json()["error"]


def test_always_active_uses_sentinel_range(make_module, make_fragebogen, markets):
    module = make_module()
    body = make_fragebogen([module["id"]], markets[:1], always_active=True).get_json()
    assert body["start_date"] == "2000-01-01" and body["end_date"] == "2099-12-31"
    assert body["always_active"] is True
    assert body["status"] == "active"


def test_future_fragebogen_is_scheduled(make_module, make_fragebogen, markets):
    module = make_module()
    body = make_fragebogen([module["id"]], [], start_date="2098-01-01", end_date="2098-02-01").get_json()
    assert body["status"] == "scheduled"


def test_unresolved_market_conflict_blocks_save(client, make_module, make_fragebogen, markets):
    module = make_module()
    assert make_fragebogen([module["id"]], ["M1", "M2"], name="A").status_code == 201

    resp = make_fragebogen([module["id"]], ["M1", "M3"], name="B")
    assert resp.status_code == 409
    conflicts = resp.get_json()["conflicts"]
    assert len(conflicts) == 1
    assert conflicts[0]["market_id"] == "M1"
    assert conflicts[0]["existing_fragebogen_name"] == "A"
    assert len(client.get(FRAGEBOGEN).get_json()) == 1


def test_override_moves_market(client, make_module, make_fragebogen, markets):
    module = make_module()
    a = make_fragebogen([module["id"]], ["M1", "M2"], name="A").get_json()
    b = make_fragebogen([module["id"]], ["M1", "M3"], name="B",
                        conflict_resolutions={"M1": "override"}).get_json()
    assert sorted(b["market_ids"]) == ["M1", "M3"]
    assert b["resolved_conflicts"][0]["resolution"] == "override"
    assert client.get(f"{FRAGEBOGEN}/{a['id']}").get_json()["market_ids"] == ["M2"]


def test_remove_leaves_existing_assignment(client, make_module, make_fragebogen, markets):
    module = make_module()
    a = make_fragebogen([module["id"]], ["M1", "M2"], name="A").get_json()
    b = make_fragebogen([module["id"]], ["M1", "M3"], name="B",
                        conflict_resolutions={"M1": "remove"}).get_json()
    assert b["market_ids"] == ["M3"]
    assert sorted(client.get(f"{FRAGEBOGEN}/{a['id']}").get_json()["market_ids"]) == ["M1", "M2"]


def test_update_checks_conflicts_but_not_against_itself(client, make_module, make_fragebogen, markets):
    module = make_module()
    a = make_fragebogen([module["id"]], ["M1"], name="A").get_json()
    b = make_fragebogen([module["id"]], ["M2"], name="B").get_json()

    resp = client.put(f"{FRAGEBOGEN}/{b['id']}", json={"market_ids": ["M2", "M3"]})
    assert resp.status_code == 200
    resp = client.put(f"{FRAGEBOGEN}/{b['id']}", json={"name": "B2", "market_ids": ["M1", "M2"]})
    assert resp.status_code == 409
    # nichts geschrieben, auch nicht der Name
    assert client.get(f"{FRAGEBOGEN}/{b['id']}").get_json()["name"] == "B"
    assert client.get(f"{FRAGEBOGEN}/{a['id']}").get_json()["market_ids"] == ["M1"]


def test_archived_fragebogen_does_not_conflict(client, make_module, make_fragebogen, markets):
    module = make_module()
    a = make_fragebogen([module["id"]], ["M1"], name="A").get_json()
    archived = client.put(f"{FRAGEBOGEN}/{a['id']}/archive", json={"archived": True}).get_json()
    assert archived["status"] == "inactive"
    assert make_fragebogen([module["id"]], ["M1"], name="B").status_code == 201


def test_detail_list_stats_and_permanent_delete(client, make_module, make_fragebogen, markets):
    module = make_module()
    fb = make_fragebogen([module["id"]], markets[:2]).get_json()
    assert fb["modules"][0]["id"] == module["id"]
    assert len(fb["modules"][0]["questions"]) == 2
    assert [m["id"] for m in fb["markets"]] == ["M1", "M2"]

    assert len(client.get(f"{FRAGEBOGEN}?status=active").get_json()) == 1
    assert client.get(f"{FRAGEBOGEN}?status=scheduled").get_json() == []
    assert client.get(f"{FRAGEBOGEN}?status=weird").status_code == 400

    stats = client.get(f"{FRAGEBOGEN}/{fb['id']}/stats").get_json()
    assert stats["module_count"] == 1 and stats["market_count"] == 2

    result = client.delete(f"{FRAGEBOGEN}/{fb['id']}/permanent").get_json()
    assert result["deleted_fragebogen"] == fb["id"]
    assert client.get(f"{FRAGEBOGEN}/{fb['id']}").status_code == 404
    assert client.get(f"/api/fragebogen/modules/{module['id']}").status_code == 200


def test_visibility_session(client, make_module, make_fragebogen, markets):
    module = make_module(rules=SHOW_IF_NO)
    q1, q2 = [q["id"] for q in module["questions"]]
    fb = make_fragebogen([module["id"]], markets[:1]).get_json()
    url = f"{FRAGEBOGEN}/{fb['id']}/visibility"

    start = client.post(url, json={"answers": {}}).get_json()
    assert start["question_id"] == q1 and start["hidden"] == []

    step = client.post(url, json={"answers": {q1: "Ja"}, "current": q1}).get_json()
    assert step["hidden"] == [q2]
    assert step["visible"] == [q1]
    assert step["question_id"] is None and step["finished"] is True

    step = client.post(url, json={"answers": {q1: "Nein"}, "current": q1}).get_json()
    assert step["question_id"] == q2 and step["module_id"] == module["id"]

    back = client.post(url, json={"answers": {q1: "Nein"}, "current": q2, "direction": "previous"}).get_json()
    assert back["question_id"] == q1

    resp = client.post(url, json={"answers": {}, "current": "unknown"})
    assert resp.status_code == 400
