from conftest import question_payload

MODULES = "/api/fragebogen/modules"
SHOW_IF_NO = [{
    "trigger_question_id": "temp-1", "operator": "equals", "trigger_answer": "Nein",
    "action": "show", "target_question_ids": ["temp-2"],
}]


def _editor_payload(module, questions=None):
    return {
        "name": module["name"],
        "questions": questions if questions is not None else module["questions"],
        "rules": module["conditions"],
    }


def test_create_module_stores_rules_with_local_ids(make_module):
    module = make_module(rules=SHOW_IF_NO)
    q1, q2 = [q["id"] for q in module["questions"]]
    assert [q["local_id"] for q in module["questions"]] == ["q1", "q2"]
    assert module["rules"][0]["trigger_local_id"] == "q1"
    assert module["rules"][0]["target_local_ids"] == ["q2"]
    assert module["conditions"][0]["trigger_question_id"] == q1
    assert module["save_summary"]["create"] == 2


def test_edit_question_used_only_here_updates_in_place(client, make_module):
    module = make_module()
    edited = [module["questions"][0], dict(module["questions"][1], question_text="Grund?")]
    resp = client.put(f"{MODULES}/{module['id']}", json=_editor_payload(module, edited))
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["save_summary"]["update"] == 1
    assert body["questions"][1]["id"] == module["questions"][1]["id"]
    assert body["questions"][1]["question_text"] == "Grund?"


def test_edit_shared_question_forks_and_repoints_rules(client, make_module):
    first = make_module(rules=SHOW_IF_NO)
    shared = first["questions"][0]
    second = client.post(MODULES, json={
        "name": "Zweitplatzierung", "questions": [dict(shared, order=0)],
    }).get_json()
    assert second["questions"][0]["id"] == shared["id"]
    count = client.get(f"/api/fragebogen/questions/{shared['id']}/module-count").get_json()
    assert count["module_count"] == 2

    edited = [dict(shared, question_text="Steht das Display?"), first["questions"][1]]
    body = client.put(f"{MODULES}/{first['id']}", json=_editor_payload(first, edited)).get_json()
    assert body["save_summary"]["fork"] == 1
    forked_id = body["questions"][0]["id"]
    assert forked_id != shared["id"]
    assert body["conditions"][0]["trigger_question_id"] == forked_id
    assert body["rules"][0]["trigger_local_id"] == "q1"

    other = client.get(f"{MODULES}/{second['id']}").get_json()
    assert other["questions"][0]["id"] == shared["id"]
    assert other["questions"][0]["question_text"] == shared["question_text"]
    count = client.get(f"/api/fragebogen/questions/{shared['id']}/module-count").get_json()
    assert count["module_count"] == 1


def test_target_before_trigger_is_rejected(client):
    resp = client.post(MODULES, json={
        "name": "Falsch",
        "questions": [question_payload("temp-1", "Erste", 0), question_payload("temp-2", "Zweite", 1)],
        "rules": [{"trigger_question_id": "temp-2", "operator": "equals", "trigger_answer": "x",
                   "action": "hide", "target_question_ids": ["temp-1"]}],
    })
    assert resp.status_code == 400
    assert "after its trigger" in resp.get_json()["error"]


def test_duplicate_creates_new_identities(client, make_module):
    module = make_module(rules=SHOW_IF_NO)
    resp = client.post(f"{MODULES}/{module['id']}/duplicate", json={})
    assert resp.status_code == 201
    copy = resp.get_json()
    assert copy["name"] == "Kopie von Platzierung"
    original_ids = {q["id"] for q in module["questions"]}
    copy_ids = {q["id"] for q in copy["questions"]}
    assert not original_ids & copy_ids
    condition = copy["conditions"][0]
    assert {condition["trigger_question_id"], *condition["target_question_ids"]} <= copy_ids


def test_duplicate_as_draft_is_not_persisted(client, make_module):
    module = make_module(rules=SHOW_IF_NO)
    draft = client.post(f"{MODULES}/{module['id']}/duplicate", json={"draft": True, "name": "Entwurf"}).get_json()
    assert draft["id"] is None and draft["name"] == "Entwurf"
    assert all(q["id"].startswith("dup-") for q in draft["questions"])
    assert draft["rules"][0]["trigger_question_id"] == draft["questions"][0]["id"]
    assert len(client.get(MODULES).get_json()) == 1

    # der Editor speichert den Entwurf wie ein neues Modul
    saved = client.post(MODULES, json={"name": draft["name"], "questions": draft["questions"],
                                       "rules": draft["rules"]})
    assert saved.status_code == 201
    assert saved.get_json()["save_summary"]["create"] == 2


def test_permanent_delete_needs_force_when_in_use(client, make_module, make_fragebogen, markets):
    module = make_module()
    assert make_fragebogen([module["id"]], [markets[0]]).status_code == 201

    usage = client.get(f"{MODULES}/{module['id']}/usage").get_json()
    assert usage["active_count"] == 1 and usage["total_usage"] == 1

    resp = client.delete(f"{MODULES}/{module['id']}/permanent?delete_questions=true")
    assert resp.status_code == 409
    assert resp.get_json()["active_count"] == 1

    resp = client.delete(f"{MODULES}/{module['id']}/permanent?delete_questions=true&force=true")
    assert resp.status_code == 200
    assert len(resp.get_json()["deleted_questions"]) == 2
    assert client.get(f"{MODULES}/{module['id']}").status_code == 404
    qid = module["questions"][0]["id"]
    assert client.get(f"/api/fragebogen/questions/{qid}").status_code == 404


def test_permanent_delete_keeps_questions_used_elsewhere(client, make_module):
    first = make_module()
    shared = first["questions"][0]
    second = client.post(MODULES, json={"name": "Zweit", "questions": [dict(shared, order=0)]}).get_json()
    result = client.delete(f"{MODULES}/{second['id']}/permanent?delete_questions=true").get_json()
    assert result["deleted_questions"] == []
    assert client.get(f"/api/fragebogen/questions/{shared['id']}").status_code == 200


def test_list_modules_with_counts_and_soft_delete(client, make_module):
    module = make_module(rules=SHOW_IF_NO)
    listed = client.get(MODULES).get_json()
    assert listed[0]["question_count"] == 2 and listed[0]["rule_count"] == 1
    assert client.delete(f"{MODULES}/{module['id']}").get_json()["archived"] is True
    assert client.get(MODULES).get_json() == []
    assert len(client.get(f"{MODULES}?archived=true").get_json()) == 1


def test_unknown_module_is_json_404(client):
    resp = client.get(f"{MODULES}/nope")
    assert resp.status_code == 404
    assert "error" in resp.get_json()


def test_module_stats(client, make_module, make_fragebogen, markets):
    module = make_module(rules=SHOW_IF_NO)
    fb = make_fragebogen([module["id"]], [markets[0]]).get_json()
    response = client.post("/api/fragebogen/responses", json={
        "fragebogen_id": fb["id"], "gebietsleiter_id": "gl-1", "market_id": markets[0],
    }).get_json()
    qid = module["questions"][0]["id"]
    client.put(f"/api/fragebogen/responses/{response['id']}/answers", json={"answers": {qid: "Ja"}})

    stats = client.get(f"{MODULES}/{module['id']}/stats").get_json()
    assert stats["question_count"] == 2 and stats["rule_count"] == 1
    assert stats["fragebogen_count"] == 1 and stats["answer_count"] == 1
    assert client.get(f"{MODULES}/nope/stats").status_code == 404
