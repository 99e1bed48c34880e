from datetime import datetime

ZEIT = "/api/zeiterfassung"


def _entry(client, **overrides):
    body = {
        "gebietsleiter_id": "gl-1", "market_id": "M1",
        "fahrzeit_von": "07:30", "fahrzeit_bis": "08:10",
        "besuchszeit_von": "08:10", "besuchszeit_bis": "09:00",
        "distanz_km": "12,5", "food_prozent": 40,
    }
    body.update(overrides)
    return client.post(ZEIT, json=body)


def test_create_computes_durations(client, markets):
    resp = _entry(client)
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["fahrzeit_diff"] == 40 and body["fahrzeit_dauer"] == "0:40:00"
    assert body["besuchszeit_diff"] == 50
    assert body["distanz_km"] == 12.5
    assert body["market"]["name"] == "Markt 1"


def test_visit_past_midnight_wraps(client, markets):
    body = _entry(client, besuchszeit_von="23:15", besuchszeit_bis="00:45").get_json()
    assert body["besuchszeit_diff"] == 90
    assert body["besuchszeit_dauer"] == "1:30:00"


def test_validation(client, markets):
    assert _entry(client, market_id=None).status_code == 400
    assert _entry(client, market_id="M99").status_code == 404
    assert _entry(client, fahrzeit_von="7 Uhr").status_code == 400
    assert _entry(client, food_prozent=120).status_code == 400
    assert _entry(client, distanz_km="-3").status_code == 400


def test_lists_and_day_summary(client, markets):
    _entry(client)
    _entry(client, market_id="M2", fahrzeit_von="09:00", fahrzeit_bis="09:20",
           besuchszeit_von="09:20", besuchszeit_bis="10:00", distanz_km=7)
    _entry(client, gebietsleiter_id="gl-2")

    assert len(client.get(f"{ZEIT}/gebietsleiter/gl-1").get_json()) == 2
    assert len(client.get(f"{ZEIT}/gebietsleiter/gl-1?limit=1").get_json()) == 1

    today = datetime.utcnow().date().isoformat()
    assert len(client.get(f"{ZEIT}/admin?start_date={today}&end_date={today}").get_json()) == 3
    assert len(client.get(f"{ZEIT}/admin?gebietsleiter_id=gl-2").get_json()) == 1
    assert client.get(f"{ZEIT}/admin?start_date=2000-01-01&end_date=2000-01-02").get_json() == []

    summary = client.get(f"{ZEIT}/gebietsleiter/gl-1/day/{today}").get_json()
    assert summary["market_count"] == 2
    assert summary["fahrzeit_minutes"] == 60
    assert summary["besuchszeit_minutes"] == 90
    assert summary["besuchszeit_total"] == "1:30:00"
    assert summary["distanz_km"] == 19.5


def test_times_are_stored_as_hh_mm(client, markets):
    body = _entry(client, fahrzeit_von="7:05", fahrzeit_bis="07:45:00",
                  besuchszeit_von="07:45:00", besuchszeit_bis="09:00:00").get_json()
    assert body["fahrzeit_von"] == "07:05" and body["fahrzeit_bis"] == "07:45"
    assert body["besuchszeit_bis"] == "09:00"
    assert body["fahrzeit_diff"] == 40 and body["besuchszeit_diff"] == 75
    stored = client.get(f"{ZEIT}/gebietsleiter/gl-1").get_json()[0]
    assert stored["besuchszeit_von"] == "07:45"


def _visit(client, market, von, bis, gl="gl-1"):
    resp = client.post(ZEIT, json={
        "gebietsleiter_id": gl, "market_id": market, "besuchszeit_von": von, "besuchszeit_bis": bis,
    })
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


def test_day_tracking_computes_travel_and_totals(client, markets):
    started = client.post(f"{ZEIT}/day/start", json={"gebietsleiter_id": "gl-1", "start_time": "07:00"})
    assert started.status_code == 201
    assert started.get_json()["status"] == "active"
    assert client.post(f"{ZEIT}/day/start", json={"gebietsleiter_id": "gl-1"}).status_code == 400

    first = client.post(f"{ZEIT}/day/market-start", json={
        "gebietsleiter_id": "gl-1", "market_id": "M1", "start_time": "07:45",
    }).get_json()
    assert first["visit_order"] == 1 and first["calculated_fahrzeit"] == 45
    visit = _visit(client, "M1", "07:45", "08:30")
    assert visit["visit_order"] == 1 and visit["calculated_fahrzeit"] == 45
    assert visit["day_tracking_id"] == started.get_json()["id"]

    second = client.post(f"{ZEIT}/day/market-start", json={
        "gebietsleiter_id": "gl-1", "market_id": "M2", "start_time": "09:00",
    }).get_json()
    assert second["visit_order"] == 2 and second["calculated_fahrzeit_dauer"] == "0:30:00"
    _visit(client, "M2", "09:00", "10:00")

    pause = client.post(f"{ZEIT}/zusatz", json={"gebietsleiter_id": "gl-1", "entries": [
        {"reason": "unterbrechung", "von": "12:00", "bis": "12:30", "kommentar": "Mittag"},
    ]})
    assert pause.status_code == 201
    assert pause.get_json()[0]["is_work_time_deduction"] is True

    ended = client.post(f"{ZEIT}/day/end", json={"gebietsleiter_id": "gl-1", "end_time": "16:00"})
    assert ended.status_code == 200
    day = ended.get_json()
    assert day["status"] == "completed"
    # 45 + 30 Anfahrt, 6 Stunden Heimfahrt ab 10:00
    assert day["total_fahrzeit"] == 435
    assert day["total_besuchszeit"] == 105
    assert day["total_unterbrechung"] == 30
    assert day["total_arbeitszeit"] == 510
    assert day["markets_visited"] == 2
    assert client.post(f"{ZEIT}/day/end", json={"gebietsleiter_id": "gl-1", "end_time": "17:00"}).status_code == 404

    today = datetime.utcnow().date().isoformat()
    summary = client.get(f"{ZEIT}/day/gl-1/{today}/summary").get_json()
    assert summary["total_fahrzeit"] == "7:15:00"
    assert summary["total_arbeitszeit"] == "8:30:00"
    assert [v["market_name"] for v in summary["market_visits"]] == ["Markt 1", "Markt 2"]
    assert [v["calculated_fahrzeit"] for v in summary["market_visits"]] == [45, 30]

    assert len(client.get(f"{ZEIT}/day/gl-1/{today}/visits").get_json()) == 2
    assert client.get(f"{ZEIT}/day/gl-1/status").get_json()["status"] == "completed"


def test_skipped_first_travel_and_day_not_started(client, markets):
    assert client.post(f"{ZEIT}/day/market-start", json={"gebietsleiter_id": "gl-1", "market_id": "M1"}).status_code == 400
    assert client.get(f"{ZEIT}/day/gl-1/status").status_code == 404
    today = datetime.utcnow().date().isoformat()
    empty = client.get(f"{ZEIT}/day/gl-1/{today}/summary").get_json()
    assert empty["day_tracking"] is None and empty["total_fahrzeit"] == "0:00:00"

    client.post(f"{ZEIT}/day/start", json={"gebietsleiter_id": "gl-1", "start_time": "08:00", "skip_fahrzeit": True})
    first = client.post(f"{ZEIT}/day/market-start", json={
        "gebietsleiter_id": "gl-1", "market_id": "M1", "start_time": "08:30",
    }).get_json()
    assert first["calculated_fahrzeit"] is None
    assert _visit(client, "M1", "08:30", "09:00")["calculated_fahrzeit"] is None

    forced = client.post(f"{ZEIT}/day/end", json={"gebietsleiter_id": "gl-1", "end_time": "09:30", "force_close": True})
    assert forced.get_json()["status"] == "force_closed"
    assert forced.get_json()["total_fahrzeit"] == 30


def test_zusatz_entries(client):
    resp = client.post(f"{ZEIT}/zusatz", json={"gebietsleiter_id": "gl-1", "entries": [
        {"reason": "werkstatt", "von": "13:00", "bis": "13:45"},
        {"reason": "hotel", "reasonLabel": "Hotel Linz", "von": "22:00", "bis": "6:00"},
    ]})
    assert resp.status_code == 201
    werkstatt, hotel = resp.get_json()
    assert werkstatt["reason_label"] == "Werkstatt/Autoreinigung" and werkstatt["zeit_diff"] == 45
    assert hotel["reason_label"] == "Hotel Linz"
    assert hotel["zeit_bis"] == "06:00" and hotel["zeit_dauer"] == "8:00:00"
    assert hotel["day_tracking_id"] is None

    client.post(f"{ZEIT}/zusatz", json={"gebietsleiter_id": "gl-2", "entries": [
        {"reason": "schulung", "von": "09:00", "bis": "12:00"},
    ]})
    today = datetime.utcnow().date().isoformat()
    assert len(client.get(f"{ZEIT}/zusatz/gebietsleiter/gl-1?date={today}").get_json()) == 2
    assert client.get(f"{ZEIT}/zusatz/gebietsleiter/gl-1?date=2000-01-01").get_json() == []
    assert len(client.get(f"{ZEIT}/zusatz?start_date={today}").get_json()) == 3


def test_zusatz_validation_stores_nothing(client):
    def post(*entries):
        return client.post(f"{ZEIT}/zusatz", json={"gebietsleiter_id": "gl-1", "entries": list(entries)})

    assert post().status_code == 400
    assert post({"reason": "werkstatt", "von": "08:00", "bis": "09:00"},
                {"reason": "urlaub", "von": "09:00", "bis": "10:00"}).status_code == 400
    assert post({"reason": "unterbrechung", "von": "12:00", "bis": "12:30"}).status_code == 400
    assert post({"reason": "lager", "von": "12:00"}).status_code == 400
    assert client.get(f"{ZEIT}/zusatz").get_json() == []
