# tests/integration/test_api_errors.py

from cinema_engine.domain.exceptions import InfrastructureError


def _hold(client, catalog, *labels):
    return client.post(
        "/holds",
        json={
            "screening_id": catalog.screening_id,
            "seat_ids": [catalog.seats[label] for label in labels],
        },
    )


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_seat_already_held_is_conflict(client, catalog):
    assert _hold(client, catalog, "B3", "B4").status_code == 200

    response = _hold(client, catalog, "B3", "B4")

    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "SEAT_ALREADY_HELD"
    assert response.json()["detail"]["seat_ids"] == [catalog.seats["B3"], catalog.seats["B4"]]


def test_selection_rule_errors_are_unprocessable(client, catalog):
    gap = _hold(client, catalog, "B2")
    assert gap.status_code == 422
    assert gap.json()["detail"] == {
        "error": "ISOLATED_SEAT_GAP",
        "message": "Selection leaves seat B1 isolated",
        "row": "B",
        "seat_number": 1,
    }

    couple = _hold(client, catalog, "D1")
    assert couple.status_code == 422
    assert couple.json()["detail"]["error"] == "INCOMPLETE_COUPLE_SEAT"

    too_many = _hold(client, catalog, "A1", "A2", "A3", "A4", "A5", "A6", "B3")
    assert too_many.status_code == 422
    assert too_many.json()["detail"]["error"] == "TOO_MANY_SEATS"


def test_empty_hold_fails_request_validation(client, catalog):
    response = client.post("/holds", json={"screening_id": catalog.screening_id, "seat_ids": []})

    assert response.status_code == 422


def test_unknown_booking_is_not_found(client):
    response = client.post("/bookings/missing/finalize", json={"payment_method": "CARD"})

    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "BOOKING_NOT_FOUND"
    assert client.get("/bookings/missing").status_code == 404


def test_finalize_after_expiry_is_gone(client, catalog, clock):
    booking_id = _hold(client, catalog, "B3", "B4").json()["booking_id"]
    clock.advance(minutes=15)

    response = client.post(f"/bookings/{booking_id}/finalize", json={"payment_method": "CARD"})

    assert response.status_code == 410
    assert response.json()["detail"]["error"] == "HOLD_EXPIRED"


def test_finalize_twice_is_conflict(client, catalog):
    booking_id = _hold(client, catalog, "B3", "B4").json()["booking_id"]
    client.post(f"/bookings/{booking_id}/finalize", json={"payment_method": "CARD"})

    response = client.post(f"/bookings/{booking_id}/finalize", json={"payment_method": "CARD"})

    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "ALREADY_FINALIZED"


def test_cancel_returns_no_content_and_frees_seats(client, catalog):
    booking_id = _hold(client, catalog, "B3", "B4").json()["booking_id"]

    assert client.post(f"/bookings/{booking_id}/cancel").status_code == 204
    assert client.post(f"/bookings/{booking_id}/cancel").status_code == 204
    assert client.get(f"/bookings/{booking_id}").json()["status"] == "CANCELLED"
    assert _hold(client, catalog, "B3", "B4").status_code == 200


def test_sweep_endpoint_reports_released_holds(client, catalog, clock):
    _hold(client, catalog, "B3", "B4")
    clock.advance(minutes=10)

    assert client.post("/holds/sweep").json() == {"released": 1}


def test_payment_failure_notification_cancels(client, catalog):
    booking_id = _hold(client, catalog, "B3", "B4").json()["booking_id"]

    response = client.post(
        "/payments/notifications",
        json={"booking_id": booking_id, "success": False, "reference": "declined"},
    )

    assert response.status_code == 200
    assert response.json()["status"] == "CANCELLED"


def test_check_in_unpaid_ticket_is_conflict(client, catalog):
    code = _hold(client, catalog, "B3", "B4").json()["ticket_codes"][0]

    response = client.post(f"/tickets/{code}/check-in")

    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "TICKET_NOT_PAID"


def test_toggle_endpoint_selects_couple_pair(client, catalog):
    response = client.post(
        f"/screenings/{catalog.screening_id}/selection/toggle",
        json={"seat_id": catalog.seats["D5"], "selection": []},
    )

    assert response.status_code == 200
    assert response.json()["seat_ids"] == [catalog.seats["D5"], catalog.seats["D6"]]


def test_store_outage_is_service_unavailable(client, catalog, reservation_service, monkeypatch):
    def unavailable(*args, **kwargs):
        raise InfrastructureError("Reservation store is unavailable")

    monkeypatch.setattr(reservation_service, "create_hold", unavailable)

    response = _hold(client, catalog, "B3", "B4")

    assert response.status_code == 503
    assert response.json()["detail"]["error"] == "STORE_UNAVAILABLE"


# ---------------------
# SCHEDULING
# ---------------------

def _screening(catalog, start_time, movie_id=None, **extra):
    return {
        "movie_id": movie_id or catalog.short_movie_id,
        "room_id": catalog.room_id,
        "start_time": start_time,
        "base_price": 90,
        **extra,
    }


def test_end_time_endpoint(client, catalog):
    response = client.get(
        f"/movies/{catalog.movie_id}/end-time",
        params={"start_time": "2026-03-14T18:00:00Z"},
    )

    assert response.status_code == 200
    assert response.json()["end_time"] == "2026-03-14T20:00:00+00:00"


def test_schedule_conflict_reports_suggestion(client, catalog):
    response = client.post("/screenings/validate", json=_screening(catalog, "2026-03-14T19:00:00Z"))

    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["error"] == "SCHEDULE_CONFLICT"
    assert [item["id"] for item in detail["conflicts"]] == [catalog.screening_id]
    assert detail["suggestion"] == "2026-03-14T20:30:00+00:00"


def test_create_and_reschedule_screening(client, catalog):
    created = client.post("/screenings", json=_screening(catalog, "2026-03-14T20:30:00Z"))
    assert created.status_code == 201
    screening_id = created.json()["id"]

    moved = client.put(
        f"/screenings/{screening_id}",
        json=_screening(catalog, "2026-03-14T21:00:00Z"),
    )
    assert moved.status_code == 200
    assert moved.json()["end_time"] == "2026-03-14T22:30:00+00:00"


def test_screening_in_other_venue_is_rejected(client, catalog):
    response = client.post(
        "/screenings/validate",
        json=_screening(catalog, "2026-03-14T10:00:00Z", venue_id=catalog.venue_id + 1),
    )

    assert response.status_code == 422
    assert response.json()["detail"]["error"] == "ROOM_NOT_IN_VENUE"


def test_duplicate_screening_is_conflict(client, catalog):
    response = client.post(
        "/screenings",
        json=_screening(catalog, "2026-03-14T18:00:00Z", movie_id=catalog.movie_id),
    )

    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "DUPLICATE_SCREENING"
