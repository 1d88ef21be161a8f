def _request(client, driver_headers, category="safety"):
    return client.post(
        "/consent/negotiate",
        json={
            "passenger_id": "passenger-1",
            "category": category,
            "reason": "To share your trip status with your contacts",
        },
        headers=driver_headers,
    )


def test_negotiation_round_trip(client, driver_headers, passenger_headers):
    created = _request(client, driver_headers)

    assert created.status_code == 201
    body = created.json()
    assert body["status"] == "pending"
    assert body["message"] == "Sarah would like to see your safety."

    answered = client.patch(
        "/consent/negotiate",
        json={"negotiation_id": body["negotiation_id"], "approved": True},
        headers=passenger_headers,
    )

    assert answered.status_code == 200
    assert answered.json()["status"] == "approved"

    grants = client.get("/consent/grants", headers=passenger_headers).json()["grants"]
    assert [(g["driver_id"], g["category"]) for g in grants] == [("driver-verified", "safety")]

    view = client.get(
        "/driver-view",
        params={"passenger_id": "passenger-1", "driver_rating": 4.6},
        headers=driver_headers,
    ).json()
    assert "safety" in view["access_level"]["consent_granted_extra"]


def test_respond_by_driver_and_category(client, driver_headers, passenger_headers):
    _request(client, driver_headers, category="special_needs")

    answered = client.patch(
        "/consent/negotiate",
        json={"driver_id": "driver-verified", "category": "special_needs", "approved": False},
        headers=passenger_headers,
    )

    assert answered.status_code == 200
    assert answered.json()["status"] == "denied"
    assert client.get("/consent/grants", headers=passenger_headers).json()["grants"] == []


def test_respond_needs_a_target(client, passenger_headers):
    response = client.patch(
        "/consent/negotiate",
        json={"approved": True},
        headers=passenger_headers,
    )

    assert response.status_code == 422


def test_ineligible_driver_forbidden(client, headers_for):
    response = _request(client, headers_for("driver-low", "driver"))

    assert response.status_code == 403
    assert response.json()["detail"] == "Driver rating must be 4.5+ to request additional access"


def test_unknown_category_bad_request(client, driver_headers):
    response = _request(client, driver_headers, category="bank_details")

    assert response.status_code == 400


def test_passenger_cannot_request(client, passenger_headers):
    response = _request(client, passenger_headers)

    assert response.status_code == 403


def test_other_passenger_cannot_answer(client, driver_headers, headers_for):
    negotiation_id = _request(client, driver_headers).json()["negotiation_id"]

    response = client.patch(
        "/consent/negotiate",
        json={"negotiation_id": negotiation_id, "approved": True},
        headers=headers_for("passenger-2", "passenger"),
    )

    assert response.status_code == 403


def test_answering_twice_conflicts(client, driver_headers, passenger_headers):
    negotiation_id = _request(client, driver_headers).json()["negotiation_id"]
    payload = {"negotiation_id": negotiation_id, "approved": False}

    client.patch("/consent/negotiate", json=payload, headers=passenger_headers)
    second = client.patch("/consent/negotiate", json=payload, headers=passenger_headers)

    assert second.status_code == 409


def test_unknown_negotiation_not_found(client, passenger_headers):
    response = client.patch(
        "/consent/negotiate",
        json={"negotiation_id": "missing", "approved": True},
        headers=passenger_headers,
    )

    assert response.status_code == 404


def test_read_negotiation_visible_to_parties_only(
    client, driver_headers, passenger_headers, headers_for
):
    negotiation_id = _request(client, driver_headers).json()["negotiation_id"]

    as_driver = client.get(f"/consent/negotiations/{negotiation_id}", headers=driver_headers)
    as_passenger = client.get(f"/consent/negotiations/{negotiation_id}", headers=passenger_headers)
    as_stranger = client.get(
        f"/consent/negotiations/{negotiation_id}",
        headers=headers_for("passenger-2", "passenger"),
    )

    assert as_driver.status_code == 200
    assert as_driver.json()["status"] == "requested"
    assert as_passenger.status_code == 200
    assert as_stranger.status_code == 404


def test_revoke_grant(client, driver_headers, passenger_headers):
    negotiation_id = _request(client, driver_headers).json()["negotiation_id"]
    client.patch(
        "/consent/negotiate",
        json={"negotiation_id": negotiation_id, "approved": True},
        headers=passenger_headers,
    )

    first = client.delete("/consent/grants/driver-verified/safety", headers=passenger_headers)
    second = client.delete("/consent/grants/driver-verified/safety", headers=passenger_headers)

    assert first.json() == {"revoked": True, "driver_id": "driver-verified", "category": "safety"}
    assert second.json()["revoked"] is False
    status = client.get(f"/consent/negotiations/{negotiation_id}", headers=passenger_headers)
    assert status.json()["status"] == "revoked"


def test_complete_ride_expires_grants(client, driver_headers, passenger_headers):
    negotiation_id = _request(client, driver_headers).json()["negotiation_id"]
    client.patch(
        "/consent/negotiate",
        json={"negotiation_id": negotiation_id, "approved": True},
        headers=passenger_headers,
    )

    response = client.post("/consent/rides/driver-verified/complete", headers=passenger_headers)

    assert response.status_code == 200
    assert response.json() == {"expired_grants": 1}
    assert client.get("/consent/grants", headers=passenger_headers).json()["grants"] == []
