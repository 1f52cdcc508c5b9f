import pytest
from decimal import Decimal

from techfest.auth_service.users import Role
from techfest.errors import AlreadyRegistered, TeamSizeExceeded

ADMISSION = "techfest.registrations_service.admission"
STORE = "techfest.registrations_service.store"


def test_register_free_event(client, mocker, login_as, user_factory):
    headers = login_as(user_factory(1))
    mock_admit = mocker.patch(f"{ADMISSION}.admit", return_value={"id": 10, "status": "registered"})

    response = client.post(
        "/api/registrations/register",
        json={"eventId": 1, "teamName": " Null Pointers ", "teamMembers": [2, 3]},
        headers=headers,
    )

    assert response.status_code == 200
    assert response.get_json()["status"] == "registered"
    mock_admit.assert_called_once_with(1, 1, "Null Pointers", [2, 3])


def test_register_team_too_large(client, mocker, login_as, user_factory):
    headers = login_as(user_factory(1))
    mocker.patch(f"{ADMISSION}.admit", side_effect=TeamSizeExceeded())

    response = client.post(
        "/api/registrations/register",
        json={"eventId": 1, "teamMembers": [2, 3, 4, 5]},
        headers=headers,
    )

    assert response.status_code == 400
    assert response.get_json()["code"] == "team_size_exceeded"


def test_register_twice(client, mocker, login_as, user_factory):
    headers = login_as(user_factory(1))
    mocker.patch(f"{ADMISSION}.admit", side_effect=AlreadyRegistered("You are already registered for this event"))

    response = client.post("/api/registrations/register", json={"eventId": 1}, headers=headers)

    assert response.status_code == 400
    assert response.get_json()["error"] == "You are already registered for this event"


def test_register_validates_body(client, mocker, login_as, user_factory):
    headers = login_as(user_factory(1))
    mock_admit = mocker.patch(f"{ADMISSION}.admit")

    for body in ({}, {"eventId": "1"}, {"eventId": 1, "teamMembers": "2,3"}, {"eventId": 1, "teamMembers": [True]}):
        response = client.post("/api/registrations/register", json=body, headers=headers)
        assert response.status_code == 400, body
    mock_admit.assert_not_called()


def test_register_requires_login(client):
    response = client.post("/api/registrations/register", json={"eventId": 1})
    assert response.status_code == 401


def test_manual_upi(client, mocker, login_as, user_factory):
    headers = login_as(user_factory(1))
    mock_admit = mocker.patch(f"{ADMISSION}.admit", return_value={"id": 11, "status": "pending_verification"})

    response = client.post(
        "/api/registrations/manual-upi",
        json={"eventId": 2, "transactionId": " 412345678901 ", "amountPaid": 499},
        headers=headers,
    )

    assert response.status_code == 200
    data = response.get_json()
    assert data["registration"]["status"] == "pending_verification"
    assert data["upiUsed"] == "techfest@upi"
    payment = mock_admit.call_args[0][4]
    assert payment.method == "upi_direct"
    assert payment.transaction_id == "412345678901"
    assert payment.amount == Decimal("499")


def test_manual_upi_requires_utr(client, mocker, login_as, user_factory):
    headers = login_as(user_factory(1))
    mock_admit = mocker.patch(f"{ADMISSION}.admit")

    response = client.post(
        "/api/registrations/manual-upi",
        json={"eventId": 2, "amountPaid": 499},
        headers=headers,
    )

    assert response.status_code == 400
    assert "UTR" in response.get_json()["error"]
    mock_admit.assert_not_called()


def test_manual_upi_rejects_negative_amount(client, mocker, login_as, user_factory):
    headers = login_as(user_factory(1))
    mocker.patch(f"{ADMISSION}.admit")

    response = client.post(
        "/api/registrations/manual-upi",
        json={"eventId": 2, "transactionId": "UTR1", "amountPaid": -10},
        headers=headers,
    )

    assert response.status_code == 400


def test_upi_details(client, login_as, user_factory):
    headers = login_as(user_factory(1))

    response = client.get("/api/registrations/upi-details", headers=headers)

    assert response.status_code == 200
    assert response.get_json() == {"upiId": "techfest@upi", "merchantName": "Techfest"}


def test_my_registrations(client, mocker, login_as, user_factory, registration_factory):
    headers = login_as(user_factory(2))
    row = registration_factory(10, user_id=1, team_name="Null Pointers")
    row.update({
        "event_title": "Hack-O-Rama",
        "event_date": None,
        "event_venue": "Main Audi",
        "event_type": "team",
    })
    mocker.patch(f"{STORE}.list_for_user", return_value=[row])
    mocker.patch(f"{STORE}.team_members_by_registration", return_value={10: [2]})

    response = client.get("/api/registrations/my", headers=headers)

    assert response.status_code == 200
    data = response.get_json()
    assert data[0]["teamMembers"] == [2]
    assert data[0]["eventDetails"]["title"] == "Hack-O-Rama"


def test_verify_requires_superior_admin(client, mocker, login_as, user_factory):
    headers = login_as(user_factory(2, role=Role.EVENT_ADMIN, assigned_events=[1]))
    mock_verify = mocker.patch(f"{ADMISSION}.verify")

    response = client.post("/api/registrations/verify/10", headers=headers)

    assert response.status_code == 403
    mock_verify.assert_not_called()


def test_verify_and_reject(client, mocker, login_as, user_factory):
    headers = login_as(user_factory(1, role=Role.SUPERIOR_ADMIN))
    mocker.patch(f"{ADMISSION}.verify", return_value={"id": 10, "status": "paid"})
    mocker.patch(f"{ADMISSION}.reject", return_value={"id": 11, "status": "failed"})

    assert client.post("/api/registrations/verify/10", headers=headers).get_json()["status"] == "paid"
    assert client.post("/api/registrations/reject/11", headers=headers).get_json()["status"] == "failed"


def _listed_row(registration_factory, registration_id, event_id):
    row = registration_factory(registration_id, event_id=event_id)
    row.update({
        "user_name": "Asha Rao",
        "user_email": "a@x.io",
        "user_username": "asha",
        "event_title": "Robo-Wars",
    })
    return row


def test_all_registrations_scoped_for_event_admin(client, mocker, login_as, user_factory, registration_factory):
    headers = login_as(user_factory(2, role=Role.EVENT_ADMIN, assigned_events=[3]))
    mock_list = mocker.patch(f"{STORE}.list_registrations", return_value=(
        [_listed_row(registration_factory, 10, 3)], 1
    ))
    mocker.patch(f"{STORE}.team_members_by_registration", return_value={10: []})

    response = client.get("/api/registrations/all?page=2&limit=5", headers=headers)

    assert response.status_code == 200
    data = response.get_json()
    assert data["total"] == 1
    assert data["page"] == 2
    assert data["items"][0]["userDetails"]["email"] == "a@x.io"
    assert data["items"][0]["eventTitle"] == "Robo-Wars"
    _, kwargs = mock_list.call_args
    assert kwargs["scope"] == frozenset({3})
    assert kwargs["limit"] == 5
    assert kwargs["offset"] == 5


def test_all_registrations_unassigned_event(client, mocker, login_as, user_factory):
    headers = login_as(user_factory(2, role=Role.EVENT_ADMIN, assigned_events=[3]))
    mock_list = mocker.patch(f"{STORE}.list_registrations")

    response = client.get("/api/registrations/all?eventId=4", headers=headers)

    assert response.status_code == 403
    mock_list.assert_not_called()


def test_all_registrations_superior_unscoped(client, mocker, login_as, user_factory):
    headers = login_as(user_factory(1, role=Role.SUPERIOR_ADMIN))
    mock_list = mocker.patch(f"{STORE}.list_registrations", return_value=([], 0))
    mocker.patch(f"{STORE}.team_members_by_registration", return_value={})

    response = client.get("/api/registrations/all?status=paid&limit=500", headers=headers)

    assert response.status_code == 200
    _, kwargs = mock_list.call_args
    assert kwargs["scope"] is None
    assert kwargs["status"] == "paid"
    assert kwargs["limit"] == 100


def test_all_registrations_bad_status(client, login_as, user_factory):
    headers = login_as(user_factory(1, role=Role.SUPERIOR_ADMIN))

    response = client.get("/api/registrations/all?status=refunded", headers=headers)

    assert response.status_code == 400


def test_all_registrations_forbidden_for_participants(client, login_as, user_factory):
    headers = login_as(user_factory(5))

    response = client.get("/api/registrations/all", headers=headers)

    assert response.status_code == 403


@pytest.mark.parametrize("body", [
    {"eventId": 2, "transactionId": 412345678901, "amountPaid": 499},
    ["UTR1"],
])
def test_manual_upi_rejects_malformed_body(client, mocker, login_as, user_factory, body):
    headers = login_as(user_factory(1))
    mock_admit = mocker.patch(f"{ADMISSION}.admit")

    response = client.post("/api/registrations/manual-upi", json=body, headers=headers)

    assert response.status_code == 400
    mock_admit.assert_not_called()
