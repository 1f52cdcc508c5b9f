from techfest.auth_service.users import Role

USERS = "techfest.auth_service.users"


def test_list_pending_admins(client, mocker, login_as, user_factory):
    headers = login_as(user_factory(1, role=Role.SUPERIOR_ADMIN))
    mock_list = mocker.patch(f"{USERS}.list_admins", return_value=[
        user_factory(4, role=Role.EVENT_ADMIN, is_approved=False),
    ])

    response = client.get("/api/admins?pending=true", headers=headers)

    assert response.status_code == 200
    assert response.get_json()[0]["isApproved"] is False
    assert mock_list.call_args[1] == {"pending_only": True}


def test_list_admins_forbidden_for_event_admin(client, login_as, user_factory):
    headers = login_as(user_factory(2, role=Role.EVENT_ADMIN, assigned_events=[1]))

    response = client.get("/api/admins", headers=headers)

    assert response.status_code == 403
    assert "Superior Admin clearance required" in response.get_json()["error"]


def test_approve_and_assign(client, mocker, login_as, user_factory):
    headers = login_as(user_factory(1, role=Role.SUPERIOR_ADMIN))
    mocker.patch("techfest.events_service.store.existing_event_ids", return_value={1, 2})
    mock_update = mocker.patch(f"{USERS}.update_admin_fields", return_value=user_factory(
        4, role=Role.EVENT_ADMIN, is_approved=True, assigned_events=[1, 2]
    ))

    response = client.put(
        "/api/admins/update/4",
        json={"isApproved": True, "assignedEvents": [1, 2]},
        headers=headers,
    )

    assert response.status_code == 200
    data = response.get_json()
    assert data["isApproved"] is True
    assert data["assignedEvents"] == [1, 2]
    _, kwargs = mock_update.call_args
    assert kwargs == {"role": None, "is_approved": True, "assigned_events": [1, 2]}


def test_assign_unknown_event(client, mocker, login_as, user_factory):
    headers = login_as(user_factory(1, role=Role.SUPERIOR_ADMIN))
    mocker.patch("techfest.events_service.store.existing_event_ids", return_value={1})
    mock_update = mocker.patch(f"{USERS}.update_admin_fields")

    response = client.put("/api/admins/update/4", json={"assignedEvents": [1, 9]}, headers=headers)

    assert response.status_code == 404
    assert "9" in response.get_json()["error"]
    mock_update.assert_not_called()


def test_update_unknown_user(client, mocker, login_as, user_factory):
    headers = login_as(user_factory(1, role=Role.SUPERIOR_ADMIN))
    mocker.patch(f"{USERS}.update_admin_fields", return_value=None)

    response = client.put("/api/admins/update/40", json={"role": "event_admin"}, headers=headers)

    assert response.status_code == 404


def test_cannot_demote_self(client, mocker, login_as, user_factory):
    headers = login_as(user_factory(1, role=Role.SUPERIOR_ADMIN))
    mock_update = mocker.patch(f"{USERS}.update_admin_fields")

    response = client.put("/api/admins/update/1", json={"role": "user"}, headers=headers)

    assert response.status_code == 400
    mock_update.assert_not_called()


def test_update_rejects_bad_fields(client, login_as, user_factory):
    headers = login_as(user_factory(1, role=Role.SUPERIOR_ADMIN))

    for body in ({}, {"role": "root"}, {"isApproved": "yes"}, {"assignedEvents": "1,2"}):
        response = client.put("/api/admins/update/4", json=body, headers=headers)
        assert response.status_code == 400, body


def test_approval_applies_on_next_request(client, mocker, login_as, user_factory, event_factory):
    # Same token, but the stored record changes between requests
    pending = user_factory(4, role=Role.EVENT_ADMIN, is_approved=False, assigned_events=[1])
    approved = user_factory(4, role=Role.EVENT_ADMIN, is_approved=True, assigned_events=[1])
    headers = login_as(pending)
    mocker.patch(f"{USERS}.get_user_by_id", side_effect=[pending, approved])
    mocker.patch("techfest.events_service.store.get_event", return_value=event_factory(1))
    mocker.patch("techfest.events_service.store.update_event", return_value=event_factory(1))

    first = client.put("/api/events/1", json={"venue": "Hall C"}, headers=headers)
    second = client.put("/api/events/1", json={"venue": "Hall C"}, headers=headers)

    assert first.status_code == 403
    assert second.status_code == 200
