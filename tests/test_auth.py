from conftest import PASSWORD, auth_headers


def login(client, email, password=PASSWORD, role=None):
    body = {"email": email, "password": password}
    if role:
        body["role"] = role
    return client.post("/api/v1/auth/login", json=body)


def test_login_returns_session(client, employee):
    response = login(client, "John.Smith@acme.com")

    assert response.status_code == 200
    data = response.json()
    assert data["access_token"]
    assert data["refresh_token"]
    assert data["token_type"] == "bearer"
    assert data["expires_in"] == 3600
    assert data["user"]["email"] == "john.smith@acme.com"
    assert data["user"]["role"] == "employee"
    assert data["user"]["permissions"] == ["approve_visitor", "pre_approve", "view_dashboard"]
    assert data["user"]["last_login"] is not None


def test_login_with_matching_role(client, guard):
    assert login(client, guard.email, role="guard").status_code == 200
    assert login(client, guard.email, role="admin").status_code == 403


def test_login_wrong_password(client, employee):
    assert login(client, employee.email, password="wrong-pass").status_code == 401
    assert login(client, "nobody@acme.com").status_code == 401


def test_login_inactive_user(client, make_user):
    user = make_user("employee", is_active=False)
    assert login(client, user.email).status_code == 403


def test_signup(client):
    response = client.post(
        "/api/v1/auth/signup",
        json={"email": "new.guard@acme.com", "password": "secret123", "name": "New Guard", "role": "guard"},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["user"]["role"] == "guard"
    assert "register_visitor" in data["user"]["permissions"]

    me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"})
    assert me.json()["email"] == "new.guard@acme.com"


def test_signup_cannot_create_admin(client):
    response = client.post(
        "/api/v1/auth/signup",
        json={"email": "boss@acme.com", "password": "secret123", "name": "Boss", "role": "admin"},
    )
    assert response.status_code == 422


def test_signup_duplicate_email(client, employee):
    response = client.post(
        "/api/v1/auth/signup",
        json={"email": employee.email, "password": "secret123", "name": "Copy"},
    )
    assert response.status_code == 400


def test_signup_short_password(client):
    response = client.post(
        "/api/v1/auth/signup",
        json={"email": "short@acme.com", "password": "123", "name": "Short"},
    )
    assert response.status_code == 422


def test_refresh_rotates_token(client, employee):
    session = login(client, employee.email).json()

    refreshed = client.post("/api/v1/auth/refresh", json={"refresh_token": session["refresh_token"]})
    assert refreshed.status_code == 200
    new_token = refreshed.json()["refresh_token"]
    assert new_token != session["refresh_token"]

    reused = client.post("/api/v1/auth/refresh", json={"refresh_token": session["refresh_token"]})
    assert reused.status_code == 401
    assert client.post("/api/v1/auth/refresh", json={"refresh_token": new_token}).status_code == 200


def test_logout_revokes_refresh_token(client, employee):
    session = login(client, employee.email).json()

    response = client.post("/api/v1/auth/logout", json={"refresh_token": session["refresh_token"]})
    assert response.status_code == 200

    assert client.post("/api/v1/auth/refresh", json={"refresh_token": session["refresh_token"]}).status_code == 401
    # повторный выход тоже успешен
    assert client.post("/api/v1/auth/logout", json={"refresh_token": session["refresh_token"]}).status_code == 200


def test_me(client, admin):
    response = client.get("/api/v1/auth/me", headers=auth_headers(admin))

    assert response.status_code == 200
    assert set(response.json()["permissions"]) == {
        "view_dashboard",
        "register_visitor",
        "approve_visitor",
        "pre_approve",
        "check_in_visitor",
        "view_all_visitors",
        "manage_settings",
    }


def test_me_requires_valid_token(client):
    assert client.get("/api/v1/auth/me").status_code in (401, 403)
    assert client.get("/api/v1/auth/me", headers={"Authorization": "Bearer broken"}).status_code == 401


def test_deactivated_user_token_is_refused(client, db_session, employee):
    headers = auth_headers(employee)
    employee.is_active = 0
    db_session.commit()

    assert client.get("/api/v1/auth/me", headers=headers).status_code == 403


def test_update_preferences(client, employee):
    headers = auth_headers(employee)

    response = client.patch("/api/v1/auth/me/preferences", json={"theme": "dark"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["theme"] == "dark"
    assert client.get("/api/v1/auth/me", headers=headers).json()["theme"] == "dark"

    assert client.patch("/api/v1/auth/me/preferences", json={"theme": "blue"}, headers=headers).status_code == 422
