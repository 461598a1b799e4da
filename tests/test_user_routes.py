def test_bootstrap_then_manage_users(api_client, bearer):
    bootstrap = api_client.post("/users/bootstrap", json={"name": "Ana"}, headers=bearer("admin-token"))

    assert bootstrap.status_code == 201
    assert bootstrap.json()["id"] == "user-admin"
    assert bootstrap.json()["role"] == "admin"

    created = api_client.post(
        "/users",
        json={"id": "user-agent", "email": "agent@example.com", "name": "Maria"},
        headers=bearer("admin-token"),
    )
    assert created.status_code == 201
    assert created.json()["role"] == "agent"

    listed = api_client.get("/users", headers=bearer("agent-token"))
    assert listed.status_code == 200
    assert {user["email"] for user in listed.json()} == {"admin@example.com", "agent@example.com"}

    me = api_client.get("/users/me", headers=bearer("agent-token"))
    assert me.status_code == 200
    assert me.json()["name"] == "Maria"


def test_second_bootstrap_is_rejected(api_client, bearer):
    api_client.post("/users/bootstrap", headers=bearer("admin-token"))

    response = api_client.post("/users/bootstrap", headers=bearer("stranger-token"))

    assert response.status_code == 409
    assert response.json()["detail"] == "BOOTSTRAP_NOT_ALLOWED"


def test_bootstrap_requires_authentication(api_client):
    response = api_client.post("/users/bootstrap")

    assert response.status_code == 401


def test_create_user_requires_admin(api_client, bearer):
    api_client.post("/users/bootstrap", headers=bearer("admin-token"))
    api_client.post(
        "/users",
        json={"id": "user-agent", "email": "agent@example.com", "name": "Maria"},
        headers=bearer("admin-token"),
    )

    as_agent = api_client.post(
        "/users", json={"email": "new@example.com", "name": "New"}, headers=bearer("agent-token")
    )
    as_stranger = api_client.get("/users", headers=bearer("stranger-token"))
    anonymous = api_client.get("/users")

    assert as_agent.status_code == 403
    assert as_stranger.status_code == 403
    assert anonymous.status_code == 401


def test_duplicate_email_returns_conflict(api_client, bearer):
    api_client.post("/users/bootstrap", headers=bearer("admin-token"))

    response = api_client.post(
        "/users", json={"email": "admin@example.com", "name": "Copy"}, headers=bearer("admin-token")
    )

    assert response.status_code == 409
    assert response.json()["detail"] == "EMAIL_ALREADY_EXISTS"


def test_update_user(api_client, bearer):
    api_client.post("/users/bootstrap", headers=bearer("admin-token"))
    created = api_client.post(
        "/users", json={"email": "carlos@example.com", "name": "Carlos"}, headers=bearer("admin-token")
    ).json()

    updated = api_client.patch(
        f"/users/{created['id']}", json={"role": "admin"}, headers=bearer("admin-token")
    )
    empty = api_client.patch(f"/users/{created['id']}", json={}, headers=bearer("admin-token"))
    missing = api_client.patch("/users/missing", json={"name": "Nobody"}, headers=bearer("admin-token"))
    taken = api_client.patch(
        f"/users/{created['id']}", json={"email": "admin@example.com"}, headers=bearer("admin-token")
    )

    assert updated.status_code == 200
    assert updated.json()["role"] == "admin"
    assert empty.status_code == 400
    assert missing.status_code == 404
    assert missing.json()["detail"] == "USER_NOT_FOUND"
    assert taken.status_code == 409


def test_me_without_account_returns_404(api_client, bearer):
    response = api_client.get("/users/me", headers=bearer("stranger-token"))

    assert response.status_code == 404
