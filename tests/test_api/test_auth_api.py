"""End-to-end tests for login, /me and the bearer token gate."""

# Password the conftest `world` fixture gives every seeded account.
TEST_PASSWORD = "Password123!"


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_login_returns_token_and_user(client, world):
    response = client.post(
        "/auth/login",
        json={"username_or_email": "ed", "password": TEST_PASSWORD, "comp_code": " acme "},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["token"]
    assert body["user"]["emp_id"] == "ACME-003"
    assert body["user"]["role_name"] == "EMPLOYEE"

    me = client.get("/me", headers={"Authorization": f"Bearer {body['token']}"})
    assert me.status_code == 200
    assert me.json()["comp_code"] == "ACME"


def test_login_by_email(client, world):
    response = client.post(
        "/auth/login",
        json={"username_or_email": "olive@otherco.example.com", "password": TEST_PASSWORD, "comp_code": "OTHERCO"},
    )
    assert response.status_code == 200


def test_login_wrong_company(client, world):
    response = client.post(
        "/auth/login",
        json={"username_or_email": "ed", "password": TEST_PASSWORD, "comp_code": "OTHERCO"},
    )
    assert response.status_code == 401
    assert response.json() == {"error": "Invalid credentials or company"}


def test_login_wrong_password(client, world):
    response = client.post(
        "/auth/login",
        json={"username_or_email": "ed", "password": "nope-nope", "comp_code": "ACME"},
    )
    assert response.status_code == 401


def test_login_disabled_account(client, world, db_session):
    world.accounts["ed"].status = "disabled"
    db_session.commit()

    response = client.post(
        "/auth/login",
        json={"username_or_email": "ed", "password": TEST_PASSWORD, "comp_code": "ACME"},
    )
    assert response.status_code == 401


def test_missing_token(client, world):
    response = client.get("/me")
    assert response.status_code == 401
    assert response.json() == {"error": "Missing token"}


def test_wrong_scheme(client, world):
    assert client.get("/me", headers={"Authorization": "Basic abc"}).status_code == 401


def test_invalid_token(client, world):
    response = client.get("/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json() == {"error": "Invalid token"}


def test_me_reflects_live_role(client, world, token_for):
    response = client.get("/me", headers=token_for("manager"))
    assert response.json()["role_name"] == "MANAGER"
