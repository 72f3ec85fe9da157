"""
Authentication: signup, signin, profile, refresh and signout.
"""
from conftest import signin, signup, USER_PASSWORD


def test_signup_and_signin(client):
    user = signup(client, "alice")
    assert user["username"] == "alice"
    assert user["role"] == "user"
    assert "password_hash" not in user

    response = client.post("/api/auth/signin", json={"email": "alice@example.com", "password": USER_PASSWORD})
    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["message"] == "Signed in successfully"
    assert body["user"]["last_login"] is not None


def test_signin_accepts_username(client):
    signup(client, "bob")
    assert signin(client, "bob", USER_PASSWORD)


def test_duplicate_signup_conflicts(client):
    signup(client, "carol")

    response = client.post("/api/auth/signup", json={
        "username": "carol2", "email": "carol@example.com", "password": USER_PASSWORD
    })
    assert response.status_code == 409
    assert response.json()["error"]["message"] == "Email already registered"

    response = client.post("/api/auth/signup", json={
        "username": "carol", "email": "other@example.com", "password": USER_PASSWORD
    })
    assert response.status_code == 409
    assert response.json()["error"]["message"] == "Username already taken"


def test_signup_validation(client):
    response = client.post("/api/auth/signup", json={"username": "dd", "email": "bad", "password": "123"})
    assert response.status_code == 422
    assert "error" in response.json()


def test_wrong_password(client):
    signup(client, "dave")
    response = client.post("/api/auth/signin", json={"email": "dave@example.com", "password": "nope-nope"})
    assert response.status_code == 401
    assert response.json()["error"]["message"] == "Invalid email or password"


def test_profile_read_and_update(client, user_headers):
    response = client.get("/api/auth/profile", headers=user_headers)
    assert response.status_code == 200
    assert response.json()["user"]["email"] == "reader@example.com"

    response = client.put("/api/auth/profile", json={"first_name": "Ada", "last_name": "Reader"}, headers=user_headers)
    assert response.status_code == 200
    assert response.json()["user"]["display_name"] == "Ada Reader"

    response = client.put("/api/auth/profile", json={}, headers=user_headers)
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "No fields to update"


def test_profile_email_conflict(client, user_headers):
    signup(client, "erin")
    response = client.put("/api/auth/profile", json={"email": "erin@example.com"}, headers=user_headers)
    assert response.status_code == 409


def test_refresh_moves_session_to_new_token(client, user_headers):
    response = client.post("/api/auth/refresh", headers=user_headers)
    assert response.status_code == 200
    new_headers = {"Authorization": f"Bearer {response.json()['access_token']}"}

    assert client.get("/api/auth/profile", headers=new_headers).status_code == 200
    assert client.get("/api/auth/profile", headers=user_headers).status_code == 401


def test_signout_invalidates_token(client, user_headers):
    response = client.post("/api/auth/signout", headers=user_headers)
    assert response.status_code == 200
    assert response.json()["message"] == "Signed out successfully"

    assert client.get("/api/auth/profile", headers=user_headers).status_code == 401


def test_profile_requires_token(client):
    response = client.get("/api/auth/profile")
    assert response.status_code in (401, 403)


def test_deactivated_account_cannot_sign_in(client, admin_headers, reader):
    response = client.patch(f"/api/admin/users/{reader['id']}/status", json={"is_active": False}, headers=admin_headers)
    assert response.status_code == 200

    response = client.post("/api/auth/signin", json={"email": "reader@example.com", "password": USER_PASSWORD})
    assert response.status_code == 401
    assert response.json()["error"]["message"] == "Account is deactivated"
