from fastapi.testclient import TestClient


def test_login_valid_credentials(client: TestClient, test_user):
    """Test login with valid credentials."""
    login_data = {
        "username": test_user.email,
        "password": "testpassword",
    }

    response = client.post("/api/auth/token", data=login_data)

    assert response.status_code == 200
    data = response.json()
    assert data["access_token"]
    assert data["token_type"] == "bearer"
    assert data["user"]["id"] == test_user.id


def test_login_invalid_credentials(client: TestClient, test_user):
    """Test login with invalid credentials."""
    response = client.post("/api/auth/token", data={"username": "test@example.com", "password": "wrongpassword"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid login credentials"

    response = client.post("/api/auth/token", data={"username": "nobody@example.com", "password": "testpassword"})
    assert response.status_code == 401


def test_user_registration(client: TestClient):
    """Test user registration."""
    user_data = {
        "email": "newuser@example.com",
        "password": "password123",
    }

    response = client.post("/api/auth/signup", json=user_data)

    assert response.status_code == 201
    data = response.json()
    assert data["user"]["email"] == "newuser@example.com"
    assert data["access_token"]

    # Same email again
    response = client.post("/api/auth/signup", json=user_data)
    assert response.status_code == 400
    assert response.json()["detail"] == "User already registered"


def test_get_current_user(client: TestClient, user_token_headers, test_user):
    response = client.get("/api/auth/user", headers=user_token_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["email"] == "test@example.com"
    assert data["id"] == test_user.id


def test_access_without_token(client: TestClient):
    """Protected endpoints reject requests without a bearer token."""
    for path in ("/api/auth/user", "/api/todos", "/api/categories"):
        response = client.get(path)
        assert response.status_code == 401, f"Expected 401 for {path}, got {response.status_code}"

    response = client.put("/api/todos/abc", json={"completed": True})
    assert response.status_code == 401

    response = client.delete("/api/categories/abc")
    assert response.status_code == 401


def test_access_with_invalid_token(client: TestClient):
    response = client.get("/api/todos", headers={"Authorization": "Bearer not-a-token"})

    assert response.status_code == 401
