from fastapi.testclient import TestClient


def test_create_category(client: TestClient, user_token_headers, test_user):
    response = client.post("/api/categories", json={"name": "Home", "color": "#22c55e"},
                           headers=user_token_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["name"] == "Home"
    assert data["color"] == "#22c55e"
    assert data["user_id"] == test_user.id


def test_create_category_requires_name(client: TestClient, user_token_headers):
    response = client.post("/api/categories", json={"color": "#22c55e"}, headers=user_token_headers)

    assert response.status_code == 400
    assert response.json()["detail"] == "Category name is required"


def test_list_categories(client: TestClient, user_token_headers, test_category):
    response = client.get("/api/categories", headers=user_token_headers)

    assert response.status_code == 200
    assert [c["id"] for c in response.json()] == [test_category.id]


def test_delete_category_keeps_todos(client: TestClient, user_token_headers, test_category):
    """Todos keep pointing at a deleted category."""
    todo = client.post("/api/todos", json={"title": "Filed", "category": test_category.id},
                       headers=user_token_headers).json()

    response = client.delete(f"/api/categories/{test_category.id}", headers=user_token_headers)
    assert response.status_code == 200
    assert response.json() == {"success": True}

    assert client.get("/api/categories", headers=user_token_headers).json() == []
    todos = client.get("/api/todos", headers=user_token_headers).json()
    assert todos[0]["id"] == todo["id"]
    assert todos[0]["category"] == test_category.id
