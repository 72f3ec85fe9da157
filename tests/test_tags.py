"""
Tag management and content tagging.
"""


def test_create_list_and_usage(client, admin_headers, book, tutorial):
    response = client.post("/api/admin/tags", json={"name": "Python"}, headers=admin_headers)
    assert response.status_code == 201
    assert response.json()["slug"] == "python"

    response = client.post("/api/admin/tags", json={"name": "Python"}, headers=admin_headers)
    assert response.status_code == 409
    assert response.json()["error"]["message"] == "Tag with name 'Python' already exists"

    response = client.put(f"/api/admin/tags/content/tutorial/{tutorial['id']}",
                          json={"tag_names": ["python", "Beginner Friendly"]}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json() == {"content_type": "tutorial", "content_id": tutorial["id"],
                               "tags": ["Beginner Friendly", "Python"]}

    client.put(f"/api/admin/tags/content/book/{book['id']}", json={"tag_names": ["Python"]}, headers=admin_headers)

    usage = {tag["name"]: tag["usage_count"] for tag in client.get("/api/tags").json()}
    assert usage == {"Beginner Friendly": 1, "Python": 2}


def test_tagging_missing_content(client, admin_headers):
    response = client.put("/api/admin/tags/content/book/9999", json={"tag_names": ["x"]}, headers=admin_headers)
    assert response.status_code == 404
    assert response.json()["error"]["message"] == "Book not found"


def test_rename_and_delete(client, admin_headers, make_book):
    book = make_book(tags=["Pyhton"])
    tag = client.get("/api/tags").json()[0]

    response = client.put(f"/api/admin/tags/{tag['id']}", json={"name": "Python"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["usage_count"] == 1
    assert client.get(f"/api/books/{book['id']}").json()["tags"] == ["Python"]

    response = client.delete(f"/api/admin/tags/{tag['id']}", headers=admin_headers)
    assert response.json()["message"] == "Tag deleted successfully"
    assert client.get(f"/api/books/{book['id']}").json()["tags"] == []
    assert client.delete(f"/api/admin/tags/{tag['id']}", headers=admin_headers).status_code == 404
