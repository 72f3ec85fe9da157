"""
Category listing, lookup and admin management.
"""
from models.models import DownloadLog, ContentTypeEnum


def test_create_and_lookup(client, admin_headers):
    response = client.post("/api/admin/categories", json={"name": "Web Development", "description": "Web"},
                           headers=admin_headers)
    assert response.status_code == 201
    category = response.json()
    assert category["slug"] == "web-development"

    by_slug = client.get("/api/categories/web-development")
    assert by_slug.status_code == 200
    assert by_slug.json()["id"] == category["id"]

    by_id = client.get(f"/api/categories/{category['id']}")
    assert by_id.json()["name"] == "Web Development"

    assert client.get("/api/categories/missing").status_code == 404


def test_duplicate_name_conflicts(client, admin_headers, category):
    response = client.post("/api/admin/categories", json={"name": "Programming"}, headers=admin_headers)
    assert response.status_code == 409
    assert response.json()["error"]["message"] == "Category with this name or slug already exists"


def test_blank_name_rejected(client, admin_headers):
    response = client.post("/api/admin/categories", json={"name": "   "}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Category name is required"


def test_list_with_counters(client, db, admin_headers, reader, category, book, tutorial):
    db.add(DownloadLog(user_id=reader["id"], content_id=book["id"], content_type=ContentTypeEnum.book))
    db.commit()

    response = client.post("/api/admin/categories", json={"name": "Databases"}, headers=admin_headers)
    assert response.status_code == 201

    categories = client.get("/api/categories").json()
    assert [c["name"] for c in categories] == ["Databases", "Programming"]
    programming = categories[1]
    assert programming["bookCount"] == 1
    assert programming["tutorialCount"] == 1
    assert programming["totalDownloads"] == 1
    assert categories[0]["bookCount"] == 0


def test_rename_updates_slug(client, admin_headers, category):
    response = client.put(f"/api/admin/categories/{category.id}", json={"name": "Software Craft"},
                          headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["slug"] == "software-craft"


def test_delete_refused_while_in_use(client, admin_headers, category, book):
    response = client.delete(f"/api/admin/categories/{category.id}", headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Cannot delete category: it is used by 1 book(s) and 0 tutorial(s)"

    client.delete(f"/api/admin/books/{book['id']}", headers=admin_headers)
    response = client.delete(f"/api/admin/categories/{category.id}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["message"] == "Category deleted successfully"


def test_update_rejects_blank_name_and_slug(client, admin_headers, category):
    response = client.put(f"/api/admin/categories/{category.id}", json={"name": "   "}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Category name is required"

    response = client.put(f"/api/admin/categories/{category.id}", json={"slug": "!!!"}, headers=admin_headers)
    assert response.status_code == 400

    assert client.get("/api/categories/programming").json()["name"] == "Programming"


def test_numeric_slug_lookup(client, admin_headers, category):
    response = client.post("/api/admin/categories", json={"name": "Releases", "slug": "2024"}, headers=admin_headers)
    assert response.status_code == 201

    found = client.get("/api/categories/2024")
    assert found.status_code == 200
    assert found.json()["name"] == "Releases"

    assert client.get(f"/api/categories/{category.id}").json()["slug"] == "programming"
