"""
Tutorials: YouTube metadata, listing filters, view counting and admin management.
"""
from sqlalchemy import select

from models.models import ViewLog


def test_youtube_fields_are_derived(tutorial):
    assert tutorial["video_id"] == "dQw4w9WgXcQ"
    assert tutorial["embed_url"] == "https://www.youtube.com/embed/dQw4w9WgXcQ"
    assert tutorial["thumbnail"] == "https://i.ytimg.com/vi/dQw4w9WgXcQ/hqdefault.jpg"
    assert tutorial["duration"] == "10:00"
    assert tutorial["content_type"] == "Video"
    assert tutorial["category_name"] == "Programming"


def test_create_requires_title_and_category(client, admin_headers):
    response = client.post("/api/admin/tutorials", json={"title": "Orphan"}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Title and category are required"


def test_list_filters(client, admin_headers, category, tutorial):
    response = client.post("/api/admin/tutorials", json={
        "title": "Advanced SQL", "category_id": category.id, "difficulty": "Advanced", "content_type": "PDF",
        "file_path": "/uploads/sql.pdf"
    }, headers=admin_headers)
    assert response.status_code == 201
    assert response.json()["video_id"] is None

    body = client.get("/api/tutorials").json()
    assert body["total"] == 2
    assert body["tutorials"][0]["title"] == "Advanced SQL"

    body = client.get("/api/tutorials", params={"difficulty": "Beginner"}).json()
    assert [t["title"] for t in body["tutorials"]] == ["Python in 10 minutes"]

    body = client.get("/api/tutorials", params={"search": "channel"}).json()
    assert [t["title"] for t in body["tutorials"]] == ["Python in 10 minutes"]

    assert client.get("/api/tutorials", params={"category_id": 9999}).json()["total"] == 0


def test_views_are_counted(client, db, user_headers, tutorial):
    response = client.post(f"/api/tutorials/{tutorial['id']}/views")
    assert response.json() == {"success": True, "view_count": 1}

    response = client.post(f"/api/tutorials/{tutorial['id']}/views", headers=user_headers)
    assert response.json()["view_count"] == 2

    user_ids = sorted(view.user_id or 0 for view in db.execute(select(ViewLog)).scalars().all())
    assert user_ids[0] == 0 and user_ids[1] > 0

    assert client.get(f"/api/tutorials/{tutorial['id']}").json()["view_count"] == 2
    assert client.post("/api/tutorials/9999/views").status_code == 404


def test_get_does_not_count_a_view(client, tutorial):
    client.get(f"/api/tutorials/{tutorial['id']}")
    assert client.get(f"/api/tutorials/{tutorial['id']}").json()["view_count"] == 0


def test_update_and_delete(client, admin_headers, tutorial):
    response = client.put(f"/api/admin/tutorials/{tutorial['id']}", json={
        "content_url": "https://youtu.be/9bZkp7q19f0", "embed_url": None
    }, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["video_id"] == "9bZkp7q19f0"
    assert response.json()["embed_url"] == "https://www.youtube.com/embed/9bZkp7q19f0"

    listing = client.get("/api/admin/tutorials", headers=admin_headers).json()
    assert listing["total"] == 1

    response = client.delete(f"/api/admin/tutorials/{tutorial['id']}", headers=admin_headers)
    assert response.json()["message"] == "Tutorial deleted successfully"
    assert client.get(f"/api/tutorials/{tutorial['id']}").status_code == 404


def test_new_content_url_rebuilds_embed(client, admin_headers, tutorial):
    response = client.put(f"/api/admin/tutorials/{tutorial['id']}", json={
        "content_url": "https://youtu.be/aaaaaaaaaaa"
    }, headers=admin_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["video_id"] == "aaaaaaaaaaa"
    assert body["embed_url"] == "https://www.youtube.com/embed/aaaaaaaaaaa"
    assert "aaaaaaaaaaa" in body["thumbnail"]

    response = client.put(f"/api/admin/tutorials/{tutorial['id']}", json={
        "content_url": "https://youtu.be/bbbbbbbbbbb",
        "embed_url": "https://www.youtube-nocookie.com/embed/bbbbbbbbbbb"
    }, headers=admin_headers)
    assert response.json()["embed_url"] == "https://www.youtube-nocookie.com/embed/bbbbbbbbbbb"


def test_iso_duration(client, admin_headers, category, tutorial):
    response = client.post("/api/admin/tutorials", json={
        "title": "SQL joins", "category_id": category.id, "iso_duration": "PT1H2M3S"
    }, headers=admin_headers)
    assert response.status_code == 201
    assert (response.json()["duration_seconds"], response.json()["duration"]) == (3723, "1:02:03")

    response = client.put(f"/api/admin/tutorials/{tutorial['id']}", json={"iso_duration": "PT45S"},
                          headers=admin_headers)
    assert response.json()["duration_seconds"] == 45

    response = client.put(f"/api/admin/tutorials/{tutorial['id']}", json={"iso_duration": "ten minutes"},
                          headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Invalid ISO-8601 duration"
