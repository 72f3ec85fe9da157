"""
Catalog search, uploads and admin settings.
"""
import base64
import io

from PIL import Image
from sqlalchemy import select

from conftest import pdf_bytes, png_bytes

from models.models import SearchHistory


def test_search_books_and_tutorials(client, db, make_book, tutorial):
    make_book(title="Python Crash Course", author="Eric Matthes")
    make_book(title="Rust in Action", author="Tim McNamara")

    response = client.get("/api/search", params={"q": " python "})
    assert response.status_code == 200
    body = response.json()
    assert body["query"] == "python"
    assert [b["title"] for b in body["books"]] == ["Python Crash Course"]
    assert [t["title"] for t in body["tutorials"]] == ["Python in 10 minutes"]

    entry = db.execute(select(SearchHistory)).scalar_one()
    assert (entry.search_query, entry.results_count, entry.user_id) == ("python", 2, None)

    assert client.get("/api/search").status_code == 422


def test_upload_file(client, admin_headers):
    response = client.post(
        "/api/admin/upload-file",
        files={"file": ("chapter one.pdf", b"%PDF-1.4 chapter", "application/pdf")},
        headers=admin_headers,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["filePath"].startswith("/uploads/")
    assert body["filePath"].endswith("chapter_one.pdf")
    assert body["size"] == len(b"%PDF-1.4 chapter")

    served = client.get(body["filePath"])
    assert served.status_code == 200
    assert served.content == b"%PDF-1.4 chapter"


def test_upload_rejects_unsupported_type(client, admin_headers):
    response = client.post(
        "/api/admin/upload-file",
        files={"file": ("tool.exe", b"MZ", "application/x-msdownload")},
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["error"]["message"].startswith("Unsupported file type: application/x-msdownload")


def test_upload_requires_admin(client, user_headers):
    response = client.post(
        "/api/admin/upload-file",
        files={"file": ("a.txt", b"text", "text/plain")},
        headers=user_headers,
    )
    assert response.status_code == 403


def test_upload_base64(client, admin_headers):
    payload = "data:text/plain;base64," + base64.b64encode(b"plain notes").decode()
    response = client.post("/api/admin/upload-base64", json={
        "filename": "notes.txt", "content_base64": payload, "mime_type": "text/plain"
    }, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["size"] == len(b"plain notes")

    response = client.post("/api/admin/upload-base64", json={
        "filename": "notes.txt", "content_base64": "%%%", "mime_type": "text/plain"
    }, headers=admin_headers)
    assert response.status_code == 400


def test_scrape_cover(client, admin_headers):
    response = client.post("/api/admin/scrape-cover", json={"url": "https://www.amazon.com/dp/0132350882"},
                           headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["coverUrl"].endswith("/0132350882.01.L.jpg")

    response = client.post("/api/admin/scrape-cover", json={"url": "https://example.com/book"}, headers=admin_headers)
    assert response.status_code == 404
    assert response.json()["error"]["message"] == "Could not extract cover from this URL"


def test_admin_settings(client, admin_headers, user_headers):
    body = client.get("/api/admin/settings", headers=admin_headers).json()
    assert body["app_name"] == "iYKELib API"
    assert body["rate_limiting_enabled"] is False
    assert "application/pdf" in body["allowed_upload_mime_types"]
    assert "jwt_secret_key" not in body

    assert client.get("/api/admin/settings", headers=user_headers).status_code == 403


def _upload(client, admin_headers, name, content, mime_type):
    response = client.post("/api/admin/upload-file", files={"file": (name, content, mime_type)}, headers=admin_headers)
    assert response.status_code == 200, response.text
    return response.json()["filePath"]


def test_generate_thumbnail_from_pdf_and_image(client, admin_headers):
    pdf_path = _upload(client, admin_headers, "manual.pdf", pdf_bytes(), "application/pdf")
    response = client.post("/api/admin/generate-thumbnail", json={"filePath": pdf_path, "type": "pdf"},
                           headers=admin_headers)
    assert response.status_code == 200
    thumbnail_path = response.json()["thumbnailPath"]
    assert thumbnail_path.startswith("/uploads/") and thumbnail_path.endswith("thumbnail_manual.png")
    served = Image.open(io.BytesIO(client.get(thumbnail_path).content))
    assert served.size[0] <= 300 and served.size[1] <= 400

    image_path = _upload(client, admin_headers, "cover.png", png_bytes((800, 800)), "image/png")
    response = client.post("/api/admin/generate-thumbnail", json={"filePath": image_path, "type": "image/png"},
                           headers=admin_headers)
    served = Image.open(io.BytesIO(client.get(response.json()["thumbnailPath"]).content))
    assert served.size == (300, 300)


def test_generate_thumbnail_rejections(client, admin_headers, user_headers):
    response = client.post("/api/admin/generate-thumbnail", json={"filePath": "/uploads/missing.pdf"},
                           headers=admin_headers)
    assert response.status_code == 404

    response = client.post("/api/admin/generate-thumbnail", json={"filePath": "/etc/passwd"}, headers=admin_headers)
    assert response.status_code == 404

    notes = _upload(client, admin_headers, "notes.txt", b"plain text", "text/plain")
    response = client.post("/api/admin/generate-thumbnail", json={"filePath": notes}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Unsupported file type for thumbnail generation"

    fake = _upload(client, admin_headers, "fake.pdf", b"%PDF-1.4 not really", "application/pdf")
    response = client.post("/api/admin/generate-thumbnail", json={"filePath": fake}, headers=admin_headers)
    assert response.status_code == 500
    assert response.json()["error"]["message"] == "Failed to generate thumbnail"

    response = client.post("/api/admin/generate-thumbnail", json={"filePath": notes}, headers=user_headers)
    assert response.status_code == 403
