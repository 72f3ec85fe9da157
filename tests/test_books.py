"""
Book catalog: listing, downloads, thumbnails and admin management.
"""
import base64
import io

from PIL import Image
from sqlalchemy import select, func

from conftest import pdf_bytes, png_bytes

from core.file_utils import delete_file, resolve_upload_path
from models.models import DownloadLog, SearchHistory, UserActivityLog

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-cover"
PDF_BYTES = b"%PDF-1.4 fake book body"


def _b64(content: bytes) -> str:
    return base64.b64encode(content).decode()


def test_create_requires_core_fields(client, admin_headers, category):
    response = client.post("/api/admin/books", json={"title": "No author", "category_id": category.id},
                           headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Title, author, and category are required"


def test_create_checks_book_type_requirements(client, admin_headers, category):
    base = {"title": "T", "author": "A", "category_id": category.id}

    response = client.post("/api/admin/books", json={**base, "book_type": "file"}, headers=admin_headers)
    assert response.json()["error"]["message"] == "File path or file content is required for file books"

    response = client.post("/api/admin/books", json={**base, "book_type": "link"}, headers=admin_headers)
    assert response.json()["error"]["message"] == "External link is required for link books"

    response = client.post("/api/admin/books", json={**base, "book_type": "purchase"}, headers=admin_headers)
    assert response.json()["error"]["message"] == "Purchase link is required for purchase books"

    response = client.post("/api/admin/books", json={**base, "book_type": "link", "external_link": "https://x.io",
                                                     "category_id": 9999}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Category not found"


def test_create_with_tags_and_detail(make_book, client):
    book = make_book(tags=["Clean Code", "craft", "craft"])
    assert book["category_name"] == "Programming"
    assert book["tags"] == ["Clean Code", "craft"]
    assert book["thumbnail"] == f"/api/books/{book['id']}/thumbnail"
    assert book["comment_count"] == 0

    detail = client.get(f"/api/books/{book['id']}").json()
    assert detail["title"] == "Clean Code"
    assert detail["download_count"] == 0

    assert client.get("/api/books/9999").status_code == 404


def test_listing_filters_sort_and_pagination(client, db, make_book, category):
    make_book(title="Alpha", author="Ann")
    make_book(title="Beta", author="Bob", description="about databases")
    make_book(title="Gamma", author="Gil", book_type="purchase", purchase_link="https://shop.example.com/g")

    body = client.get("/api/books").json()
    assert body["total"] == 3
    assert [b["title"] for b in body["books"]] == ["Gamma", "Beta", "Alpha"]

    body = client.get("/api/books", params={"sort": "title", "skip": 1, "limit": 1}).json()
    assert body["total"] == 3
    assert [b["title"] for b in body["books"]] == ["Beta"]
    assert (body["skip"], body["limit"]) == (1, 1)

    body = client.get("/api/books", params={"book_type": "purchase"}).json()
    assert [b["title"] for b in body["books"]] == ["Gamma"]

    body = client.get("/api/books", params={"category": "programming", "sort": "oldest"}).json()
    assert [b["title"] for b in body["books"]] == ["Alpha", "Beta", "Gamma"]

    alpha_id = body["books"][0]["id"]
    body = client.get("/api/books", params={"exclude": alpha_id}).json()
    assert alpha_id not in [b["id"] for b in body["books"]]

    body = client.get("/api/books", params={"search": "databases"}).json()
    assert [b["title"] for b in body["books"]] == ["Beta"]

    entry = db.execute(select(SearchHistory)).scalar_one()
    assert entry.search_query == "databases"
    assert entry.results_count == 1

    assert client.get("/api/books", params={"limit": 0}).status_code == 422
    assert client.get("/api/books", params={"sort": "random"}).status_code == 422


def test_download_requires_auth(client, book):
    assert client.get(f"/api/books/{book['id']}/download").status_code in (401, 403)


def test_download_stored_content_is_logged(client, db, user_headers, make_book):
    book = make_book(title="Stored", book_type="file", file_path="stored.pdf",
                     file_content=_b64(PDF_BYTES), file_type="application/pdf", external_link=None)
    assert book["has_file_content"] is True
    assert book["file_size"] == len(PDF_BYTES)

    response = client.get(f"/api/books/{book['id']}/download", headers=user_headers)
    assert response.status_code == 200
    assert response.content == PDF_BYTES
    assert response.headers["content-disposition"] == 'attachment; filename="stored.pdf"'

    assert db.execute(select(func.count(DownloadLog.id))).scalar() == 1
    actions = db.execute(select(UserActivityLog.action_type)).scalars().all()
    assert "download" in actions

    assert client.get(f"/api/books/{book['id']}", headers=user_headers).json()["download_count"] == 1


def test_download_link_book_redirects(client, user_headers, book):
    response = client.get(f"/api/books/{book['id']}/download", headers=user_headers, follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["location"] == "https://example.com/books/clean-code"


def test_download_missing_book(client, db, user_headers):
    response = client.get("/api/books/9999/download", headers=user_headers)
    assert response.status_code == 404
    assert response.json()["error"]["message"] == "Book not found"
    assert db.execute(select(func.count(DownloadLog.id))).scalar() == 0


def test_thumbnail_sources(client, admin_headers, make_book):
    remote = make_book(title="Remote", cover_image_path="https://covers.example.com/r.jpg")
    response = client.get(f"/api/books/{remote['id']}/thumbnail", follow_redirects=False)
    assert response.status_code == 302

    plain = make_book(title="Plain")
    response = client.get(f"/api/books/{plain['id']}/thumbnail")
    assert response.status_code == 404
    assert response.json()["error"]["message"] == "Thumbnail not found"

    covered = make_book(title="Covered", cover_image_base64=_b64(PNG_BYTES), cover_image_type="image/png")
    assert covered["cover_image_path"].startswith("/uploads/")
    response = client.get(f"/api/books/{covered['id']}/thumbnail")
    assert response.status_code == 200
    assert response.content == PNG_BYTES

    # Without the file on disk the stored blob is served with caching headers
    delete_file(covered["cover_image_path"])
    response = client.get(f"/api/books/{covered['id']}/thumbnail")
    assert response.status_code == 200
    assert response.content == PNG_BYTES
    assert response.headers["cache-control"] == "public, max-age=86400"
    etag = response.headers["etag"]

    response = client.get(f"/api/books/{covered['id']}/thumbnail", headers={"If-None-Match": f"W/{etag}"})
    assert response.status_code == 304


def test_cover_update(client, admin_headers, book):
    response = client.patch(f"/api/books/{book['id']}", json={"cover_image_path": "/img/new.png"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json() == {"message": "Book thumbnail updated successfully", "cover_image_path": "/img/new.png"}

    response = client.patch(f"/api/books/{book['id']}", json={"cover_image_base64": _b64(PNG_BYTES)},
                            headers=admin_headers)
    assert response.json()["message"] == "Cover image and thumbnail updated"

    response = client.patch(f"/api/books/{book['id']}", json={}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Cover image path is required"


def test_update_book(client, admin_headers, book):
    response = client.put(f"/api/admin/books/{book['id']}", json={"title": "Clean Coder", "tags": ["career"]},
                          headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["title"] == "Clean Coder"
    assert response.json()["tags"] == ["career"]

    response = client.put(f"/api/admin/books/{book['id']}", json={}, headers=admin_headers)
    assert response.status_code == 400

    response = client.put(f"/api/admin/books/{book['id']}", json={"external_link": None}, headers=admin_headers)
    assert response.status_code == 400


def test_delete_book_purges_references(client, admin_headers, user_headers, book):
    client.post("/api/ratings", json={"content_type": "book", "content_id": book["id"], "vote": "up"},
                headers=user_headers)
    client.post("/api/comments", json={"content_type": "book", "content_id": book["id"], "comment_text": "Great"},
                headers=user_headers)
    client.post("/api/bookmarks", json={"content_type": "book", "content_id": book["id"]}, headers=user_headers)

    response = client.delete(f"/api/admin/books/{book['id']}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["message"] == "Book deleted successfully"

    assert client.get(f"/api/books/{book['id']}").status_code == 404
    assert client.get("/api/bookmarks", headers=user_headers).json()["bookmarks"] == []
    assert client.delete(f"/api/admin/books/{book['id']}", headers=admin_headers).status_code == 404


def test_recommendations(client, admin_headers, book, tutorial):
    response = client.put(f"/api/admin/books/{book['id']}/recommendations",
                          json={"tutorial_ids": [tutorial["id"], 9999]}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Tutorials not found: [9999]"

    response = client.put(f"/api/admin/books/{book['id']}/recommendations",
                          json={"tutorial_ids": [tutorial["id"]]}, headers=admin_headers)
    assert response.status_code == 200
    assert [t["id"] for t in response.json()] == [tutorial["id"]]

    recommended = client.get(f"/api/books/{book['id']}/recommended-tutorials").json()
    assert [t["title"] for t in recommended] == ["Python in 10 minutes"]


def _image(content):
    return Image.open(io.BytesIO(content))


def test_cover_blob_is_resized(client, make_book):
    book = make_book(title="Large Cover", cover_image_base64=_b64(png_bytes((1200, 900))))
    delete_file(book["cover_image_path"])

    response = client.get(f"/api/books/{book['id']}/thumbnail")
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert _image(response.content).size == (300, 225)


def test_pdf_thumbnail_from_stored_content(client, make_book):
    book = make_book(title="Stored PDF", book_type="file", file_path="stored.pdf",
                     file_content=_b64(pdf_bytes()), file_type="application/pdf", external_link=None)

    response = client.get(f"/api/books/{book['id']}/thumbnail")
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    width, height = _image(response.content).size
    assert width <= 300 and height == 400
    etag = response.headers["etag"]

    response = client.get(f"/api/books/{book['id']}/thumbnail", headers={"If-None-Match": etag})
    assert response.status_code == 304


def test_pdf_thumbnail_from_uploaded_file(client, admin_headers, make_book):
    upload = client.post(
        "/api/admin/upload-file",
        files={"file": ("guide.pdf", pdf_bytes("Guide"), "application/pdf")},
        headers=admin_headers,
    ).json()
    book = make_book(title="Uploaded PDF", book_type="file", file_path=upload["filePath"],
                     file_type="application/pdf", external_link=None)

    response = client.get(f"/api/books/{book['id']}/thumbnail")
    assert response.status_code == 200
    assert _image(response.content).format == "PNG"

    broken = make_book(title="Broken PDF", book_type="file", file_path="broken.pdf",
                       file_content=_b64(PDF_BYTES), file_type="application/pdf", external_link=None)
    response = client.get(f"/api/books/{broken['id']}/thumbnail")
    assert response.status_code == 500
    assert response.json()["error"]["message"] == "Failed to convert PDF to thumbnail"


def test_replaced_and_deleted_uploads_are_removed(client, admin_headers, make_book):
    book = make_book(title="Covered", cover_image_base64=_b64(png_bytes(color="red")))
    first_cover = book["cover_image_path"]
    assert resolve_upload_path(first_cover) is not None

    response = client.patch(f"/api/books/{book['id']}", json={"cover_image_base64": _b64(png_bytes(color="blue"))},
                            headers=admin_headers)
    second_cover = response.json()["cover_image_path"]
    assert second_cover != first_cover
    assert resolve_upload_path(first_cover) is None
    assert resolve_upload_path(second_cover) is not None

    client.delete(f"/api/admin/books/{book['id']}", headers=admin_headers)
    assert resolve_upload_path(second_cover) is None


def test_shared_upload_survives_deleting_one_book(client, admin_headers, make_book):
    cover = _b64(png_bytes(color="green"))
    first = make_book(title="First", cover_image_base64=cover)
    second = make_book(title="Second", cover_image_base64=cover)
    assert first["cover_image_path"] == second["cover_image_path"]

    client.delete(f"/api/admin/books/{first['id']}", headers=admin_headers)
    assert resolve_upload_path(second["cover_image_path"]) is not None
