"""
Courses, test results and certificates.
"""
import pytest


@pytest.fixture
def course(client, admin_headers, book):
    response = client.post("/api/admin/courses", json={
        "name": "Clean Code Fundamentals", "description": "Readable code", "associated_book_id": book["id"]
    }, headers=admin_headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_course_crud(client, admin_headers, course):
    assert course["associated_book_title"] == "Clean Code"
    assert [c["name"] for c in client.get("/api/courses").json()] == ["Clean Code Fundamentals"]

    response = client.put(f"/api/admin/courses/{course['id']}", json={"associated_book_id": None},
                          headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["associated_book_title"] is None

    response = client.put(f"/api/admin/courses/{course['id']}", json={"associated_book_id": 9999},
                          headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Book not found"

    response = client.delete(f"/api/admin/courses/{course['id']}", headers=admin_headers)
    assert response.json()["message"] == "Course deleted successfully"
    assert client.get("/api/courses").json() == []


def test_test_results_replace_earlier_score(client, admin_headers, user_headers, reader, course):
    payload = {"user_id": reader["id"], "course_id": course["id"], "score": 55}
    first = client.post("/api/admin/test-results", json=payload, headers=admin_headers)
    assert first.status_code == 200

    second = client.post("/api/admin/test-results", json={**payload, "score": 91.5, "external_test_id": "quiz-7"},
                         headers=admin_headers)
    assert second.json()["id"] == first.json()["id"]

    results = client.get("/api/test-results", headers=user_headers).json()
    assert len(results) == 1
    assert results[0]["score"] == 91.5
    assert results[0]["course_name"] == "Clean Code Fundamentals"

    response = client.post("/api/admin/test-results", json={**payload, "score": 101}, headers=admin_headers)
    assert response.status_code == 422


def test_test_result_for_unknown_user(client, admin_headers, course):
    response = client.post("/api/admin/test-results", json={"user_id": 9999, "course_id": course["id"], "score": 80},
                           headers=admin_headers)
    assert response.status_code == 404
    assert response.json()["error"]["message"] == "User not found"


def test_certificate_lifecycle(client, admin_headers, user_headers, reader, course):
    response = client.post("/api/admin/certificates", json={"user_id": reader["id"], "course_id": course["id"]},
                           headers=admin_headers)
    assert response.status_code == 201
    certificate = response.json()
    code = certificate["validation_code"]
    assert code.startswith("IYKE-")
    assert certificate["username"] == "reader"

    mine = client.get("/api/certificates", headers=user_headers).json()["certificates"]
    assert [c["validation_code"] for c in mine] == [code]

    check = client.get(f"/api/certificates/validate/{code}").json()
    assert check["valid"] is True
    assert check["certificate"]["course_name"] == "Clean Code Fundamentals"

    assert len(client.get("/api/admin/certificates", headers=admin_headers).json()["certificates"]) == 1

    response = client.delete(f"/api/admin/certificates/{certificate['id']}", headers=admin_headers)
    assert response.json()["message"] == "Certificate revoked"
    assert client.get(f"/api/certificates/validate/{code}").json() == {"valid": False, "certificate": None}

    response = client.delete(f"/api/admin/certificates/{certificate['id']}", headers=admin_headers)
    assert response.status_code == 404
