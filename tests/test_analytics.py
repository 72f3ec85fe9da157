"""
Admin dashboard analytics, activity logs and search statistics.
"""
from core.text_utils import utcnow


def test_requires_admin(client, user_headers):
    assert client.get("/api/admin/analytics", headers=user_headers).status_code == 403


def test_overview(client, admin_headers, user_headers, book, tutorial):
    client.post(f"/api/tutorials/{tutorial['id']}/views", headers=user_headers)
    client.post(f"/api/tutorials/{tutorial['id']}/views")
    client.get(f"/api/books/{book['id']}/download", headers=user_headers, follow_redirects=False)
    client.post("/api/ratings", json={"content_type": "book", "content_id": book["id"], "vote": "up"},
                headers=user_headers)

    body = client.get("/api/admin/analytics", headers=admin_headers).json()
    assert body["users"]["total"] == 2
    assert body["users"]["newThisMonth"] == 2
    assert body["content"] == {"totalBooks": 1, "totalTutorials": 1, "totalCategories": 1}
    assert body["engagement"] == {"totalViews": 2, "totalDownloads": 1, "totalRatings": 1}

    top = body["topContent"][0]
    assert (top["type"], top["title"], top["views"], top["category"]) == (
        "tutorial", "Python in 10 minutes", 2, "Programming"
    )
    book_entry = next(item for item in body["topContent"] if item["type"] == "book")
    assert book_entry["downloads"] == 1

    assert body["categoryStats"] == [{"name": "Programming", "bookCount": 1, "tutorialCount": 1, "totalViews": 2}]


def test_user_growth_is_cumulative(client, admin_headers, reader):
    growth = client.get("/api/admin/analytics/user-growth", params={"months": 3}, headers=admin_headers).json()
    assert growth == [{"month": utcnow().strftime("%Y-%m"), "newUsers": 2, "totalUsers": 2}]

    assert client.get("/api/admin/analytics/user-growth", params={"months": 0}, headers=admin_headers).status_code == 422


def test_daily_activity(client, admin_headers, user_headers, book, tutorial):
    client.post(f"/api/tutorials/{tutorial['id']}/views", headers=user_headers)
    client.post(f"/api/tutorials/{tutorial['id']}/views", headers=user_headers)
    client.get(f"/api/books/{book['id']}/download", headers=user_headers, follow_redirects=False)

    days = client.get("/api/admin/analytics/daily-activity", headers=admin_headers).json()
    assert days == [{"date": utcnow().strftime("%Y-%m-%d"), "activeUsers": 1, "pageViews": 2, "downloads": 1}]


def test_recent_activity(client, admin_headers, book, tutorial):
    items = client.get("/api/admin/analytics/recent-activity", headers=admin_headers).json()
    assert [item["action"] for item in items] == [
        "New tutorial published: Python in 10 minutes",
        "New book added: Clean Code",
    ]
    assert items[0]["author"] == "System"
    assert items[1]["author"] == "Robert Martin"
    assert items[0]["time"] == "Just now"


def test_activity_logs_and_stats(client, admin_headers, user_headers, reader, book):
    client.post("/api/bookmarks", json={"content_type": "book", "content_id": book["id"]}, headers=user_headers)

    stats = client.get("/api/admin/activity-stats", headers=admin_headers).json()
    assert stats["by_action"]["signup"] == 1
    assert stats["by_action"]["signin"] == 2
    assert stats["by_action"]["bookmark"] == 1
    assert stats["last_24_hours"] == stats["total"]

    logs = client.get("/api/admin/activity-logs", params={"action_type": "bookmark"}, headers=admin_headers).json()
    assert logs["total"] == 1
    assert logs["logs"][0]["username"] == "reader"

    mine = client.get("/api/activity-logs", headers=user_headers).json()
    assert {entry["action_type"] for entry in mine["logs"]} == {"signup", "signin", "bookmark"}
    assert all(entry["user_id"] == reader["id"] for entry in mine["logs"])


def test_search_history(client, admin_headers, book):
    for query in ("python", "python", "sql"):
        client.get("/api/search", params={"q": query})

    stats = client.get("/api/admin/search-history", headers=admin_headers).json()
    assert [(entry["query"], entry["count"]) for entry in stats] == [("python", 2), ("sql", 1)]
