from datetime import datetime, timedelta
from unittest import mock

import analytics
from analytics import build_dashboard, dashboard, day_bucket, record_order, record_visit

NOW = datetime(2026, 5, 30, 15, 42, 7)
TODAY = datetime(2026, 5, 30)


def bucket(day, visits=0, orders=0, products=(), categories=()):
    return {
        "date": day,
        "visits": visits,
        "orders": orders,
        "products": [{"product_id": p, "name": n, "orders": c} for p, n, c in products],
        "categories": [{"category_id": i, "name": n, "orders": c} for i, n, c in categories],
    }


def test_day_bucket_truncates_to_midnight():
    assert day_bucket(NOW) == TODAY


def test_sparse_window_still_yields_thirty_aligned_points():
    buckets = [
        bucket(TODAY - timedelta(days=10), visits=4, orders=1),
        bucket(TODAY, visits=7, orders=2),
    ]
    result = build_dashboard(buckets, NOW)
    chart = result["chart_data"]
    assert len(chart) == 30
    assert chart[0]["date"] == "2026-05-01"
    assert chart[-1] == {"date": "2026-05-30", "visits": 7, "orders": 2}
    assert chart[19] == {"date": "2026-05-20", "visits": 4, "orders": 1}
    assert sum(1 for p in chart if p["visits"] == 0 and p["orders"] == 0) == 28
    assert result["stats"]["total_visits"] == 11
    assert result["stats"]["total_orders"] == 3


def test_top_entries_sum_across_days_and_keep_first_on_ties():
    buckets = [
        bucket(TODAY - timedelta(days=2),
               products=[("p1", "Lace", 2), ("p2", "Bob", 1)],
               categories=[("c1", "Perruques", 3)]),
        bucket(TODAY - timedelta(days=1),
               products=[("p2", "Bob", 1)],
               categories=[("c2", "Soins", 3)]),
    ]
    stats = build_dashboard(buckets, NOW)["stats"]
    assert stats["top_product"] == {"name": "Lace", "total": 2}
    assert stats["top_category"] == {"name": "Perruques", "total": 3}


def test_empty_window_reports_placeholders():
    stats = build_dashboard([], NOW)["stats"]
    assert stats["top_product"] == {"name": "None", "total": 0}
    assert stats["top_category"] == {"name": "None", "total": 0}
    assert stats["total_visits"] == 0


def test_record_visit_upserts_then_increments(mongo):
    for _ in range(25):
        record_visit(NOW)
    record_visit(NOW + timedelta(days=1))
    docs = list(mongo.analytics.find({}).sort("date", 1))
    assert [(d["date"], d["visits"]) for d in docs] == [(TODAY, 25), (TODAY + timedelta(days=1), 1)]
    assert docs[0]["orders"] == 0
    assert docs[0]["products"] == []


def test_record_visit_is_a_single_atomic_increment():
    fake = mock.MagicMock()
    with mock.patch.object(analytics, "collection", return_value=fake):
        record_visit(NOW)
    fake.find_one_and_update.assert_called_once()
    args, kwargs = fake.find_one_and_update.call_args
    assert args[0] == {"date": TODAY}
    assert args[1]["$inc"] == {"visits": 1}
    assert kwargs["upsert"] is True
    fake.find_one.assert_not_called()
    fake.update_one.assert_not_called()


def test_record_order_appends_then_increments_entries(mongo):
    record_order("p1", "Lace", "c1", "Perruques", now=NOW)
    record_order("p1", "Lace", "c1", "Perruques", now=NOW)
    doc = record_order("p2", "Bob", "c1", "Perruques", now=NOW)

    assert doc["orders"] == 3
    assert doc["visits"] == 0
    assert doc["products"] == [
        {"product_id": "p1", "name": "Lace", "orders": 2},
        {"product_id": "p2", "name": "Bob", "orders": 1},
    ]
    assert doc["categories"] == [{"category_id": "c1", "name": "Perruques", "orders": 3}]


def test_dashboard_reads_the_last_thirty_days(mongo):
    mongo.analytics.insert_one(bucket(TODAY - timedelta(days=30), visits=100))
    mongo.analytics.insert_one(bucket(TODAY - timedelta(days=29), visits=3))
    record_visit(NOW)
    result = dashboard(NOW)
    assert result["stats"]["total_visits"] == 4
    assert result["chart_data"][0]["visits"] == 3


def test_http_endpoints(client, admin_client):
    assert client.post("/api/admin/analytics/visite").json() == {"success": True}
    r = client.post("/api/admin/analytics/commande", json={
        "product_id": "p1", "product_name": "Lace", "category_id": "c1", "category_name": "Perruques",
    })
    assert r.json() == {"success": True}
    assert client.post("/api/admin/analytics/commande", json={"product_name": "x"}).status_code == 400

    r = admin_client.get("/api/admin/analytics/dashboard")
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert len(body["chart_data"]) == 30
    assert body["chart_data"][-1]["visits"] == 1
    assert body["stats"]["top_product"] == {"name": "Lace", "total": 1}


def test_dashboard_requires_admin(client):
    assert client.get("/api/admin/analytics/dashboard").status_code == 401
