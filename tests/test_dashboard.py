from datetime import datetime, timedelta

from marketplace.database.base import utcnow
from marketplace.database.models import Follow, Like, Purchase
from marketplace.services.dashboard_service import growth, month_start, repeat_customer_rate, revenue_chart
from tests.conftest import auth_headers


def test_growth():
    assert growth(150, 100) == 50.0
    assert growth(5, 0) == 100.0
    assert growth(0, 0) == 0.0
    assert growth(50, 100) == -50.0


def test_month_start_wraps_year():
    assert month_start(datetime(2026, 1, 15), 1) == datetime(2025, 12, 1)
    assert month_start(datetime(2026, 10, 19)) == datetime(2026, 10, 1)


def test_revenue_chart_fills_missing_days():
    today = datetime(2026, 10, 19, 12)
    sales = [(datetime(2026, 10, 19, 9), 9.99), (datetime(2026, 10, 19, 10), 5.01), (datetime(2026, 10, 1), 20.0)]

    points = revenue_chart(sales, today)

    assert len(points) == 30
    assert points[0].date == "2026-09-20"
    assert points[-1].date == "2026-10-19"
    assert points[-1].revenue == 15.0
    assert points[-1].sales == 2
    assert points[-2].revenue == 0.0


def test_repeat_customer_rate():
    assert repeat_customer_rate([]) == 0.0
    assert repeat_customer_rate([2, 1]) == 50.0


async def test_dashboard_aggregates_sales_and_engagement(client, make_user, make_video, session_factory):
    creator = await make_user("CREATOR")
    first_buyer = await make_user()
    second_buyer = await make_user()
    popular = await make_video(creator, views=100, category="NATURE")
    quiet = await make_video(creator, views=50, category="NATURE")
    async with session_factory() as session:
        for index, (buyer, video, amount) in enumerate([
            (first_buyer, popular, 9.99),
            (first_buyer, quiet, 9.99),
            (second_buyer, popular, 49.99),
        ]):
            session.add(Purchase(
                user_id=buyer.id, video_id=video.id, license_type="PERSONAL" if amount < 10 else "COMMERCIAL",
                amount=amount, currency="USD", stripe_payment_id=f"pi_dash_{index}", status="COMPLETED",
            ))
        session.add(Like(user_id=first_buyer.id, video_id=popular.id))
        session.add(Follow(follower_id=second_buyer.id, following_id=creator.id))
        await session.commit()

    response = await client.get("/api/dashboard", headers=auth_headers(creator))

    assert response.status_code == 200
    data = response.json()["data"]
    stats = data["stats"]
    assert stats["totalRevenue"] == 69.97
    assert stats["totalSales"] == 3
    assert stats["totalViews"] == 150
    assert stats["totalVideos"] == 2
    assert stats["totalLikes"] == 1
    assert stats["followers"] == 1
    assert stats["revenueGrowth"] == 100.0

    assert [v["id"] for v in data["topPerformers"]] == [popular.id, quiet.id]
    assert data["topPerformers"][0]["likes"] == 1
    assert len(data["revenueChart"]) == 30
    assert data["revenueChart"][-1]["sales"] == 3

    analytics = data["analytics"]
    assert analytics["topCategories"] == [{"category": "NATURE", "count": 2, "revenue": 0.0}]
    assert analytics["conversionRate"] == 2.0
    assert analytics["repeatCustomers"] == 50.0


async def test_dashboard_is_for_creators_only(client, make_user):
    collector = await make_user()

    response = await client.get("/api/dashboard", headers=auth_headers(collector))

    assert response.status_code == 403
    assert response.json()["error"] == "Only creators can access dashboard"


async def test_dashboard_buckets_sales_by_completion_time(client, make_user, make_video, session_factory):
    creator = await make_user("CREATOR")
    buyer = await make_user()
    video = await make_video(creator)
    async with session_factory() as session:
        session.add(Purchase(
            user_id=buyer.id, video_id=video.id, license_type="PERSONAL", amount=9.99, currency="USD",
            stripe_payment_id="pi_settled_late", status="COMPLETED",
            created_at=utcnow() - timedelta(days=40), completed_at=utcnow(),
        ))
        await session.commit()

    response = await client.get("/api/dashboard", headers=auth_headers(creator))

    data = response.json()["data"]
    assert data["stats"]["revenueGrowth"] == 100.0
    assert data["revenueChart"][-1]["sales"] == 1
    assert data["revenueChart"][-1]["revenue"] == 9.99
