from datetime import timedelta

from marketplace.database.base import utcnow
from marketplace.database.models import Follow


async def test_trending_feed(client, make_user, make_video, session_factory):
    star = await make_user("CREATOR", username="star")
    newcomer = await make_user("CREATOR", username="newcomer")
    fan = await make_user(username="fan")
    now = utcnow()
    hot = await make_video(star, views=250, category="NATURE", is_featured=True)
    await make_video(star, views=20, category="NATURE")
    await make_video(newcomer, views=120, category="ABSTRACT", created_at=now - timedelta(days=3))
    await make_video(newcomer, views=999, category="ABSTRACT", created_at=now - timedelta(days=60))
    async with session_factory() as session:
        session.add(Follow(follower_id=fan.id, following_id=newcomer.id))
        await session.commit()

    response = await client.get("/api/trending")

    assert response.status_code == 200
    body = response.json()
    assert body["trending"] == {
        "hotVideos": 1,
        "topCategory": "NATURE",
        "risingCreator": "newcomer",
        "risingCreatorFollowers": 1,
    }
    assert [v["views"] for v in body["trendingVideos"]] == [250, 120, 20]
    assert [v["id"] for v in body["featuredVideos"]] == [hot.id]
    assert [c["username"] for c in body["trendingCreators"]] == ["newcomer", "star"]
    assert body["trendingCreators"][0]["totalViews"] == 1119
    assert [c["category"] for c in body["categories"]] == ["NATURE", "ABSTRACT"]
    assert body["stats"] == {"totalVideos": 4, "totalCreators": 2, "totalViews": 1389}


async def test_category_stats(client, make_user, make_video):
    creator = await make_user("CREATOR")
    now = utcnow()
    for _ in range(5):
        await make_video(creator, category="CINEMATIC", views=10)
    await make_video(creator, category="NATURE", views=500, created_at=now - timedelta(days=45))
    await make_video(creator, category="NATURE", views=5, created_at=now - timedelta(days=2))

    response = await client.get("/api/categories/stats")

    body = response.json()
    assert body["trending"] == ["CINEMATIC"]
    assert body["categories"]["NATURE"]["count"] == 2
    assert body["categories"]["NATURE"]["views"] == 505
    assert body["growth"] == {"CINEMATIC": 100, "NATURE": 100}
    assert body["totalCategories"] == 2
    assert body["totalVideos"] == 7
    assert body["totalViews"] == 555


async def test_featured_categories(client, make_user, make_video):
    creator = await make_user("CREATOR")
    featured = await make_video(creator, category="FASHION", is_featured=True)
    viral = await make_video(creator, category="NATURE", views=5000)
    await make_video(creator, category="NATURE", views=10)

    response = await client.get("/api/categories/featured")

    body = response.json()
    assert len(body["categories"]) == 10
    assert [v["id"] for v in body["categories"]["FASHION"]] == [featured.id]
    assert [v["id"] for v in body["categories"]["NATURE"]] == [viral.id]
    assert body["categories"]["ABSTRACT"] == []
    assert body["totalFeatured"] == 1
    assert body["categoriesWithContent"] == 2
