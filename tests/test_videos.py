from datetime import timedelta

from marketplace.database.base import utcnow
from marketplace.database.models import Video
from tests.conftest import auth_headers


async def test_list_shows_only_published_public_videos(client, make_user, make_video):
    creator = await make_user("CREATOR")
    published = await make_video(creator)
    await make_video(creator, status="DRAFT")
    await make_video(creator, is_public=False)

    response = await client.get("/api/videos")

    assert response.status_code == 200
    body = response.json()
    assert [video["id"] for video in body["videos"]] == [published.id]
    assert body["pagination"] == {
        "page": 1, "limit": 20, "total": 1, "totalPages": 1, "hasNext": False, "hasPrev": False,
    }


async def test_list_filters_sorts_and_paginates(client, make_user, make_video):
    creator = await make_user("CREATOR")
    now = utcnow()
    old = await make_video(creator, category="NATURE", views=500, created_at=now - timedelta(days=2))
    new = await make_video(creator, category="NATURE", views=10, created_at=now)
    await make_video(creator, category="ABSTRACT", created_at=now - timedelta(days=1))

    nature = await client.get("/api/videos", params={"category": "nature"})
    assert [v["id"] for v in nature.json()["videos"]] == [new.id, old.id]

    popular = await client.get("/api/videos", params={"category": "NATURE", "sortBy": "popular"})
    assert [v["id"] for v in popular.json()["videos"]] == [old.id, new.id]

    second_page = await client.get("/api/videos", params={"limit": 2, "page": 2})
    assert len(second_page.json()["videos"]) == 1
    assert second_page.json()["pagination"]["hasPrev"] is True
    assert second_page.json()["pagination"]["totalPages"] == 2


async def test_list_searches_title_and_tags(client, make_user, make_video):
    creator = await make_user("CREATOR")
    tagged = await make_video(creator, title="Untitled", tags=["aurora"])
    await make_video(creator, title="Desert", tags=["sand"])

    response = await client.get("/api/videos", params={"search": "AURORA"})

    assert [v["id"] for v in response.json()["videos"]] == [tagged.id]


async def test_invalid_query_parameter_is_400(client):
    response = await client.get("/api/videos", params={"limit": 0})

    assert response.status_code == 400
    assert "limit" in response.json()["error"]


async def test_video_detail_counts_views_for_signed_in_viewers(client, make_user, make_video):
    creator = await make_user("CREATOR")
    viewer = await make_user()
    video = await make_video(creator)

    anonymous = await client.get(f"/api/videos/{video.id}")
    assert anonymous.json()["views"] == 0

    seen = await client.get(f"/api/videos/{video.id}", headers=auth_headers(viewer))
    assert seen.json()["views"] == 1
    assert seen.json()["likedByMe"] is False
    assert seen.json()["ownedLicenses"] == []

    own = await client.get(f"/api/videos/{video.id}", headers=auth_headers(creator))
    assert own.json()["views"] == 1


async def test_drafts_are_hidden_from_everyone_but_the_creator(client, make_user, make_video):
    creator = await make_user("CREATOR")
    viewer = await make_user()
    draft = await make_video(creator, status="DRAFT")

    hidden = await client.get(f"/api/videos/{draft.id}", headers=auth_headers(viewer))
    assert hidden.status_code == 404
    assert hidden.json()["error"] == "Video not found"

    own = await client.get(f"/api/videos/{draft.id}", headers=auth_headers(creator))
    assert own.status_code == 200


async def test_delete_video(client, make_user, make_video, session_factory, storage):
    creator = await make_user("CREATOR")
    other = await make_user("CREATOR")
    video = await make_video(creator, storage_key="videos/a.mp4", thumbnail_key="thumbnails/a.jpg")

    forbidden = await client.delete("/api/videos", params={"id": video.id}, headers=auth_headers(other))
    assert forbidden.status_code == 403

    missing_id = await client.delete("/api/videos", headers=auth_headers(creator))
    assert missing_id.json()["error"] == "Video ID required"

    deleted = await client.delete("/api/videos", params={"id": video.id}, headers=auth_headers(creator))
    assert deleted.json() == {"message": "Video deleted successfully"}
    assert storage.deleted == ["videos/a.mp4", "thumbnails/a.jpg"]

    async with session_factory() as session:
        assert await session.get(Video, video.id) is None


async def test_list_search_treats_wildcards_literally(client, make_user, make_video):
    creator = await make_user("CREATOR")
    organic = await make_video(creator, title="100% organic")
    await make_video(creator)

    percent = await client.get("/api/videos", params={"search": "%"})
    assert [v["id"] for v in percent.json()["videos"]] == [organic.id]

    underscore = await client.get("/api/videos", params={"search": "_"})
    assert underscore.json()["videos"] == []
