"""
Database models package.
All models must be imported here so Alembic can discover them via Base.metadata.
"""
from marketplace.database.models.user import User
from marketplace.database.models.creator import Creator
from marketplace.database.models.video import Video
from marketplace.database.models.purchase import Purchase
from marketplace.database.models.tip import Tip
from marketplace.database.models.subscription import Subscription
from marketplace.database.models.collection import Collection, collection_videos
from marketplace.database.models.engagement import Like, Follow
from marketplace.database.models.counter_mutation import CounterMutation

__all__ = [
    "User",
    "Creator",
    "Video",
    "Purchase",
    "Tip",
    "Subscription",
    "Collection",
    "collection_videos",
    "Like",
    "Follow",
    "CounterMutation",
]
