"""
Repository layer exports.

This module exports all database repositories for easy import.
"""
from marketplace.repositories import user_db_repository
from marketplace.repositories import creator_db_repository
from marketplace.repositories import video_db_repository
from marketplace.repositories import purchase_db_repository
from marketplace.repositories import tip_db_repository
from marketplace.repositories import subscription_db_repository
from marketplace.repositories import collection_db_repository
from marketplace.repositories import like_db_repository
from marketplace.repositories import follow_db_repository
from marketplace.repositories import counter_mutation_db_repository
from marketplace.repositories import stats_db_repository

__all__ = [
    'user_db_repository',
    'creator_db_repository',
    'video_db_repository',
    'purchase_db_repository',
    'tip_db_repository',
    'subscription_db_repository',
    'collection_db_repository',
    'like_db_repository',
    'follow_db_repository',
    'counter_mutation_db_repository',
    'stats_db_repository',
]
