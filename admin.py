"""Site statistics and user management for admins."""

from loguru import logger
from pymongo import DESCENDING
from pymongo.database import Database

from database import find_by_id
from errors import NotFound

PUBLIC_USER_FIELDS = {"name": 1, "email": 1, "role": 1, "createdAt": 1, "avatar": 1}
TOP_N = 5


def site_stats(db: Database) -> dict:
    popular = list(db["movies"].find({}, {"reviews": 0}).sort("averageRating", DESCENDING).limit(TOP_N))
    recent_users = list(db["users"].find({}, PUBLIC_USER_FIELDS).sort("createdAt", DESCENDING).limit(TOP_N))

    # Array lengths are ranked here, one pass over each collection
    movie_reviews = [(len(m.get("reviews") or []), m) for m in db["movies"].find({}, {"title": 1, "reviews": 1})]
    movie_reviews.sort(key=lambda pair: pair[0], reverse=True)
    community_posts = [(len(c.get("posts") or []), c) for c in db["communities"].find({}, {"title": 1, "posts": 1})]
    community_posts.sort(key=lambda pair: pair[0], reverse=True)

    return {
        "popularMovies": popular,
        "totalUsers": db["users"].count_documents({}),
        "recentUsers": recent_users,
        "topReviewedMovies": [
            {"_id": m["_id"], "title": m.get("title"), "reviewCount": count}
            for count, m in movie_reviews[:TOP_N]
        ],
        "activeCommunities": [
            {"_id": c["_id"], "title": c.get("title"), "postCount": count}
            for count, c in community_posts[:TOP_N]
        ],
    }


def list_users(db: Database) -> list:
    return list(db["users"].find({}, PUBLIC_USER_FIELDS))


def delete_user(db: Database, user_id) -> None:
    """Remove an account. Reviews, posts and replies it authored stay in place."""
    user = find_by_id(db, "users", user_id, {"_id": 1})
    if not user:
        raise NotFound("User not found")
    db["users"].delete_one({"_id": user["_id"]})
    logger.info(f"[Admin] User {user['_id']} deleted")
