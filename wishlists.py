"""Wishlist and custom lists embedded in user documents."""

from typing import List, Optional, Tuple

from bson import ObjectId
from loguru import logger
from pymongo.database import Database

from database import find_by_id, paginate, save_document, to_object_id
from errors import Conflict, NotFound, ValidationError

USERS = "users"
MOVIES = "movies"

WISHLIST_PROJECTION = {"title": 1, "genre": 1, "director": 1, "releaseDate": 1, "coverPhoto": 1}
CUSTOM_LIST_PROJECTION = {"title": 1, "genre": 1, "director": 1, "coverPhoto": 1}


def load_user(db: Database, user_id) -> dict:
    user = find_by_id(db, USERS, user_id)
    if not user:
        raise NotFound("User not found.")
    user.setdefault("wishlist", [])
    user.setdefault("customLists", [])
    return user


def resolve_movies(db: Database, movie_ids: List[ObjectId], projection: dict) -> List[dict]:
    """Movie summaries in reference order; dangling references are skipped."""
    if not movie_ids:
        return []
    found = {m["_id"]: m for m in db[MOVIES].find({"_id": {"$in": list(movie_ids)}}, projection)}
    return [found[mid] for mid in movie_ids if mid in found]


def add_to_wishlist(db: Database, user_id, movie_id) -> Tuple[list, bool]:
    """Append a movie to the wishlist. Returns (wishlist, added)."""
    if not movie_id:
        raise ValidationError("Movie ID is required to add to wishlist.")

    user = load_user(db, user_id)
    movie = find_by_id(db, MOVIES, movie_id, {"_id": 1})
    if not movie:
        raise NotFound("Movie not found.")

    if movie["_id"] in user["wishlist"]:
        return user["wishlist"], False

    user["wishlist"].append(movie["_id"])
    save_document(db, USERS, user)
    logger.info(f"[Wishlist] {user['_id']} added {movie['_id']}")
    return user["wishlist"], True


def remove_from_wishlist(db: Database, user_id, movie_id) -> Tuple[list, bool]:
    """Remove a movie by value. Returns (wishlist, removed)."""
    if not movie_id:
        raise ValidationError("Movie ID is required to remove from wishlist.")

    user = load_user(db, user_id)
    movie_oid = to_object_id(movie_id)
    if movie_oid is None or movie_oid not in user["wishlist"]:
        return user["wishlist"], False

    user["wishlist"] = [mid for mid in user["wishlist"] if mid != movie_oid]
    save_document(db, USERS, user)
    logger.info(f"[Wishlist] {user['_id']} removed {movie_oid}")
    return user["wishlist"], True


def get_wishlist(db: Database, user_id, page: int, limit: int) -> dict:
    user = load_user(db, user_id)
    result = paginate(user["wishlist"], page, limit, "wishlist", "totalWishlistItems")
    result["wishlist"] = resolve_movies(db, result["wishlist"], WISHLIST_PROJECTION)
    return result


def create_custom_list(db: Database, user_id, title: Optional[str], description: Optional[str], movie_ids) -> dict:
    if not title or not title.strip() or movie_ids is None or not isinstance(movie_ids, list):
        raise ValidationError("Please provide a list name and an array of movie IDs.")

    movies = []
    for raw in movie_ids:
        oid = to_object_id(raw)
        if oid is None:
            raise ValidationError(f"Invalid movie ID: {raw}")
        movies.append(oid)

    user = load_user(db, user_id)
    # Titles are compared exactly, and only within this user's lists
    if any(existing.get("title") == title for existing in user["customLists"]):
        raise Conflict("A list with this name already exists.")

    new_list = {
        "_id": ObjectId(),
        "title": title,
        "description": description or "",
        "movies": movies,
    }
    user["customLists"].append(new_list)
    save_document(db, USERS, user)
    logger.info(f"[Lists] {user['_id']} created list '{title}' with {len(movies)} movies")

    created = dict(new_list)
    created["movies"] = resolve_movies(db, movies, CUSTOM_LIST_PROJECTION)
    return created


def list_custom_lists(db: Database, user_id, page: int, limit: int) -> dict:
    user = load_user(db, user_id)
    result = paginate(user["customLists"], page, limit, "customLists", "totalLists")
    resolved = []
    for entry in result["customLists"]:
        item = dict(entry)
        item["movies"] = resolve_movies(db, entry.get("movies") or [], CUSTOM_LIST_PROJECTION)
        resolved.append(item)
    result["customLists"] = resolved
    return result
