"""
Reviews embedded in movie documents.

Every path that adds, edits or removes a review recomputes ``averageRating``
from the embedded array before the movie is written back, so the stored
value always equals the mean of the current ratings (0 without reviews).
"""

from typing import Optional

from bson import ObjectId
from loguru import logger
from pymongo.database import Database

from auth import user_cards
from database import find_by_id, find_sub_document, paginate, save_document, to_object_id, utcnow
from errors import Conflict, Forbidden, NotFound, ValidationError

MOVIES = "movies"


def _check_rating(rating):
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationError("Rating must be a number between 1 and 5.")


def _check_text(text):
    if not isinstance(text, str) or not text.strip():
        raise ValidationError("Review text cannot be empty.")


def recompute_average(movie: dict) -> float:
    ratings = [review["rating"] for review in movie.get("reviews") or []]
    movie["averageRating"] = sum(ratings) / len(ratings) if ratings else 0
    return movie["averageRating"]


def load_movie(db: Database, movie_id) -> dict:
    movie = find_by_id(db, MOVIES, movie_id)
    if not movie:
        raise NotFound("Movie not found.")
    movie.setdefault("reviews", [])
    return movie


def _own_review(movie: dict, user_id: ObjectId) -> Optional[dict]:
    for review in movie["reviews"]:
        if review.get("user") == user_id:
            return review
    return None


def add_review(db: Database, movie_id, user_id, rating, text) -> dict:
    _check_rating(rating)
    _check_text(text)

    movie = load_movie(db, movie_id)
    user_oid = to_object_id(user_id)
    if _own_review(movie, user_oid):
        raise Conflict("User has already submitted a review for this movie.")

    review = {
        "_id": ObjectId(),
        "user": user_oid,
        "rating": rating,
        "reviewText": text,
        "likes": 0,
        "createdAt": utcnow(),
    }
    movie["reviews"].append(review)
    recompute_average(movie)
    save_document(db, MOVIES, movie)
    logger.info(f"[Reviews] {user_oid} reviewed movie {movie['_id']} ({rating}); average now {movie['averageRating']:.2f}")
    return review


def update_review(db: Database, movie_id, user_id, rating=None, text=None) -> dict:
    if rating is not None:
        _check_rating(rating)
    if text is not None:
        _check_text(text)

    movie = load_movie(db, movie_id)
    review = _own_review(movie, to_object_id(user_id))
    if not review:
        raise NotFound("Review not found for this user.")

    if rating is not None:
        review["rating"] = rating
    if text is not None:
        review["reviewText"] = text

    recompute_average(movie)
    save_document(db, MOVIES, movie)
    logger.info(f"[Reviews] Review {review['_id']} on movie {movie['_id']} updated; average now {movie['averageRating']:.2f}")
    return review


def delete_review(db: Database, movie_id, requester_id, requester_role: str, review_id=None) -> dict:
    """
    Remove one review and recompute the average.

    Without ``review_id`` the requester's own review is removed. Admins may
    name any review through ``review_id``; other users may only name their own.
    """
    movie = load_movie(db, movie_id)
    requester = to_object_id(requester_id)
    is_admin = requester_role == "admin"

    if review_id is not None:
        review = find_sub_document(movie["reviews"], review_id)
        if review is None:
            raise NotFound("Review not found.")
        if not is_admin and review.get("user") != requester:
            raise Forbidden("Review not found or insufficient permissions.")
    else:
        review = _own_review(movie, requester)
        if review is None:
            if not is_admin:
                raise Forbidden("Review not found or insufficient permissions.")
            raise NotFound("Review not found.")

    movie["reviews"] = [r for r in movie["reviews"] if r.get("_id") != review["_id"]]
    recompute_average(movie)
    save_document(db, MOVIES, movie)
    logger.info(f"[Reviews] Review {review['_id']} removed from movie {movie['_id']} by {requester} ({requester_role})")
    return movie


def _ranked(reviews: list) -> list:
    # Stable: equal rating and likes keep insertion order
    return sorted(reviews, key=lambda r: (r.get("rating", 0), r.get("likes", 0)), reverse=True)


def _with_reviewers(db: Database, reviews: list) -> list:
    cards = user_cards(db, [r.get("user") for r in reviews])
    out = []
    for review in reviews:
        out.append({
            "_id": review.get("_id"),
            "user": cards.get(review.get("user"), {"id": review.get("user"), "name": None, "avatar": None}),
            "rating": review.get("rating"),
            "reviewText": review.get("reviewText"),
            "likes": review.get("likes", 0),
            "createdAt": review.get("createdAt"),
        })
    return out


def list_reviews(db: Database, movie_id, page: int, limit: int) -> dict:
    movie = load_movie(db, movie_id)
    result = paginate(_ranked(movie["reviews"]), page, limit, "reviews", "totalReviews")
    if not result["reviews"]:
        raise NotFound("No reviews found for the given page.")
    result["reviews"] = _with_reviewers(db, result["reviews"])
    return result


def top_reviews(db: Database, movie_id, n: int) -> list:
    movie = load_movie(db, movie_id)
    top = _ranked(movie["reviews"])[:n]
    if not top:
        raise NotFound("No reviews found for this movie.")
    return _with_reviewers(db, top)


def average_rating(db: Database, movie_id) -> dict:
    movie = load_movie(db, movie_id)
    return {
        "averageRating": movie.get("averageRating", 0),
        "totalReviews": len(movie["reviews"]),
    }
