"""
Movie catalog: admin CRUD and the read queries behind browsing.

Every read here is a single filtered, sorted and limited query computed per
request. ``averageRating`` and ``reviews`` are owned by ``reviews`` and are
never taken from client input.
"""

import re
from datetime import datetime
from typing import List, Optional

from loguru import logger
from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database

from database import find_by_id, insert_document, naive_utc, page_meta, paginate, save_document, to_object_id, utcnow
from errors import NotFound, ValidationError

MOVIES = "movies"

REQUIRED_FIELDS = ("title", "genre", "director", "cast", "releaseDate", "runtime", "synopsis")
DERIVED_FIELDS = ("averageRating", "reviews", "_id", "version", "createdAt", "updatedAt")
SUMMARY_PROJECTION = {
    "title": 1, "genre": 1, "director": 1, "cast": 1, "releaseDate": 1,
    "runtime": 1, "synopsis": 1, "averageRating": 1, "coverPhoto": 1,
}
PERSON_PROJECTION = {"name": 1, "biography": 1, "filmography": 1, "awards": 1, "photos": 1}
FEED_LIMIT = 10


def _ref(value, what: str):
    oid = to_object_id(value)
    if oid is None:
        raise ValidationError(f"Invalid {what} ID: {value}")
    return oid


def _normalize(data: dict) -> dict:
    fields = dict(data)
    if fields.get("director") is not None:
        fields["director"] = _ref(fields["director"], "director")
    if fields.get("cast") is not None:
        fields["cast"] = [_ref(actor, "actor") for actor in fields["cast"]]
    if fields.get("releaseDate") is not None:
        fields["releaseDate"] = naive_utc(fields["releaseDate"])
    return fields


def load_movie(db: Database, movie_id, projection: Optional[dict] = None) -> dict:
    movie = find_by_id(db, MOVIES, movie_id, projection)
    if not movie:
        raise NotFound("Movie not found.")
    return movie


def add_movie(db: Database, data: dict) -> dict:
    if any(not data.get(field) for field in REQUIRED_FIELDS):
        raise ValidationError("Please provide all mandatory movie details.")

    fields = _normalize({k: v for k, v in data.items() if k not in DERIVED_FIELDS})
    doc = {
        "trivia": [],
        "goofs": [],
        "soundtrackInfo": [],
        "awards": [],
        "boxOffice": {},
    }
    doc.update({k: v for k, v in fields.items() if v is not None})
    doc["averageRating"] = 0
    doc["reviews"] = []
    insert_document(db, MOVIES, doc)
    logger.info(f"[Movies] '{doc['title']}' added ({doc['_id']})")
    return doc


def update_movie(db: Database, movie_id, data: dict) -> dict:
    updates = {k: v for k, v in data.items() if k not in DERIVED_FIELDS}
    if not updates:
        raise ValidationError("No update data provided.")
    movie = find_by_id(db, MOVIES, movie_id)
    if not movie:
        raise NotFound("Movie not found or could not be updated.")
    movie.update(_normalize(updates))
    save_document(db, MOVIES, movie)
    logger.info(f"[Movies] {movie['_id']} updated: {', '.join(sorted(updates))}")
    return movie


def delete_movie(db: Database, movie_id) -> None:
    """Remove a movie. References to it elsewhere are left dangling."""
    movie = find_by_id(db, MOVIES, movie_id, {"_id": 1})
    if not movie:
        raise NotFound("Movie not found or could not be deleted.")
    db[MOVIES].delete_one({"_id": movie["_id"]})
    logger.info(f"[Movies] {movie['_id']} deleted")


def list_movies(db: Database, page: int, limit: int, genre: Optional[str] = None,
                min_rating: Optional[float] = None, max_rating: Optional[float] = None,
                director: Optional[str] = None, cast: Optional[str] = None,
                release_year: Optional[int] = None) -> dict:
    query = {}
    if genre:
        query["genre"] = genre
    if min_rating is not None or max_rating is not None:
        query["averageRating"] = {}
        if min_rating is not None:
            query["averageRating"]["$gte"] = min_rating
        if max_rating is not None:
            query["averageRating"]["$lte"] = max_rating
    if director:
        query["director"] = _ref(director, "director")
    if cast:
        query["cast"] = {"$in": [_ref(a.strip(), "actor") for a in cast.split(",") if a.strip()]}
    if release_year:
        query["releaseDate"] = {"$gte": datetime(release_year, 1, 1), "$lt": datetime(release_year + 1, 1, 1)}

    skip = (page - 1) * limit
    movies = list(db[MOVIES].find(query, SUMMARY_PROJECTION).skip(skip).limit(limit))
    if not movies:
        raise NotFound("No movies found matching the criteria.")
    out = {"movies": movies}
    out.update(page_meta(page, limit, db[MOVIES].count_documents(query), "totalMovies"))
    return out


def _people(db: Database, collection: str, ids: List) -> List[dict]:
    found = {p["_id"]: p for p in db[collection].find({"_id": {"$in": list(ids)}}, PERSON_PROJECTION)}
    return [found[i] for i in ids if i in found]


def _with_people(db: Database, movies: List[dict]) -> List[dict]:
    """Replace director and cast ids with catalog entries; unknown ids drop out."""
    director_ids = [m["director"] for m in movies if m.get("director") is not None]
    actor_ids = [a for m in movies for a in m.get("cast") or []]
    directors = {p["_id"]: p for p in _people(db, "directors", director_ids)}
    actors = {p["_id"]: p for p in _people(db, "actors", actor_ids)}
    for movie in movies:
        if movie.get("director") is not None:
            movie["director"] = directors.get(movie["director"])
        movie["cast"] = [actors[a] for a in movie.get("cast") or [] if a in actors]
    return movies


def get_movie(db: Database, movie_id) -> dict:
    return _with_people(db, [load_movie(db, movie_id)])[0]


def get_cast(db: Database, movie_id) -> List[dict]:
    movie = load_movie(db, movie_id, {"cast": 1})
    cast = _people(db, "actors", movie.get("cast") or [])
    if not cast:
        raise NotFound("No cast or crew found for this movie.")
    return cast


def get_trivia(db: Database, movie_id) -> dict:
    movie = load_movie(db, movie_id, {"title": 1, "trivia": 1})
    return {"movieTitle": movie.get("title"), "trivia": movie.get("trivia") or []}


def paged_detail(db: Database, movie_id, field: str, key: str, page: int, limit: int) -> dict:
    """Paginate one embedded list (goofs, soundtrack, awards) of a movie."""
    movie = load_movie(db, movie_id, {"title": 1, field: 1})
    items = movie.get(field)
    if not isinstance(items, list):
        items = []
    total_key = "total" + key[0].upper() + key[1:]
    result = paginate(items, page, limit, key, total_key)
    if not result[key]:
        raise NotFound(f"No {key} found for the given page.")
    result["movieTitle"] = movie.get("title")
    return result


def get_box_office(db: Database, movie_id) -> dict:
    movie = load_movie(db, movie_id, {"boxOffice": 1})
    box_office = movie.get("boxOffice") or {}
    keys = ("openingWeekend", "totalEarnings", "internationalRevenue")
    if not all(box_office.get(k) for k in keys):
        raise NotFound("Box office information not available for this movie.")
    return {k: box_office[k] for k in keys}


def get_awards_info(db: Database, movie_id) -> list:
    movie = load_movie(db, movie_id, {"awards": 1})
    if not movie.get("awards"):
        raise NotFound("Awards information not available for this movie.")
    return movie["awards"]


def recommendations(db: Database, user_id) -> List[dict]:
    user = find_by_id(db, "users", user_id, {"preferences": 1})
    if not user:
        raise NotFound("User not found.")
    genres = (user.get("preferences") or {}).get("favoriteGenres") or []
    if not genres:
        return []
    return list(
        db[MOVIES].find({"genre": {"$in": genres}}, {"reviews": 0})
        .sort("averageRating", DESCENDING).limit(FEED_LIMIT)
    )


def similar(db: Database, movie_id) -> List[dict]:
    movie = load_movie(db, movie_id, {"genre": 1, "director": 1})
    clauses = []
    if movie.get("genre"):
        clauses.append({"genre": {"$in": movie["genre"]}})
    if movie.get("director") is not None:
        clauses.append({"director": movie["director"]})
    if not clauses:
        return []
    return list(
        db[MOVIES].find({"_id": {"$ne": movie["_id"]}, "$or": clauses}, {"reviews": 0})
        .sort("averageRating", DESCENDING).limit(FEED_LIMIT)
    )


def trending(db: Database) -> List[dict]:
    return list(db[MOVIES].find({"averageRating": {"$gt": 3}}, {"reviews": 0}).limit(FEED_LIMIT))


def top_rated(db: Database, start: Optional[datetime] = None, end: Optional[datetime] = None) -> List[dict]:
    query = {}
    if start and end:
        query["releaseDate"] = {"$gte": naive_utc(start), "$lte": naive_utc(end)}
    return list(db[MOVIES].find(query, {"reviews": 0}).sort("averageRating", DESCENDING).limit(FEED_LIMIT))


def search(db: Database, title: Optional[str] = None, genre: Optional[str] = None,
           director: Optional[str] = None, actor: Optional[str] = None) -> List[dict]:
    criteria = {}
    if title:
        criteria["title"] = {"$regex": re.escape(title), "$options": "i"}
    if genre:
        criteria["genre"] = {"$regex": re.escape(genre), "$options": "i"}
    if director:
        found = db["directors"].find_one({"name": director}, {"_id": 1})
        if found:
            criteria["director"] = found["_id"]
    if actor:
        found = db["actors"].find_one({"name": actor}, {"_id": 1})
        if found:
            criteria["cast"] = {"$in": [found["_id"]]}
    projection = {"title": 1, "genre": 1, "director": 1, "cast": 1, "releaseDate": 1}
    return _with_people(db, list(db[MOVIES].find(criteria, projection)))


def advanced_filter(db: Database, decade: Optional[str] = None, age_rating: Optional[str] = None) -> List[dict]:
    criteria = {}
    if decade:
        match = re.match(r"\d{4}", decade.strip())
        if match:
            start_year = int(match.group(0))
            criteria["releaseDate"] = {"$gte": datetime(start_year, 1, 1), "$lt": datetime(start_year + 10, 1, 1)}
    if age_rating:
        criteria["ageRating"] = {"$regex": re.escape(age_rating), "$options": "i"}
    return list(db[MOVIES].find(criteria, {"title": 1, "releaseDate": 1, "ageRating": 1}))


def top_of_month(db: Database) -> List[dict]:
    now = utcnow()
    start = datetime(now.year, now.month, 1)
    end = datetime(now.year + 1, 1, 1) if now.month == 12 else datetime(now.year, now.month + 1, 1)
    return list(
        db[MOVIES].find({"releaseDate": {"$gte": start, "$lt": end}}, {"title": 1, "releaseDate": 1, "averageRating": 1})
        .sort("averageRating", DESCENDING).limit(FEED_LIMIT)
    )


def top_by_genre(db: Database, genre: Optional[str]) -> List[dict]:
    if not genre:
        raise ValidationError("Genre parameter is required.")
    return list(
        db[MOVIES].find({"genre": {"$in": [genre]}}, {"title": 1, "genre": 1, "averageRating": 1, "releaseDate": 1})
        .sort("averageRating", DESCENDING).limit(FEED_LIMIT)
    )


def upcoming(db: Database) -> List[dict]:
    return list(
        db[MOVIES].find({"releaseDate": {"$gte": utcnow()}}, {"title": 1, "genre": 1, "releaseDate": 1, "director": 1, "cast": 1})
        .sort("releaseDate", ASCENDING).limit(FEED_LIMIT)
    )
