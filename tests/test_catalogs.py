from datetime import datetime, timedelta

import pytest
from bson import ObjectId

import catalogs
import movies
import notifications
import reviews
import wishlists
from database import utcnow
from errors import NotFound, ValidationError


def movie_payload(**overrides):
    payload = {
        "title": "Heat",
        "genre": ["Crime", "Drama"],
        "director": str(ObjectId()),
        "cast": [str(ObjectId())],
        "releaseDate": datetime(1995, 12, 15),
        "runtime": 170,
        "synopsis": "A thief and a detective.",
    }
    payload.update(overrides)
    return payload


def test_add_movie_starts_without_rating(db):
    movie = movies.add_movie(db, movie_payload(averageRating=4.9, reviews=[{"rating": 5}]))
    stored = db["movies"].find_one({"_id": movie["_id"]})
    assert stored["averageRating"] == 0
    assert stored["reviews"] == []
    assert isinstance(stored["director"], ObjectId)


def test_add_movie_requires_mandatory_fields(db):
    with pytest.raises(ValidationError):
        movies.add_movie(db, movie_payload(synopsis=None))
    with pytest.raises(ValidationError):
        movies.add_movie(db, movie_payload(director="nobody"))


def test_update_movie_ignores_derived_fields(db, make_user):
    movie = movies.add_movie(db, movie_payload())
    reviews.add_review(db, movie["_id"], make_user()["_id"], 2, "Too long")

    updated = movies.update_movie(db, movie["_id"], {"runtime": 171, "averageRating": 5})
    assert updated["runtime"] == 171
    assert db["movies"].find_one({"_id": movie["_id"]})["averageRating"] == 2

    with pytest.raises(ValidationError):
        movies.update_movie(db, movie["_id"], {"averageRating": 5})
    with pytest.raises(NotFound):
        movies.update_movie(db, ObjectId(), {"runtime": 1})


def test_delete_movie_leaves_references_dangling(db, make_user):
    user = make_user()
    movie = movies.add_movie(db, movie_payload())
    actor = catalogs.create_person(db, catalogs.ACTORS, {"name": "Al Pacino", "filmography": [str(movie["_id"])]})
    wishlists.add_to_wishlist(db, user["_id"], str(movie["_id"]))

    movies.delete_movie(db, movie["_id"])

    assert db["users"].find_one({"_id": user["_id"]})["wishlist"] == [movie["_id"]]
    assert db["actors"].find_one({"_id": actor["_id"]})["filmography"] == [movie["_id"]]
    with pytest.raises(NotFound):
        movies.delete_movie(db, movie["_id"])


def test_get_movie_resolves_people(db):
    director = catalogs.create_person(db, catalogs.DIRECTORS, {"name": "Michael Mann"})
    actor = catalogs.create_person(db, catalogs.ACTORS, {"name": "Robert De Niro"})
    movie = movies.add_movie(db, movie_payload(director=str(director["_id"]), cast=[str(actor["_id"]), str(ObjectId())]))

    found = movies.get_movie(db, str(movie["_id"]))
    assert found["director"]["name"] == "Michael Mann"
    assert [a["name"] for a in found["cast"]] == ["Robert De Niro"]


def test_list_movies_filters(db, make_movie):
    make_movie("Heat", genre=["Crime"], averageRating=4.5, releaseDate=datetime(1995, 12, 15))
    make_movie("Alien", genre=["Horror"], averageRating=4.0, releaseDate=datetime(1979, 5, 25))
    make_movie("Cats", genre=["Musical"], averageRating=1.0, releaseDate=datetime(2019, 12, 20))

    result = movies.list_movies(db, 1, 10, min_rating=3.5)
    assert sorted(m["title"] for m in result["movies"]) == ["Alien", "Heat"]
    assert result["totalMovies"] == 2

    result = movies.list_movies(db, 1, 10, release_year=1979)
    assert [m["title"] for m in result["movies"]] == ["Alien"]

    with pytest.raises(NotFound):
        movies.list_movies(db, 1, 10, genre="Western")


def test_feeds(db, make_user, make_movie):
    director = ObjectId()
    heat = make_movie("Heat", genre=["Crime"], director=director, averageRating=4.5)
    make_movie("Collateral", genre=["Thriller"], director=director, averageRating=3.8)
    make_movie("Alien", genre=["Horror"], averageRating=4.0)
    make_movie("Cats", genre=["Musical"], averageRating=1.0)

    user = make_user(preferences={"favoriteGenres": ["Horror", "Crime"]})
    assert [m["title"] for m in movies.recommendations(db, user["_id"])] == ["Heat", "Alien"]
    assert [m["title"] for m in movies.similar(db, heat["_id"])] == ["Collateral"]
    assert sorted(m["title"] for m in movies.trending(db)) == ["Alien", "Collateral", "Heat"]
    assert [m["title"] for m in movies.top_rated(db)][:2] == ["Heat", "Alien"]
    assert movies.recommendations(db, make_user("nogenres")["_id"]) == []

    with pytest.raises(ValidationError):
        movies.top_by_genre(db, None)
    assert [m["title"] for m in movies.top_by_genre(db, "Horror")] == ["Alien"]


def test_search(db, make_movie):
    director = catalogs.create_person(db, catalogs.DIRECTORS, {"name": "Ridley Scott"})
    make_movie("Alien", genre=["Horror"], director=director["_id"])
    make_movie("Aliens", genre=["Action"])

    assert sorted(m["title"] for m in movies.search(db, title="alien")) == ["Alien", "Aliens"]
    assert [m["title"] for m in movies.search(db, director="Ridley Scott")] == ["Alien"]
    assert movies.search(db, title="(unbalanced") == []


def test_paged_details(db, make_movie):
    movie = make_movie(goofs=["g1", "g2", "g3"], soundtrackInfo="not a list")
    page = movies.paged_detail(db, movie["_id"], "goofs", "goofs", 2, 2)
    assert page["goofs"] == ["g3"]
    assert page["totalGoofs"] == 3
    assert page["movieTitle"] == "Heat"
    with pytest.raises(NotFound):
        movies.paged_detail(db, movie["_id"], "soundtrackInfo", "soundtrack", 1, 10)


def test_box_office_requires_all_figures(db, make_movie):
    complete = make_movie(boxOffice={"openingWeekend": 8, "totalEarnings": 187, "internationalRevenue": 120})
    partial = make_movie("Partial", boxOffice={"openingWeekend": 8})
    assert movies.get_box_office(db, complete["_id"])["totalEarnings"] == 187
    with pytest.raises(NotFound):
        movies.get_box_office(db, partial["_id"])


def test_person_crud(db):
    with pytest.raises(ValidationError):
        catalogs.create_person(db, catalogs.ACTORS, {"biography": "No name"})

    actor = catalogs.create_person(db, catalogs.ACTORS, {"name": "Val Kilmer", "photos": ["a.jpg"]})
    updated = catalogs.update_person(db, catalogs.ACTORS, str(actor["_id"]), {"biography": "Chris"})
    assert updated["biography"] == "Chris"
    assert updated["photos"] == ["a.jpg"]

    catalogs.delete_person(db, catalogs.ACTORS, actor["_id"])
    with pytest.raises(NotFound):
        catalogs.get_person(db, catalogs.ACTORS, actor["_id"])


def test_news_crud(db):
    with pytest.raises(ValidationError, match="author"):
        catalogs.create_news(db, {"title": "Festival", "content": "Lineup announced"})

    news = catalogs.create_news(db, {"title": " Festival ", "content": "Lineup", "author": "Desk"})
    assert news["title"] == "Festival"
    assert isinstance(news["publishedDate"], datetime)

    updated = catalogs.update_news(db, news["_id"], {"content": "Full lineup", "title": ""})
    assert updated["content"] == "Full lineup"
    assert updated["title"] == "Festival"

    catalogs.delete_news(db, news["_id"])
    assert catalogs.list_news(db) == []


def test_notifications_announce_each_upcoming_movie_once(db, make_user, make_movie):
    user = make_user()
    make_movie("Soon", releaseDate=utcnow() + timedelta(days=30))
    make_movie("Old", releaseDate=datetime(2001, 1, 1))

    first = notifications.collect(db, user["_id"])
    second = notifications.collect(db, user["_id"])
    assert len(first) == 1
    assert first[0]["message"].startswith("Upcoming Movie: Soon")
    assert first[0]["read"] is False
    assert len(second) == 1

    notifications.set_enabled(db, user["_id"], False)
    make_movie("Later", releaseDate=utcnow() + timedelta(days=60))
    assert len(notifications.collect(db, user["_id"])) == 1

    with pytest.raises(ValidationError):
        notifications.set_enabled(db, user["_id"], "yes")


def test_upcoming_movies(db, make_movie):
    make_movie("Later", releaseDate=utcnow() + timedelta(days=60))
    make_movie("Sooner", releaseDate=utcnow() + timedelta(days=5))
    make_movie("Past", releaseDate=datetime(1999, 1, 1))
    assert [m["title"] for m in movies.upcoming(db)] == ["Sooner", "Later"]


def test_blank_person_name_is_rejected(db):
    with pytest.raises(ValidationError):
        catalogs.create_person(db, catalogs.DIRECTORS, {"name": "   "})
    assert db["directors"].count_documents({}) == 0

    director = catalogs.create_person(db, catalogs.DIRECTORS, {"name": " Sofia Coppola "})
    assert director["name"] == "Sofia Coppola"
    with pytest.raises(ValidationError):
        catalogs.update_person(db, catalogs.DIRECTORS, director["_id"], {"name": "  "})
    assert db["directors"].find_one({"_id": director["_id"]})["name"] == "Sofia Coppola"


def test_blank_news_fields_keep_current_values(db):
    with pytest.raises(ValidationError, match="title"):
        catalogs.create_news(db, {"title": "   ", "content": "Lineup", "author": "Desk"})

    news = catalogs.create_news(db, {"title": "Festival", "content": "Lineup", "author": "Desk"})
    updated = catalogs.update_news(db, news["_id"], {"title": "   ", "author": "\t", "content": "Full lineup"})
    assert updated["title"] == "Festival"
    assert updated["author"] == "Desk"
    assert updated["content"] == "Full lineup"


def test_search_resolves_director_and_cast(db, make_movie):
    director = catalogs.create_person(db, catalogs.DIRECTORS, {"name": "Ridley Scott"})
    actor = catalogs.create_person(db, catalogs.ACTORS, {"name": "Sigourney Weaver"})
    make_movie("Alien", director=director["_id"], cast=[actor["_id"], ObjectId()])

    [found] = movies.search(db, actor="Sigourney Weaver")
    assert found["director"]["name"] == "Ridley Scott"
    assert [a["name"] for a in found["cast"]] == ["Sigourney Weaver"]
