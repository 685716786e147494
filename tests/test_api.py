from bson import ObjectId
from fastapi.testclient import TestClient

import reviews
from database import get_db
from main import app

API = "/api/v1"


def test_root_envelope(client):
    res = client.get("/")
    assert res.status_code == 200
    assert res.json() == {"status": 200, "payload": None, "message": "Movie Catalog API"}


def test_register_login_and_me(client):
    res = client.post(f"{API}/auth/register", json={
        "name": "Ana",
        "email": "Ana@Cinema.org",
        "password": "secret123",
        "favoriteGenres": ["Noir"],
    })
    assert res.status_code == 201
    assert res.json()["payload"]["email"] == "ana@cinema.org"

    again = client.post(f"{API}/auth/register", json={"name": "Ana", "email": "ana@cinema.org", "password": "secret123"})
    assert again.status_code == 409
    assert again.json() == {"status": 409, "errorMessage": "Email already registered"}

    bad = client.post(f"{API}/auth/login", json={"email": "ana@cinema.org", "password": "wrong-one"})
    assert bad.status_code == 401

    res = client.post(f"{API}/auth/login", json={"email": "ana@cinema.org", "password": "secret123"})
    token = res.json()["payload"]["access_token"]

    me = client.get(f"{API}/users/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    payload = me.json()["payload"]
    assert payload["preferences"]["favoriteGenres"] == ["Noir"]
    assert "password_hash" not in payload
    assert isinstance(payload["_id"], str)


def test_register_validation_uses_failure_envelope(client):
    res = client.post(f"{API}/auth/register", json={"name": "Ana", "email": "ana@cinema.org", "password": "123"})
    assert res.status_code == 400
    body = res.json()
    assert body["status"] == 400
    assert "password" in body["errorMessage"]
    assert "payload" not in body


def test_requests_without_token_are_rejected(client, make_movie):
    movie = make_movie()
    res = client.get(f"{API}/movies/{movie['_id']}")
    assert res.status_code == 401
    assert res.json()["status"] == 401

    res = client.get(f"{API}/users/me", headers={"Authorization": "Bearer not-a-token"})
    assert res.status_code == 401


def test_review_endpoints(client, make_user, make_movie, headers_for):
    movie = make_movie()
    ana, ben = make_user("ana"), make_user("ben")
    url = f"{API}/movies/reviews/{movie['_id']}"

    res = client.post(url, json={"rating": 4, "reviewText": "Good"}, headers=headers_for(ana))
    assert res.status_code == 201
    assert res.json()["payload"]["rating"] == 4

    res = client.post(url, json={"rating": 2, "reviewText": "Meh"}, headers=headers_for(ben))
    assert res.status_code == 201

    res = client.get(f"{API}/movies/reviews/averageRating/{movie['_id']}", headers=headers_for(ana))
    assert res.json()["payload"] == {"averageRating": 3, "totalReviews": 2}

    res = client.post(url, json={"rating": 5, "reviewText": "Again"}, headers=headers_for(ana))
    assert res.status_code == 409

    res = client.put(url, json={"rating": 1}, headers=headers_for(ben))
    assert res.status_code == 200
    assert res.json()["payload"]["reviewText"] == "Meh"

    res = client.delete(url, headers=headers_for(ana))
    assert res.status_code == 200
    assert res.json()["payload"] == {"averageRating": 1}


def test_out_of_range_rating(client, make_user, make_movie, headers_for):
    movie = make_movie()
    res = client.post(
        f"{API}/movies/reviews/{movie['_id']}",
        json={"rating": 7, "reviewText": "Off the scale"},
        headers=headers_for(make_user()),
    )
    assert res.status_code == 400
    assert res.json() == {"status": 400, "errorMessage": "Rating must be a number between 1 and 5."}


def test_delete_review_by_id(client, db, make_user, make_movie, headers_for):
    movie = make_movie()
    author, other, boss = make_user("ana"), make_user("ben"), make_user("boss", role="admin")
    review = reviews.add_review(db, movie["_id"], author["_id"], 1, "Spam")
    reviews.add_review(db, movie["_id"], other["_id"], 4, "Good")

    url = f"{API}/movies/reviews/{movie['_id']}"
    res = client.delete(url, params={"reviewId": str(review["_id"])}, headers=headers_for(other))
    assert res.status_code == 403

    res = client.delete(url, params={"reviewId": str(review["_id"])}, headers=headers_for(boss))
    assert res.status_code == 200
    assert res.json()["payload"]["averageRating"] == 4

    res = client.delete(url, params={"reviewId": str(review["_id"])}, headers=headers_for(boss))
    assert res.status_code == 404


def test_admin_routes_are_guarded(client, make_user, headers_for):
    res = client.get(f"{API}/admin/stats", headers=headers_for(make_user()))
    assert res.status_code == 403
    assert res.json() == {"status": 403, "errorMessage": "Access denied. Only admins can perform this action."}

    res = client.get(f"{API}/admin/stats", headers=headers_for(make_user("boss", role="admin")))
    assert res.status_code == 200
    assert res.json()["payload"]["totalUsers"] == 2


def test_admin_adds_movie_without_client_rating(client, make_user, headers_for):
    boss = make_user("boss", role="admin")
    res = client.post(f"{API}/movies", headers=headers_for(boss), json={
        "title": "Heat",
        "genre": ["Crime"],
        "director": str(ObjectId()),
        "cast": [str(ObjectId())],
        "releaseDate": "1995-12-15T00:00:00",
        "runtime": 170,
        "synopsis": "A thief and a detective.",
        "averageRating": 5,
    })
    assert res.status_code == 201
    movie = res.json()["payload"]
    assert movie["averageRating"] == 0
    assert movie["reviews"] == []

    res = client.put(f"{API}/movies/{movie['_id']}", headers=headers_for(boss), json={"averageRating": 5})
    assert res.status_code == 400


def test_wishlist_endpoints(client, make_user, make_movie, headers_for):
    user, movie = make_user(), make_movie()
    headers = headers_for(user)

    res = client.post(f"{API}/wishlist", json={"movieId": str(movie["_id"])}, headers=headers)
    assert res.json()["message"] == "Movie added to wishlist successfully."
    res = client.post(f"{API}/wishlist", json={"movieId": str(movie["_id"])}, headers=headers)
    assert res.status_code == 200
    assert res.json()["message"] == "Movie is already in your wishlist."
    assert res.json()["payload"] == [str(movie["_id"])]

    res = client.request("DELETE", f"{API}/wishlist", json={"movieId": str(movie["_id"])}, headers=headers)
    assert res.status_code == 200
    assert res.json()["payload"] == []

    res = client.request("DELETE", f"{API}/wishlist", json={"movieId": str(movie["_id"])}, headers=headers)
    assert res.json()["message"] == "Movie not found in your wishlist."


def test_reply_to_missing_post(client, make_user, headers_for):
    user = make_user()
    headers = headers_for(user)
    community = client.post(f"{API}/communities", json={"title": "Noir"}, headers=headers).json()["payload"]

    res = client.post(
        f"{API}/communities/{community['_id']}/posts/{ObjectId()}/replies",
        json={"text": "Hello?"},
        headers=headers,
    )
    assert res.status_code == 404
    assert res.json() == {"status": 404, "errorMessage": "Post not found."}


def test_notifications_flag_must_be_boolean(client, make_user, headers_for):
    headers = headers_for(make_user())
    url = f"{API}/notifications/notifications"
    assert client.post(url, json={"notificationsEnabled": "yes"}, headers=headers).status_code == 400
    assert client.post(url, json={}, headers=headers).status_code == 400

    res = client.post(url, json={"notificationsEnabled": False}, headers=headers)
    assert res.status_code == 200
    assert res.json()["payload"]["notificationsEnabled"] is False


def test_unexpected_errors_do_not_leak(db, make_user, make_movie, headers_for, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("connection string mongodb://admin:hunter2@db")

    monkeypatch.setattr(reviews, "add_review", boom)
    app.dependency_overrides[get_db] = lambda: db
    try:
        client = TestClient(app, raise_server_exceptions=False)
        res = client.post(
            f"{API}/movies/reviews/{make_movie()['_id']}",
            json={"rating": 3, "reviewText": "fine"},
            headers=headers_for(make_user()),
        )
    finally:
        app.dependency_overrides.clear()

    assert res.status_code == 500
    assert res.json() == {"status": 500, "errorMessage": "An internal error occurred."}
    assert "hunter2" not in res.text


def test_rating_must_be_a_real_integer(client, db, make_user, make_movie, headers_for):
    movie, user = make_movie(), make_user()
    url = f"{API}/movies/reviews/{movie['_id']}"

    for rating in [True, "5", 4.0]:
        res = client.post(url, json={"rating": rating, "reviewText": "x"}, headers=headers_for(user))
        assert res.status_code == 400
        assert res.json()["status"] == 400
    assert db["movies"].find_one({"_id": movie["_id"]})["reviews"] == []

    client.post(url, json={"rating": 3, "reviewText": "fine"}, headers=headers_for(user))
    res = client.put(url, json={"rating": True}, headers=headers_for(user))
    assert res.status_code == 400
    assert db["movies"].find_one({"_id": movie["_id"]})["averageRating"] == 3


def test_health_check_hides_collections(client, make_movie):
    make_movie()
    res = client.get("/test")
    assert res.status_code == 200
    assert res.json()["payload"] == {"backend": "ok", "database": "ok"}
