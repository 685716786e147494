import sys
from datetime import datetime
from typing import Annotated, Optional

from bson import ObjectId
from fastapi import Body, Depends, FastAPI, Query, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from pymongo.database import Database
from starlette.exceptions import HTTPException as StarletteHTTPException

import admin
import auth
import catalogs
import communities
import config
import movies
import notifications
import reviews
import wishlists
from auth import get_current_user, require_role
from database import get_db
from errors import ApiError, Internal
from schemas import (
    CommunityIn, CustomListIn, LoginRequest, MovieIn, NewsIn, NotificationsIn, PersonIn,
    PostIn, PreferencesIn, RegisterRequest, ReviewIn, TokenResponse, WishlistIn,
)

logger.remove()
logger.add(sys.stderr, level=config.LOG_LEVEL)

# App setup
app = FastAPI(title="Movie Catalog API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

API = "/api/v1"
Page = Annotated[int, Query(ge=1)]
Limit = Annotated[int, Query(ge=1, le=100)]


# Envelope

def api_response(status_code: int, payload, message: str) -> JSONResponse:
    content = {"status": status_code, "payload": payload, "message": message}
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content, custom_encoder={ObjectId: str}))


def error_response(status_code: int, message: str, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"status": status_code, "errorMessage": message}, headers=headers)


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    if exc.status_code >= 500:
        logger.error(f"[API] {request.method} {request.url.path} failed: {exc.message}")
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return error_response(exc.status_code, exc.message, headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ())[1:])
        problems.append(f"{field}: {err.get('msg')}" if field else err.get("msg"))
    return error_response(status.HTTP_400_BAD_REQUEST, "; ".join(problems) or "Invalid request.")


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return error_response(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"[API] Unhandled error on {request.method} {request.url.path}")
    return error_response(Internal.status_code, Internal.default_message)


# Routes
@app.get("/")
def root():
    return api_response(200, None, "Movie Catalog API")


@app.get("/test")
def test_database(db: Database = Depends(get_db)):
    try:
        db.list_collection_names()
    except Exception:
        logger.exception("[API] Database check failed")
        return error_response(503, "Database unavailable.")
    return api_response(200, {"backend": "ok", "database": "ok"}, "Service healthy.")


# Auth
@app.post(f"{API}/auth/register")
def register(payload: RegisterRequest, db: Database = Depends(get_db)):
    user = auth.register_user(db, payload.name, payload.email, payload.password, payload.favoriteGenres)
    return api_response(201, auth.user_summary(user), "User registered successfully.")


@app.post(f"{API}/auth/login")
def login(payload: LoginRequest, db: Database = Depends(get_db)):
    token = TokenResponse(**auth.login(db, payload.email, payload.password))
    return api_response(200, token.model_dump(), "User logged in successfully.")


@app.get(f"{API}/users/me")
def me(user=Depends(get_current_user)):
    return api_response(200, auth.public_user(user), "User fetched successfully.")


@app.put(f"{API}/users/me/preferences")
def update_preferences(payload: PreferencesIn, user=Depends(get_current_user), db: Database = Depends(get_db)):
    user = auth.set_favorite_genres(db, user, payload.favoriteGenres)
    return api_response(200, user["preferences"], "Preferences updated successfully.")


# Movies: recommendations, trending, top rated
@app.get(f"{API}/movies/recommendation")
def get_recommendations(user=Depends(get_current_user), db: Database = Depends(get_db)):
    genres = (user.get("preferences") or {}).get("favoriteGenres")
    if not genres:
        return api_response(200, [], "No favorite genres found for recommendations.")
    found = movies.recommendations(db, user["_id"])
    if not found:
        return api_response(200, [], "No recommendations available based on your favorite genres.")
    return api_response(200, found, "Personalized recommendations retrieved successfully.")


@app.get(f"{API}/movies/similar/{{movie_id}}")
def get_similar_movies(movie_id: str, user=Depends(get_current_user), db: Database = Depends(get_db)):
    found = movies.similar(db, movie_id)
    message = "Similar movies retrieved successfully." if found else "No similar movies found."
    return api_response(200, found, message)


@app.get(f"{API}/movies/trending")
def get_trending_movies(user=Depends(get_current_user), db: Database = Depends(get_db)):
    found = movies.trending(db)
    message = "Trending movies retrieved successfully." if found else "No trending movies found."
    return api_response(200, found, message)


@app.get(f"{API}/movies/top-rated")
def get_top_rated_movies(startDate: Optional[datetime] = None, endDate: Optional[datetime] = None,
                         user=Depends(get_current_user), db: Database = Depends(get_db)):
    found = movies.top_rated(db, startDate, endDate)
    message = "Top-rated movies retrieved successfully." if found else "No top-rated movies found."
    return api_response(200, found, message)


# Movies: search and filtering
@app.get(f"{API}/movies/search")
def search_movies(title: Optional[str] = None, genre: Optional[str] = None, director: Optional[str] = None,
                  actor: Optional[str] = None, user=Depends(get_current_user), db: Database = Depends(get_db)):
    found = movies.search(db, title, genre, director, actor)
    if not found:
        return error_response(404, "No movies found matching the criteria.")
    return api_response(200, found, "Movies found successfully.")


@app.get(f"{API}/movies/advanced-filter")
def advanced_filter_movies(decade: Optional[str] = None, ageRating: Optional[str] = None,
                           user=Depends(get_current_user), db: Database = Depends(get_db)):
    found = movies.advanced_filter(db, decade, ageRating)
    if not found:
        return error_response(404, "No movies found matching the criteria.")
    return api_response(200, found, "Movies filtered successfully.")


@app.get(f"{API}/movies/top-month")
def get_top_movies_of_month(user=Depends(get_current_user), db: Database = Depends(get_db)):
    found = movies.top_of_month(db)
    if not found:
        return error_response(404, "No movies found for the current month.")
    return api_response(200, found, "Top movies of the month fetched successfully.")


@app.get(f"{API}/movies/top-genre")
def get_top_movies_by_genre(genre: Optional[str] = None, user=Depends(get_current_user), db: Database = Depends(get_db)):
    found = movies.top_by_genre(db, genre)
    if not found:
        return error_response(404, "No movies found for this genre.")
    return api_response(200, found, f"Top 10 movies in the {genre} genre fetched successfully.")


# Movies: box office and awards
@app.get(f"{API}/movies/box-office/{{movie_id}}")
def get_box_office_info(movie_id: str, user=Depends(get_current_user), db: Database = Depends(get_db)):
    return api_response(200, movies.get_box_office(db, movie_id), "Box office information retrieved successfully.")


@app.get(f"{API}/movies/awards/{{movie_id}}")
def get_awards_info(movie_id: str, user=Depends(get_current_user), db: Database = Depends(get_db)):
    return api_response(200, movies.get_awards_info(db, movie_id), "Awards information retrieved successfully.")


@app.get(f"{API}/movies/nominations/{{movie_id}}")
def get_movie_awards(movie_id: str, page: Page = 1, limit: Limit = 10,
                     user=Depends(get_current_user), db: Database = Depends(get_db)):
    result = movies.paged_detail(db, movie_id, "awards", "awards", page, limit)
    return api_response(200, result, "Awards and nominations retrieved successfully.")


# Movies: details
@app.get(f"{API}/movies/cast/{{movie_id}}")
def get_movie_cast(movie_id: str, user=Depends(get_current_user), db: Database = Depends(get_db)):
    return api_response(200, {"cast": movies.get_cast(db, movie_id)}, "Cast retrieved successfully.")


@app.get(f"{API}/movies/trivia/{{movie_id}}")
def get_movie_trivia(movie_id: str, user=Depends(get_current_user), db: Database = Depends(get_db)):
    return api_response(200, movies.get_trivia(db, movie_id), "Trivia retrieved successfully.")


@app.get(f"{API}/movies/goofs/{{movie_id}}")
def get_movie_goofs(movie_id: str, page: Page = 1, limit: Limit = 10,
                    user=Depends(get_current_user), db: Database = Depends(get_db)):
    result = movies.paged_detail(db, movie_id, "goofs", "goofs", page, limit)
    return api_response(200, result, "Goofs retrieved successfully.")


@app.get(f"{API}/movies/soundtracks/{{movie_id}}")
def get_movie_soundtrack(movie_id: str, page: Page = 1, limit: Limit = 10,
                         user=Depends(get_current_user), db: Database = Depends(get_db)):
    result = movies.paged_detail(db, movie_id, "soundtrackInfo", "soundtrack", page, limit)
    return api_response(200, result, "Soundtrack information retrieved successfully.")


# Reviews
@app.post(f"{API}/movies/reviews/{{movie_id}}")
def add_movie_review(movie_id: str, payload: ReviewIn, user=Depends(get_current_user), db: Database = Depends(get_db)):
    review = reviews.add_review(db, movie_id, user["_id"], payload.rating, payload.reviewText)
    return api_response(201, review, "Review added successfully.")


@app.put(f"{API}/movies/reviews/{{movie_id}}")
def update_movie_review(movie_id: str, payload: ReviewIn, user=Depends(get_current_user), db: Database = Depends(get_db)):
    review = reviews.update_review(db, movie_id, user["_id"], payload.rating, payload.reviewText)
    return api_response(200, review, "Review updated successfully.")


@app.delete(f"{API}/movies/reviews/{{movie_id}}")
def delete_movie_review(movie_id: str, reviewId: Optional[str] = None,
                        user=Depends(get_current_user), db: Database = Depends(get_db)):
    movie = reviews.delete_review(db, movie_id, user["_id"], user.get("role"), reviewId)
    return api_response(200, {"averageRating": movie["averageRating"]}, "Review deleted successfully.")


@app.get(f"{API}/movies/reviews/highlights/{{movie_id}}")
def get_review_highlights(movie_id: str, user=Depends(get_current_user), db: Database = Depends(get_db)):
    return api_response(200, reviews.top_reviews(db, movie_id, 5), "Review highlights retrieved successfully.")


@app.get(f"{API}/movies/reviews/averageRating/{{movie_id}}")
def get_average_rating(movie_id: str, user=Depends(get_current_user), db: Database = Depends(get_db)):
    return api_response(200, reviews.average_rating(db, movie_id), "Average rating retrieved successfully.")


@app.get(f"{API}/movies/reviews/top-rated/{{movie_id}}")
def get_top_rated_reviews(movie_id: str, limit: int = Query(3, ge=1, le=50),
                          user=Depends(get_current_user), db: Database = Depends(get_db)):
    return api_response(200, reviews.top_reviews(db, movie_id, limit), "Top-rated reviews fetched successfully.")


@app.get(f"{API}/movies/reviews/{{movie_id}}")
def get_movie_reviews(movie_id: str, page: Page = 1, limit: Limit = 10,
                      user=Depends(get_current_user), db: Database = Depends(get_db)):
    return api_response(200, reviews.list_reviews(db, movie_id, page, limit), "Reviews retrieved successfully.")


# Movies: catalog
@app.get(f"{API}/movies")
def get_all_movies(page: Page = 1, limit: Limit = 10, genre: Optional[str] = None,
                   minRating: Optional[float] = None, maxRating: Optional[float] = None,
                   director: Optional[str] = None, cast: Optional[str] = None,
                   releaseYear: Optional[int] = None, user=Depends(get_current_user), db: Database = Depends(get_db)):
    result = movies.list_movies(db, page, limit, genre, minRating, maxRating, director, cast, releaseYear)
    return api_response(200, result, "Movies retrieved successfully.")


@app.post(f"{API}/movies")
def add_movie(payload: MovieIn, user=Depends(require_role("admin")), db: Database = Depends(get_db)):
    movie = movies.add_movie(db, payload.model_dump(exclude_unset=True))
    return api_response(201, movie, "Movie added successfully.")


@app.get(f"{API}/movies/{{movie_id}}")
def get_movie_by_id(movie_id: str, user=Depends(get_current_user), db: Database = Depends(get_db)):
    return api_response(200, movies.get_movie(db, movie_id), "Movie details retrieved successfully.")


@app.put(f"{API}/movies/{{movie_id}}")
def update_movie(movie_id: str, payload: MovieIn, user=Depends(require_role("admin")), db: Database = Depends(get_db)):
    movie = movies.update_movie(db, movie_id, payload.model_dump(exclude_unset=True))
    return api_response(200, movie, "Movie updated successfully.")


@app.delete(f"{API}/movies/{{movie_id}}")
def delete_movie(movie_id: str, user=Depends(require_role("admin")), db: Database = Depends(get_db)):
    movies.delete_movie(db, movie_id)
    return api_response(200, {}, "Movie deleted successfully.")


# Wishlist and custom lists
@app.post(f"{API}/wishlist/custom-list")
def create_custom_list(payload: CustomListIn, user=Depends(get_current_user), db: Database = Depends(get_db)):
    created = wishlists.create_custom_list(db, user["_id"], payload.title, payload.description, payload.movies)
    return api_response(201, created, "Custom list created successfully.")


@app.get(f"{API}/wishlist/custom-list")
def get_custom_lists(page: Page = 1, limit: Limit = 10, user=Depends(get_current_user), db: Database = Depends(get_db)):
    return api_response(200, wishlists.list_custom_lists(db, user["_id"], page, limit), "Custom lists retrieved successfully.")


@app.post(f"{API}/wishlist")
def add_to_wishlist(payload: WishlistIn, user=Depends(get_current_user), db: Database = Depends(get_db)):
    wishlist, added = wishlists.add_to_wishlist(db, user["_id"], payload.movieId)
    message = "Movie added to wishlist successfully." if added else "Movie is already in your wishlist."
    return api_response(200, wishlist, message)


@app.get(f"{API}/wishlist")
def get_user_wishlist(page: Page = 1, limit: Limit = 10, user=Depends(get_current_user), db: Database = Depends(get_db)):
    return api_response(200, wishlists.get_wishlist(db, user["_id"], page, limit), "User's wishlist retrieved successfully.")


@app.delete(f"{API}/wishlist")
def remove_from_wishlist(payload: WishlistIn = Body(...), user=Depends(get_current_user), db: Database = Depends(get_db)):
    wishlist, removed = wishlists.remove_from_wishlist(db, user["_id"], payload.movieId)
    message = "Movie removed from wishlist successfully." if removed else "Movie not found in your wishlist."
    return api_response(200, wishlist, message)


# Notifications
@app.get(f"{API}/notifications/upcoming-movies")
def get_upcoming_movies(user=Depends(get_current_user), db: Database = Depends(get_db)):
    found = movies.upcoming(db)
    if not found:
        return error_response(404, "No upcoming movies found.")
    return api_response(200, found, "Upcoming movies fetched successfully.")


@app.post(f"{API}/notifications/notifications")
def update_user_notifications(payload: NotificationsIn, user=Depends(get_current_user), db: Database = Depends(get_db)):
    updated = notifications.set_enabled(db, user["_id"], payload.notificationsEnabled)
    return api_response(200, auth.public_user(updated), "User notification preferences updated successfully.")


@app.get(f"{API}/notifications/notifications")
def get_user_notifications(user=Depends(get_current_user), db: Database = Depends(get_db)):
    found = notifications.collect(db, user["_id"])
    return api_response(200, found, "User notifications updated and fetched successfully.")


# Communities
@app.post(f"{API}/communities")
def create_community(payload: CommunityIn, user=Depends(get_current_user), db: Database = Depends(get_db)):
    community = communities.create_community(db, payload.title, payload.description, user["_id"])
    return api_response(201, community, "Community created successfully.")


@app.get(f"{API}/communities")
def get_all_communities(page: Page = 1, limit: Limit = 10, user=Depends(get_current_user), db: Database = Depends(get_db)):
    return api_response(200, communities.list_communities(db, page, limit), "Communities fetched successfully.")


@app.get(f"{API}/communities/{{community_id}}")
def get_community_by_id(community_id: str, user=Depends(get_current_user), db: Database = Depends(get_db)):
    return api_response(200, communities.get_community(db, community_id), "Community fetched successfully.")


@app.post(f"{API}/communities/{{community_id}}/posts")
def create_post_in_community(community_id: str, payload: PostIn, user=Depends(get_current_user), db: Database = Depends(get_db)):
    post = communities.create_post(db, community_id, user["_id"], payload.text)
    return api_response(201, post, "Post created successfully.")


@app.get(f"{API}/communities/{{community_id}}/posts")
def get_all_posts_in_community(community_id: str, page: Page = 1, limit: Limit = 10,
                               user=Depends(get_current_user), db: Database = Depends(get_db)):
    return api_response(200, communities.list_posts(db, community_id, page, limit), "Posts retrieved successfully.")


@app.post(f"{API}/communities/{{community_id}}/posts/{{post_id}}/replies")
def reply_to_post(community_id: str, post_id: str, payload: PostIn,
                  user=Depends(get_current_user), db: Database = Depends(get_db)):
    post = communities.reply_to_post(db, community_id, post_id, user["_id"], payload.text)
    return api_response(200, post, "Reply added successfully.")


@app.get(f"{API}/communities/{{community_id}}/posts/{{post_id}}/replies")
def get_all_replies(community_id: str, post_id: str, user=Depends(get_current_user), db: Database = Depends(get_db)):
    return api_response(200, communities.list_replies(db, community_id, post_id), "Replies fetched successfully.")


# Actors and directors
@app.get(f"{API}/actors")
def list_actors(db: Database = Depends(get_db)):
    return api_response(200, catalogs.list_people(db, catalogs.ACTORS), "Actors fetched successfully.")


@app.get(f"{API}/actors/{{actor_id}}")
def get_actor(actor_id: str, db: Database = Depends(get_db)):
    return api_response(200, catalogs.get_person(db, catalogs.ACTORS, actor_id), "Actor fetched successfully.")


@app.put(f"{API}/actors/{{actor_id}}")
def update_actor(actor_id: str, payload: PersonIn, user=Depends(require_role("admin")), db: Database = Depends(get_db)):
    actor = catalogs.update_person(db, catalogs.ACTORS, actor_id, payload.model_dump(exclude_unset=True))
    return api_response(200, actor, "Actor updated successfully.")


@app.delete(f"{API}/actors/{{actor_id}}")
def delete_actor(actor_id: str, user=Depends(require_role("admin")), db: Database = Depends(get_db)):
    catalogs.delete_person(db, catalogs.ACTORS, actor_id)
    return api_response(200, None, "Actor deleted successfully.")


@app.get(f"{API}/directors")
def list_directors(db: Database = Depends(get_db)):
    return api_response(200, catalogs.list_people(db, catalogs.DIRECTORS), "Directors fetched successfully.")


@app.get(f"{API}/directors/{{director_id}}")
def get_director(director_id: str, db: Database = Depends(get_db)):
    return api_response(200, catalogs.get_person(db, catalogs.DIRECTORS, director_id), "Director fetched successfully.")


@app.put(f"{API}/directors/{{director_id}}")
def update_director(director_id: str, payload: PersonIn, user=Depends(require_role("admin")), db: Database = Depends(get_db)):
    director = catalogs.update_person(db, catalogs.DIRECTORS, director_id, payload.model_dump(exclude_unset=True))
    return api_response(200, director, "Director updated successfully.")


@app.delete(f"{API}/directors/{{director_id}}")
def delete_director(director_id: str, user=Depends(require_role("admin")), db: Database = Depends(get_db)):
    catalogs.delete_person(db, catalogs.DIRECTORS, director_id)
    return api_response(200, None, "Director deleted successfully.")


# News
@app.post(f"{API}/news")
def create_news(payload: NewsIn, user=Depends(get_current_user), db: Database = Depends(get_db)):
    news = catalogs.create_news(db, payload.model_dump(exclude_unset=True))
    return api_response(201, news, "News/Article created successfully.")


@app.get(f"{API}/news")
def get_all_news(db: Database = Depends(get_db)):
    return api_response(200, catalogs.list_news(db), "News/Articles fetched successfully.")


@app.get(f"{API}/news/{{news_id}}")
def get_news_by_id(news_id: str, db: Database = Depends(get_db)):
    return api_response(200, catalogs.get_news(db, news_id), "News/Article fetched successfully.")


@app.put(f"{API}/news/{{news_id}}")
def update_news(news_id: str, payload: NewsIn, user=Depends(get_current_user), db: Database = Depends(get_db)):
    news = catalogs.update_news(db, news_id, payload.model_dump(exclude_unset=True))
    return api_response(200, news, "News/Article updated successfully.")


@app.delete(f"{API}/news/{{news_id}}")
def delete_news(news_id: str, user=Depends(get_current_user), db: Database = Depends(get_db)):
    catalogs.delete_news(db, news_id)
    return api_response(200, None, "News/Article deleted successfully.")


# Admin endpoints
@app.get(f"{API}/admin/stats")
def get_site_stats(user=Depends(require_role("admin")), db: Database = Depends(get_db)):
    return api_response(200, admin.site_stats(db), "Site statistics fetched successfully.")


@app.get(f"{API}/admin/users")
def get_all_users(user=Depends(require_role("admin")), db: Database = Depends(get_db)):
    users = admin.list_users(db)
    if not users:
        return error_response(404, "No users found.")
    return api_response(200, users, "Users fetched successfully.")


@app.delete(f"{API}/admin/users/{{user_id}}")
def delete_user_account(user_id: str, user=Depends(require_role("admin")), db: Database = Depends(get_db)):
    admin.delete_user(db, user_id)
    return api_response(200, {}, "User account deleted successfully")


@app.put(f"{API}/admin/movies/{{movie_id}}")
def update_movie_details(movie_id: str, payload: MovieIn, user=Depends(require_role("admin")), db: Database = Depends(get_db)):
    movie = movies.update_movie(db, movie_id, payload.model_dump(exclude_unset=True))
    return api_response(200, movie, "Movie details updated successfully.")


@app.delete(f"{API}/admin/movies/{{movie_id}}")
def admin_delete_movie(movie_id: str, user=Depends(require_role("admin")), db: Database = Depends(get_db)):
    movies.delete_movie(db, movie_id)
    return api_response(200, None, "Movie deleted successfully.")


@app.post(f"{API}/admin/addActors")
def add_actors(payload: PersonIn, user=Depends(require_role("admin")), db: Database = Depends(get_db)):
    actor = catalogs.create_person(db, catalogs.ACTORS, payload.model_dump(exclude_unset=True))
    return api_response(201, actor, "Actor added successfully.")


@app.post(f"{API}/admin/addDirectors")
def add_directors(payload: PersonIn, user=Depends(require_role("admin")), db: Database = Depends(get_db)):
    director = catalogs.create_person(db, catalogs.DIRECTORS, payload.model_dump(exclude_unset=True))
    return api_response(201, director, "Director added successfully.")


if __name__ == "__main__":
    import uvicorn
    logger.info(f"[API] Starting on port {config.PORT}")
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
