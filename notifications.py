from loguru import logger
from pymongo.database import Database

from database import save_document, utcnow
from errors import ValidationError
from wishlists import USERS, load_user


def announcement(movie: dict) -> str:
    release = movie["releaseDate"].strftime("%a %b %d %Y")
    return f"Upcoming Movie: {movie['title']}, Release Date: {release}"


def set_enabled(db: Database, user_id, enabled) -> dict:
    if not isinstance(enabled, bool):
        raise ValidationError("Invalid input. 'notificationsEnabled' must be a boolean.")
    user = load_user(db, user_id)
    user["notificationsEnabled"] = enabled
    save_document(db, USERS, user)
    logger.info(f"[Notifications] {user['_id']} notifications {'enabled' if enabled else 'disabled'}")
    return user


def collect(db: Database, user_id) -> list:
    """Announce upcoming releases not yet announced, then return every notification."""
    user = load_user(db, user_id)
    notifications = user.setdefault("notifications", [])
    if not user.get("notificationsEnabled", True):
        return notifications

    seen = {n.get("message") for n in notifications}
    upcoming = db["movies"].find({"releaseDate": {"$gt": utcnow()}}, {"title": 1, "releaseDate": 1})
    fresh = []
    for movie in upcoming:
        message = announcement(movie)
        if message not in seen:
            seen.add(message)
            fresh.append({"message": message, "date": utcnow(), "read": False})

    if fresh:
        notifications.extend(fresh)
        save_document(db, USERS, user)
        logger.info(f"[Notifications] {len(fresh)} new notifications for {user['_id']}")
    return notifications
