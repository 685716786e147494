"""
Reference catalogs: actors, directors and news.

Movies point at actors and directors by id only. Deleting or renaming an
entry here never touches the movies, wishlists or lists that reference it.
"""

from loguru import logger
from pymongo import DESCENDING
from pymongo.database import Database

from database import find_by_id, insert_document, save_document, to_object_id, utcnow, naive_utc
from errors import NotFound, ValidationError

ACTORS = "actors"
DIRECTORS = "directors"
NEWS = "news"

PERSON_FIELDS = ("name", "biography", "filmography", "awards", "photos")
NEWS_TEXT_FIELDS = ("title", "content", "author")

_LABELS = {ACTORS: "Actor", DIRECTORS: "Director"}


def _blank(value) -> bool:
    return not isinstance(value, str) or not value.strip()


def _movie_refs(ids) -> list:
    refs = []
    for raw in ids or []:
        oid = to_object_id(raw)
        if oid is None:
            raise ValidationError(f"Invalid movie ID: {raw}")
        refs.append(oid)
    return refs


def _person_fields(data: dict) -> dict:
    fields = {k: v for k, v in data.items() if k in PERSON_FIELDS}
    if "filmography" in fields:
        fields["filmography"] = _movie_refs(fields["filmography"])
    return fields


def create_person(db: Database, collection: str, data: dict) -> dict:
    label = _LABELS[collection]
    if _blank(data.get("name")):
        raise ValidationError(f"{label} name is required.")
    doc = {"filmography": [], "awards": [], "photos": []}
    doc.update({k: v for k, v in _person_fields(data).items() if v is not None})
    doc["name"] = doc["name"].strip()
    insert_document(db, collection, doc)
    logger.info(f"[Catalog] {label} '{doc['name']}' added")
    return doc


def list_people(db: Database, collection: str) -> list:
    return list(db[collection].find({}).sort("name"))


def get_person(db: Database, collection: str, person_id) -> dict:
    person = find_by_id(db, collection, person_id)
    if not person:
        raise NotFound(f"{_LABELS[collection]} not found.")
    return person


def update_person(db: Database, collection: str, person_id, data: dict) -> dict:
    person = get_person(db, collection, person_id)
    updates = {k: v for k, v in _person_fields(data).items() if v is not None}
    if not updates:
        raise ValidationError("No update data provided.")
    if "name" in updates:
        if _blank(updates["name"]):
            raise ValidationError(f"{_LABELS[collection]} name is required.")
        updates["name"] = updates["name"].strip()
    person.update(updates)
    save_document(db, collection, person)
    logger.info(f"[Catalog] {_LABELS[collection]} {person['_id']} updated")
    return person


def delete_person(db: Database, collection: str, person_id) -> None:
    person = get_person(db, collection, person_id)
    db[collection].delete_one({"_id": person["_id"]})
    logger.info(f"[Catalog] {_LABELS[collection]} {person['_id']} deleted")


def create_news(db: Database, data: dict) -> dict:
    missing = [field for field in NEWS_TEXT_FIELDS if _blank(data.get(field))]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    doc = {
        "title": data["title"].strip(),
        "content": data["content"],
        "author": data["author"],
        "publishedDate": naive_utc(data.get("publishedDate")) or utcnow(),
    }
    insert_document(db, NEWS, doc)
    logger.info(f"[News] '{doc['title']}' published")
    return doc


def list_news(db: Database) -> list:
    return list(db[NEWS].find({}).sort("publishedDate", DESCENDING))


def get_news(db: Database, news_id) -> dict:
    news = find_by_id(db, NEWS, news_id)
    if not news:
        raise NotFound("News/Article not found.")
    return news


def update_news(db: Database, news_id, data: dict) -> dict:
    """Apply the supplied fields; blank text keeps the current value."""
    news = get_news(db, news_id)
    for field in NEWS_TEXT_FIELDS:
        if not _blank(data.get(field)):
            news[field] = data[field].strip() if field == "title" else data[field]
    if data.get("publishedDate"):
        news["publishedDate"] = naive_utc(data["publishedDate"])
    save_document(db, NEWS, news)
    logger.info(f"[News] {news['_id']} updated")
    return news


def delete_news(db: Database, news_id) -> None:
    news = get_news(db, news_id)
    db[NEWS].delete_one({"_id": news["_id"]})
    logger.info(f"[News] {news['_id']} deleted")
