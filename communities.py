"""
Community discussion boards.

A community owns its posts and each post owns its replies. Both are
append-only: there is no edit or delete path.
"""

from datetime import datetime

from bson import ObjectId
from loguru import logger
from pymongo import DESCENDING
from pymongo.database import Database

from auth import user_cards
from database import find_by_id, find_sub_document, insert_document, page_meta, paginate, save_document, to_object_id, utcnow
from errors import NotFound, ValidationError

COMMUNITIES = "communities"


def _require_text(text, what: str):
    if not isinstance(text, str) or not text.strip():
        raise ValidationError(f"{what} text is required.")


def load_community(db: Database, community_id) -> dict:
    community = find_by_id(db, COMMUNITIES, community_id)
    if not community:
        raise NotFound("Community not found.")
    community.setdefault("posts", [])
    return community


def find_post(community: dict, post_id) -> dict:
    post = find_sub_document(community["posts"], post_id)
    if post is None:
        raise NotFound("Post not found.")
    post.setdefault("replies", [])
    return post


def _authored(entry: dict, cards: dict) -> dict:
    out = dict(entry)
    out["user"] = cards.get(entry.get("user"))
    return out


def _present_post(post: dict, cards: dict) -> dict:
    out = _authored(post, cards)
    out["replies"] = [_authored(reply, cards) for reply in post.get("replies") or []]
    return out


def _author_ids(community: dict) -> list:
    ids = [community.get("createdBy")]
    for post in community.get("posts") or []:
        ids.append(post.get("user"))
        ids.extend(reply.get("user") for reply in post.get("replies") or [])
    return ids


def _present_community(community: dict, cards: dict) -> dict:
    out = dict(community)
    out["createdBy"] = cards.get(community.get("createdBy"))
    out["posts"] = [_present_post(post, cards) for post in community.get("posts") or []]
    return out


def create_community(db: Database, title, description, created_by) -> dict:
    if not title or not title.strip():
        raise ValidationError("Title is required.")
    doc = insert_document(db, COMMUNITIES, {
        "title": title,
        "description": description,
        "createdBy": to_object_id(created_by),
        "posts": [],
    })
    logger.info(f"[Community] '{title}' created by {created_by}")
    return doc


def list_communities(db: Database, page: int, limit: int) -> dict:
    skip = (page - 1) * limit
    communities = list(
        db[COMMUNITIES].find({}).sort("createdAt", DESCENDING).skip(skip).limit(limit)
    )
    if not communities:
        raise NotFound("No communities found.")
    cards = user_cards(db, [uid for c in communities for uid in _author_ids(c)])
    out = {"communities": [_present_community(c, cards) for c in communities]}
    out.update(page_meta(page, limit, db[COMMUNITIES].count_documents({}), "totalCommunities"))
    return out


def get_community(db: Database, community_id) -> dict:
    community = load_community(db, community_id)
    return _present_community(community, user_cards(db, _author_ids(community)))


def create_post(db: Database, community_id, user_id, text) -> dict:
    _require_text(text, "Post")
    community = load_community(db, community_id)

    post = {
        "_id": ObjectId(),
        "user": to_object_id(user_id),
        "text": text,
        "createdAt": utcnow(),
        "replies": [],
    }
    community["posts"].append(post)
    save_document(db, COMMUNITIES, community)
    logger.info(f"[Community] Post {post['_id']} added to {community['_id']}")
    return post


def list_posts(db: Database, community_id, page: int, limit: int) -> dict:
    community = load_community(db, community_id)
    # Later position breaks createdAt ties; posts without a timestamp sort last
    ordered = sorted(
        enumerate(community["posts"]),
        key=lambda pair: (pair[1].get("createdAt") or datetime.min, pair[0]),
        reverse=True,
    )
    result = paginate([post for _, post in ordered], page, limit, "posts", "totalPosts")
    cards = user_cards(db, _author_ids({"posts": result["posts"]}))
    result["posts"] = [_present_post(post, cards) for post in result["posts"]]
    return result


def reply_to_post(db: Database, community_id, post_id, user_id, text) -> dict:
    _require_text(text, "Reply")
    community = load_community(db, community_id)
    post = find_post(community, post_id)

    post["replies"].append({
        "_id": ObjectId(),
        "user": to_object_id(user_id),
        "text": text,
        "createdAt": utcnow(),
    })
    save_document(db, COMMUNITIES, community)
    logger.info(f"[Community] Reply added to post {post['_id']} in {community['_id']}")
    return post


def list_replies(db: Database, community_id, post_id) -> list:
    community = load_community(db, community_id)
    post = find_post(community, post_id)
    return _present_post(post, user_cards(db, _author_ids({"posts": [post]})))["replies"]
