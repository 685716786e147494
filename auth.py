from datetime import datetime, timedelta, timezone
from typing import List, Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from loguru import logger
from passlib.context import CryptContext
from pymongo.database import Database

import config
from database import find_by_id, get_db, insert_document, save_document
from errors import Conflict, Forbidden, Unauthorized

DEFAULT_AVATAR = "https://i.pinimg.com/originals/be/61/a4/be61a49e03cb65e9c26d86b15e63e12a.jpg"
ROLES = ("normal", "admin")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/v1/auth/login")


# Helpers

def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def public_user(user: dict) -> dict:
    """User document without credentials."""
    return {k: v for k, v in user.items() if k != "password_hash"}


def user_summary(user: dict) -> dict:
    return {
        "id": str(user["_id"]),
        "name": user.get("name"),
        "email": user.get("email"),
        "role": user.get("role", "normal"),
        "avatar": user.get("avatar"),
    }


def user_cards(db: Database, user_ids) -> dict:
    """Map author ids to ``{id, name, avatar}``; deleted accounts keep only the id."""
    ids = list({uid for uid in user_ids if uid is not None})
    found = {u["_id"]: u for u in db["users"].find({"_id": {"$in": ids}}, {"name": 1, "avatar": 1})}
    return {
        uid: {"id": uid, "name": found.get(uid, {}).get("name"), "avatar": found.get(uid, {}).get("avatar")}
        for uid in ids
    }


def register_user(db: Database, name: str, email: str, password: str, favorite_genres: List[str]) -> dict:
    email = email.strip().lower()
    if db["users"].find_one({"email": email}, {"_id": 1}):
        raise Conflict("Email already registered")
    user = insert_document(db, "users", {
        "name": name.strip(),
        "email": email,
        "password_hash": hash_password(password),
        "role": "normal",
        "avatar": DEFAULT_AVATAR,
        "preferences": {"favoriteGenres": list(favorite_genres), "favoriteActors": []},
        "wishlist": [],
        "customLists": [],
        "notificationsEnabled": True,
        "notifications": [],
    })
    logger.info(f"[Auth] Registered {user['_id']}")
    return user


def login(db: Database, email: str, password: str) -> dict:
    user = db["users"].find_one({"email": email.strip().lower()})
    if not user or not verify_password(password, user.get("password_hash", "")):
        raise Unauthorized("Invalid email or password")
    token = create_access_token({"sub": str(user["_id"]), "role": user.get("role", "normal")})
    return {"access_token": token, "token_type": "bearer", "user": user_summary(user)}


def set_favorite_genres(db: Database, user: dict, genres: List[str]) -> dict:
    preferences = user.setdefault("preferences", {})
    preferences["favoriteGenres"] = list(dict.fromkeys(genres))
    save_document(db, "users", user)
    return user


# Dependency: get current user
def get_current_user(token: str = Depends(oauth2_scheme), db: Database = Depends(get_db)) -> dict:
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
        user_id: str = payload.get("sub")
        if user_id is None:
            raise Unauthorized()
    except JWTError:
        raise Unauthorized()

    user = find_by_id(db, "users", user_id)
    if not user:
        raise Unauthorized()
    return user


# Role guard
def require_role(*roles):
    def _guard(user=Depends(get_current_user)):
        if user.get("role") not in roles:
            raise Forbidden("Access denied. Only admins can perform this action.")
        return user
    return _guard
