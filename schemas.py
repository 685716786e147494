"""
Request bodies for the Movie Catalog API.

Documents live in these MongoDB collections:
- movies      (embeds reviews; averageRating is derived from them)
- users       (embeds wishlist, customLists, notifications)
- communities (embeds posts, each post embeds replies)
- actors, directors, news (flat)

Most fields are optional; missing mandatory values are
reported by the domain modules with resource-specific messages.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, StrictBool, StrictInt


# Auth
class RegisterRequest(BaseModel):
    name: str
    email: EmailStr
    password: str = Field(..., min_length=6)
    favoriteGenres: List[str] = Field(default_factory=list)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: dict


class PreferencesIn(BaseModel):
    favoriteGenres: List[str]


# Reviews
class ReviewIn(BaseModel):
    """Body for adding a review and for partial updates of one's own review."""
    rating: Optional[StrictInt] = None
    reviewText: Optional[str] = None


# Wishlist and custom lists
class WishlistIn(BaseModel):
    movieId: Optional[str] = None


class CustomListIn(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    movies: Optional[List[str]] = None


# Communities
class CommunityIn(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None


class PostIn(BaseModel):
    text: Optional[str] = None


# Catalog entries
class AwardIn(BaseModel):
    awardName: Optional[str] = None
    year: Optional[int] = None
    result: Optional[str] = Field(None, description='e.g. "Won" or "Nominated"')


class BoxOfficeIn(BaseModel):
    openingWeekend: Optional[float] = None
    totalEarnings: Optional[float] = None
    internationalRevenue: Optional[float] = None


class MovieIn(BaseModel):
    title: Optional[str] = None
    genre: Optional[List[str]] = None
    director: Optional[str] = None
    cast: Optional[List[str]] = None
    releaseDate: Optional[datetime] = None
    runtime: Optional[int] = Field(None, description="Minutes")
    synopsis: Optional[str] = None
    coverPhoto: Optional[str] = None
    trivia: Optional[List[str]] = None
    goofs: Optional[List[str]] = None
    soundtrackInfo: Optional[List[str]] = None
    ageRating: Optional[str] = None
    parentalGuidance: Optional[str] = None
    boxOffice: Optional[BoxOfficeIn] = None
    awards: Optional[List[AwardIn]] = None


class PersonIn(BaseModel):
    name: Optional[str] = None
    biography: Optional[str] = None
    filmography: Optional[List[str]] = None
    awards: Optional[List[AwardIn]] = None
    photos: Optional[List[str]] = None


class NewsIn(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    author: Optional[str] = None
    publishedDate: Optional[datetime] = None


# Notifications
class NotificationsIn(BaseModel):
    notificationsEnabled: Optional[StrictBool] = None
