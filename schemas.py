"""
Database Schemas for Card Snaps (flashcards, notes and study tools)

Each Pydantic model corresponds to a collection in the JSON document store. The
sync client accepts these models or plain dicts of the same shape.
"""
import time
import uuid
from typing import Optional, Literal, List, Dict, Any, Union
from pydantic import BaseModel, Field


def new_id() -> str:
    return str(uuid.uuid4())


def now_ms() -> int:
    return int(time.time() * 1000)


class Preferences(BaseModel):
    themeMode: str = "dark"
    colorScheme: str = "midnight"
    enableSeasonal: bool = True


class User(Preferences):
    id: str = Field(default_factory=new_id)
    email: str
    password: str  # bcrypt hash, never leaves the server
    name: Optional[str] = None
    avatar: Optional[str] = None
    gradeLevel: str = "10th Grade"
    created_at: int = Field(default_factory=now_ms)


class Card(BaseModel):
    id: Optional[str] = None
    front: str = ""
    back: str = ""
    color: Optional[str] = None


class Deck(BaseModel):
    id: str = Field(default_factory=new_id)
    userId: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    cards: List[Card] = Field(default_factory=list)
    createdAt: int = Field(default_factory=now_ms)


class Note(BaseModel):
    id: str = Field(default_factory=new_id)
    userId: Optional[str] = None
    title: Optional[str] = None
    subject: Optional[str] = None
    content: str = ""  # HTML
    background: Optional[str] = None
    createdAt: int = Field(default_factory=now_ms)
    lastModified: int = Field(default_factory=now_ms)


class Test(BaseModel):
    __test__ = False  # not a pytest class

    id: str = Field(default_factory=new_id)
    userId: Optional[str] = None
    title: Optional[str] = None
    date: Optional[Union[int, str]] = None
    topics: List[str] = Field(default_factory=list)


class UserStats(BaseModel):
    userId: Optional[str] = None
    xp: int = 0
    goals: List[Any] = Field(default_factory=list)


class ChatMessage(BaseModel):
    role: str = "user"  # "user" | "model"
    text: str = ""
    timestamp: int = Field(default_factory=now_ms)


class ChatSession(BaseModel):
    id: str = Field(default_factory=new_id)
    userId: Optional[str] = None
    title: Optional[str] = None
    messages: List[ChatMessage] = Field(default_factory=list)
    lastActive: int = Field(default_factory=now_ms)


class CommunityItem(BaseModel):
    id: str = Field(default_factory=new_id)
    type: Literal["deck", "note"]
    title: Optional[str] = None
    description: Optional[str] = None
    author: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    downloads: int = 0
    timestamp: int = Field(default_factory=now_ms)


# Collections in the JSON document, keyed by attribute name.
COLLECTIONS = ("users", "decks", "notes", "tests", "stats", "chat_sessions", "community")
