import os
from datetime import datetime, timedelta, timezone
from typing import Optional, List, Dict, Any
from urllib.parse import quote

from fastapi import FastAPI, Depends, HTTPException, status, Body
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel, EmailStr

from config import Config
from database import db, create_document, get_documents
from logging_config import configure_logging, get_logger
from schemas import Card, User, UserStats, new_id, now_ms

SECRET_KEY = Config.SECRET_KEY
ALGORITHM = Config.ALGORITHM
ACCESS_TOKEN_EXPIRE_MINUTES = Config.ACCESS_TOKEN_EXPIRE_MINUTES

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")

logger = get_logger("api")

app = FastAPI(title="Card Snaps API")

# CORS: allow any origin, no credentials (to comply with wildcard)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


# ----------------------- Request models -----------------------
class RegisterRequest(BaseModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    name: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class PreferencesUpdate(BaseModel):
    themeMode: Optional[str] = None
    colorScheme: Optional[str] = None
    enableSeasonal: Optional[bool] = None


class DeckPayload(BaseModel):
    id: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    cards: List[Card] = []


class NotePayload(BaseModel):
    id: Optional[str] = None
    title: Optional[str] = None
    subject: Optional[str] = None
    content: Optional[str] = None
    background: Optional[str] = None


class TestPayload(BaseModel):
    id: Optional[str] = None
    title: Optional[str] = None
    date: Optional[Any] = None
    topics: List[str] = []


class ChatPayload(BaseModel):
    id: str
    title: Optional[str] = None
    messages: List[Dict[str, Any]] = []
    lastActive: Optional[int] = None


class CommunityPayload(BaseModel):
    id: Optional[str] = None
    type: str
    title: Optional[str] = None
    description: Optional[str] = None
    author: Optional[str] = None
    data: Dict[str, Any] = {}


# ----------------------- Utility helpers -----------------------
def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt


def _public_user(user: dict) -> dict:
    return {k: v for k, v in user.items() if k != "password"}


def _find(collection: str, item_id: str, user_id: Optional[str] = None) -> Optional[dict]:
    for doc in db[collection]:
        if doc.get("id") == item_id and (user_id is None or doc.get("userId") == user_id):
            return doc
    return None


def _remove_owned(collection: str, item_id: str, user_id: str) -> bool:
    before = len(db[collection])
    db[collection] = [d for d in db[collection] if not (d.get("id") == item_id and d.get("userId") == user_id)]
    return len(db[collection]) != before


async def get_current_user(token: str = Depends(oauth2_scheme)) -> dict:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        user_id: str = payload.get("sub")
        if user_id is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    user = _find("users", user_id)
    if not user:
        raise credentials_exception
    return user


# ----------------------- Basic routes -----------------------
@app.get("/api/health")
def health():
    return {"status": "online", "message": "Card Snaps Backend Functional"}


# ----------------------- Auth -----------------------
@app.post("/api/auth/register")
def register(payload: RegisterRequest):
    if not payload.email or not payload.password:
        raise HTTPException(status_code=400, detail="Missing fields")
    with db.lock:
        if get_documents("users", {"email": payload.email}):
            raise HTTPException(status_code=400, detail="Email already exists")
        name = payload.name or payload.email.split("@")[0]
        user = User(
            email=payload.email,
            password=get_password_hash(payload.password),
            name=name,
            avatar=f"https://api.dicebear.com/7.x/avataaars/svg?seed={quote(name)}",
        )
        db["users"].append(user.model_dump())
        create_document("stats", UserStats(userId=user.id), assign_id=False)
    logger.info("Registered user %s", user.id)
    token = create_access_token({"sub": user.id, "email": user.email})
    return {"token": token, "user": _public_user(user.model_dump())}


@app.post("/api/auth/login")
def login(payload: LoginRequest):
    users = get_documents("users", {"email": payload.email}, limit=1)
    if not users:
        raise HTTPException(status_code=400, detail="User not found")
    user = users[0]
    if not verify_password(payload.password, user.get("password", "")):
        raise HTTPException(status_code=403, detail="Invalid password")
    token = create_access_token({"sub": user["id"], "email": user["email"]})
    return {"token": token, "user": _public_user(user)}


@app.get("/api/auth/me")
def me(current_user: dict = Depends(get_current_user)):
    user = _find("users", current_user["id"])
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return _public_user(user)


@app.put("/api/user/preferences")
def update_preferences(update: PreferencesUpdate, current_user: dict = Depends(get_current_user)):
    with db.lock:
        user = _find("users", current_user["id"])
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        user.update(update.model_dump(exclude_none=True))
        db.save()
    return {"success": True}


# ----------------------- Decks -----------------------
@app.get("/api/decks")
def list_decks(current_user: dict = Depends(get_current_user)):
    decks = sorted(get_documents("decks", {"userId": current_user["id"]}),
                   key=lambda d: d.get("created_at", 0), reverse=True)
    return [{**d, "createdAt": d.get("created_at")} for d in decks]


@app.post("/api/decks")
def create_deck(payload: DeckPayload, current_user: dict = Depends(get_current_user)):
    doc = {
        "id": payload.id or new_id(),
        "userId": current_user["id"],
        "title": payload.title,
        "description": payload.description,
        "cards": [c.model_dump() for c in payload.cards],
        "created_at": now_ms(),
    }
    with db.lock:
        existing = _find("decks", doc["id"], current_user["id"])
        if existing:
            # a retried or stale create carries the latest edit
            existing.update({k: doc[k] for k in ("title", "description", "cards")})
            db.save()
            return {**existing, "createdAt": existing.get("created_at")}
        create_document("decks", doc, at_head=True)
    return {**doc, "createdAt": doc["created_at"]}


@app.put("/api/decks/{deck_id}")
def update_deck(deck_id: str, payload: DeckPayload, current_user: dict = Depends(get_current_user)):
    with db.lock:
        deck = _find("decks", deck_id, current_user["id"])
        if not deck:
            raise HTTPException(status_code=404, detail="Deck not found")
        deck["title"] = payload.title
        deck["description"] = payload.description
        deck["cards"] = [c.model_dump() for c in payload.cards]
        db.save()
    return {"success": True}


@app.delete("/api/decks/{deck_id}")
def delete_deck(deck_id: str, current_user: dict = Depends(get_current_user)):
    with db.lock:
        if not _remove_owned("decks", deck_id, current_user["id"]):
            raise HTTPException(status_code=404, detail="Deck not found")
        db.save()
    return {"success": True}


# ----------------------- Notes -----------------------
@app.get("/api/notes")
def list_notes(current_user: dict = Depends(get_current_user)):
    notes = sorted(get_documents("notes", {"userId": current_user["id"]}),
                   key=lambda n: n.get("updated_at", 0), reverse=True)
    return [{**n, "createdAt": n.get("created_at"), "lastModified": n.get("updated_at")} for n in notes]


@app.post("/api/notes")
def save_note(payload: NotePayload, current_user: dict = Depends(get_current_user)):
    fields = payload.model_dump(exclude={"id"})
    with db.lock:
        existing = _find("notes", payload.id, current_user["id"]) if payload.id else None
        if existing:
            existing.update(fields)
            existing["updated_at"] = now_ms()
            db.save()
            note = existing
        else:
            note = create_document("notes", {
                "id": payload.id or new_id(),
                "userId": current_user["id"],
                **fields,
                "created_at": now_ms(),
                "updated_at": now_ms(),
            }, at_head=True)
    return {**note, "createdAt": note["created_at"], "lastModified": note["updated_at"]}


@app.delete("/api/notes/{note_id}")
def delete_note(note_id: str, current_user: dict = Depends(get_current_user)):
    with db.lock:
        _remove_owned("notes", note_id, current_user["id"])
        db.save()
    return {"success": True}


# ----------------------- Tests -----------------------
def _date_key(test: dict):
    return str(test.get("date") or "")


@app.get("/api/tests")
def list_tests(current_user: dict = Depends(get_current_user)):
    return sorted(get_documents("tests", {"userId": current_user["id"]}), key=_date_key)


@app.post("/api/tests")
def create_test(payload: TestPayload, current_user: dict = Depends(get_current_user)):
    with db.lock:
        existing = _find("tests", payload.id, current_user["id"]) if payload.id else None
        if existing:
            return existing
        return create_document("tests", {
            "id": payload.id or new_id(),
            "userId": current_user["id"],
            "title": payload.title,
            "date": payload.date,
            "topics": payload.topics,
        })


@app.delete("/api/tests/{test_id}")
def delete_test(test_id: str, current_user: dict = Depends(get_current_user)):
    with db.lock:
        _remove_owned("tests", test_id, current_user["id"])
        db.save()
    return {"success": True}


# ----------------------- Stats -----------------------
@app.get("/api/stats")
def get_stats(current_user: dict = Depends(get_current_user)):
    found = get_documents("stats", {"userId": current_user["id"]}, limit=1)
    return found[0] if found else None


@app.post("/api/stats")
def set_stats(update: Dict[str, Any] = Body(...), current_user: dict = Depends(get_current_user)):
    uid = current_user["id"]
    with db.lock:
        found = get_documents("stats", {"userId": uid}, limit=1)
        if found:
            # shallow merge; userId always stays the caller's
            found[0].update({k: v for k, v in update.items() if k != "userId"})
            db.save()
        else:
            create_document("stats", {**update, "userId": uid}, assign_id=False)
    return {"success": True}


# ----------------------- Chats -----------------------
@app.get("/api/chats")
def list_chats(current_user: dict = Depends(get_current_user)):
    return sorted(get_documents("chat_sessions", {"userId": current_user["id"]}),
                  key=lambda c: c.get("lastActive") or 0, reverse=True)


@app.post("/api/chats")
def save_chat(payload: ChatPayload, current_user: dict = Depends(get_current_user)):
    messages = payload.messages
    last_active = payload.lastActive or now_ms()
    with db.lock:
        existing = _find("chat_sessions", payload.id, current_user["id"])
        if existing:
            existing.update({"title": payload.title, "messages": messages, "lastActive": last_active})
            db.save()
        else:
            create_document("chat_sessions", {
                "id": payload.id,
                "userId": current_user["id"],
                "title": payload.title,
                "messages": messages,
                "lastActive": last_active,
            }, at_head=True)
    return {"success": True}


# ----------------------- Community -----------------------
@app.get("/api/community")
def list_community():
    items = sorted(db["community"], key=lambda i: i.get("timestamp", 0), reverse=True)
    return items[:50]


@app.post("/api/community")
def publish_community(payload: CommunityPayload):
    if payload.type not in ("deck", "note"):
        raise HTTPException(status_code=400, detail="Invalid type")
    with db.lock:
        if payload.id and _find("community", payload.id):
            return {"success": True, "message": "Already shared"}
        item = create_document("community", {
            "id": payload.id or new_id(),
            "type": payload.type,
            "title": payload.title,
            "description": payload.description,
            "author": payload.author,
            "data": payload.data,
            "downloads": 0,
            "timestamp": now_ms(),
        }, at_head=True)
    return {"success": True, "id": item["id"]}


@app.post("/api/community/{item_id}/download")
def increment_download(item_id: str):
    with db.lock:
        item = _find("community", item_id)
        if not item:
            raise HTTPException(status_code=404, detail="Item not found")
        item["downloads"] = int(item.get("downloads", 0)) + 1
        db.save()
    return {"success": True}


if __name__ == "__main__":
    import uvicorn
    configure_logging()
    port = int(os.getenv("PORT", Config.PORT))
    uvicorn.run(app, host="0.0.0.0", port=port)
