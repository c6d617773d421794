import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, HTTPException, Request, Response

from config import JWT_ALGO, JWT_SECRET, SESSION_COOKIE, SESSION_TTL_DAYS
from database import Repository, get_db, utcnow
from schemas import Session

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 10


# ----------------------- Passwords -----------------------
def _password_bytes(password: str) -> bytes:
    # bcrypt only looks at the first 72 bytes
    return password.encode("utf-8")[:72]


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(password), hashed.encode("utf-8"))
    except ValueError:
        # stored value is not a bcrypt hash
        return False


# ----------------------- Tokens -----------------------
def create_token(payload: dict, expires_at: datetime) -> str:
    to_encode = {**payload, "exp": expires_at.replace(tzinfo=timezone.utc)}
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALGO)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGO])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Session expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid session")


# ----------------------- Sessions -----------------------
def start_session(db, response: Response, subject: str, kind: str) -> str:
    """Persist a session for subject and attach its token as a cookie."""
    expires_at = utcnow() + timedelta(days=SESSION_TTL_DAYS)
    sid = secrets.token_urlsafe(24)
    Repository(db, "session").insert(Session(sid=sid, subject=subject, kind=kind, expires_at=expires_at))
    token = create_token({"sid": sid, "sub": subject, "kind": kind}, expires_at)
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=SESSION_TTL_DAYS * 24 * 3600,
        httponly=True,
        samesite="lax",
    )
    logger.info("Session started for %s %s", kind, subject)
    return token


def end_session(db, request: Request, response: Response) -> Optional[str]:
    """Drop the caller's session if there is one. Returns the subject it belonged to."""
    response.delete_cookie(SESSION_COOKIE)
    token = request.cookies.get(SESSION_COOKIE)
    if not token:
        return None
    try:
        claims = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGO], options={"verify_exp": False})
    except jwt.InvalidTokenError:
        return None
    session = Repository(db, "session").delete({"sid": claims.get("sid")})
    if not session:
        return None
    logger.info("Session ended for %s %s", session["kind"], session["subject"])
    return session["subject"]


def current_session(request: Request, db=Depends(get_db)) -> dict:
    token = request.cookies.get(SESSION_COOKIE)
    if not token:
        raise HTTPException(status_code=401, detail="Not logged in")
    claims = decode_token(token)
    session = Repository(db, "session").find_one({"sid": claims.get("sid")})
    if not session or session["expires_at"] < utcnow():
        raise HTTPException(status_code=401, detail="Session expired")
    return session


def get_current_user(session: dict = Depends(current_session), db=Depends(get_db)):
    if session["kind"] != "user":
        raise HTTPException(status_code=401, detail="Not logged in as a user")
    user = Repository(db, "user").find_one({"userId": session["subject"]})
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user
