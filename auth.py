import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from passlib.context import CryptContext
from pydantic import BaseModel, ConfigDict, EmailStr
from pydantic.alias_generators import to_camel
from pymongo.errors import PyMongoError

from config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES
from database import get_db, create_document, serialize_document, to_object_id
from schemas import User

logger = logging.getLogger(__name__)

router = APIRouter()

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")

# At least one lowercase, one uppercase, one digit, one special character, 6+ chars
STRONG_PASSWORD = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[\W_]).{6,}$")
AVATAR_URL = "https://api.dicebear.com/9.x/adventurer-neutral/svg?seed={seed}"


# Schemas
class RegisterPayload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    username: str
    email: EmailStr
    password: str
    profile_picture: Optional[str] = None


class LoginPayload(BaseModel):
    email: EmailStr
    password: str


class UserOut(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    username: str
    email: EmailStr
    profile_picture: str = ""
    created_at: Optional[str] = None


class AuthResponse(BaseModel):
    token: str
    user: UserOut

# Helpers

def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return pwd_context.verify(plain, hashed)
    except ValueError:
        return False


def is_strong_password(password: str) -> bool:
    return bool(STRONG_PASSWORD.match(password))


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def public_user(user: dict) -> dict:
    return serialize_document({
        "_id": user["_id"],
        "username": user.get("username"),
        "email": user.get("email"),
        "profile_picture": user.get("profile_picture", ""),
        "created_at": user.get("created_at"),
    })


def auth_current_user(token: str = Depends(oauth2_scheme), db=Depends(get_db)) -> dict:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    user_id = to_object_id(payload.get("sub"))
    if user_id is None:
        raise HTTPException(status_code=401, detail="Invalid token")
    try:
        user = db["users"].find_one({"_id": user_id}, {"password_hash": 0})
    except PyMongoError:
        logger.exception("Error resolving user from token")
        raise HTTPException(status_code=500, detail="Internal server error")
    if not user:
        raise HTTPException(status_code=401, detail="Token is not valid")
    return user


# Auth routes
@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterPayload, db=Depends(get_db)):
    username = payload.username.strip()
    if not username or not payload.password:
        raise HTTPException(status_code=400, detail="All fields are required")
    if not is_strong_password(payload.password):
        raise HTTPException(
            status_code=400,
            detail="Password must contain at least one lowercase letter, one uppercase letter, "
                   "one number, and one special character.",
        )

    users = db["users"]
    try:
        if users.find_one({"username": username}):
            raise HTTPException(status_code=400, detail="Username already exists")
        if users.find_one({"email": str(payload.email)}):
            raise HTTPException(status_code=400, detail="Email already exists")

        user_doc = User(
            username=username,
            email=payload.email,
            password_hash=hash_password(payload.password),
            profile_picture=payload.profile_picture or AVATAR_URL.format(seed=username),
        ).model_dump()
        user = create_document(users, user_doc)
    except PyMongoError:
        logger.exception("Registration error")
        raise HTTPException(status_code=500, detail="Internal server error")

    logger.info("Registered user %s", username)
    token = create_access_token({"sub": str(user["_id"])})
    return {"token": token, "user": public_user(user)}


@router.post("/login", response_model=AuthResponse)
def login(payload: LoginPayload, db=Depends(get_db)):
    try:
        user = db["users"].find_one({"email": str(payload.email)})
    except PyMongoError:
        logger.exception("Login error")
        raise HTTPException(status_code=500, detail="Internal server error")
    if not user:
        raise HTTPException(status_code=400, detail="Invalid credentials")
    if not verify_password(payload.password, user.get("password_hash", "")):
        raise HTTPException(status_code=400, detail="Invalid credentials")
    token = create_access_token({"sub": str(user["_id"])})
    return {"token": token, "user": public_user(user)}


@router.get("/me", response_model=UserOut)
def me(current_user=Depends(auth_current_user)):
    return public_user(current_user)
