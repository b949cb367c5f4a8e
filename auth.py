"""
Customer and admin accounts: password hashing, signed tokens and the
FastAPI dependencies that resolve the caller from a bearer token.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pymongo.errors import DuplicateKeyError as MongoDuplicateKeyError

import config
from database import create_document, get_db, get_documents, serialize, to_object_id
from errors import AuthError, DuplicateKeyError, ForbiddenError, NotFoundError, ValidationError
from schemas import Admin, User, check_phone

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/users/login", auto_error=False)

USER_ROLE = "user"
ADMIN_ROLE = "admin"

# Utilities

def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=config.USER_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except ExpiredSignatureError:
        raise AuthError("Unauthorized - Token expired")
    except JWTError:
        raise AuthError("Unauthorized - Invalid token")
    if not payload.get("sub"):
        raise AuthError("Unauthorized - Invalid token")
    return payload


def public_user(doc: dict) -> dict:
    return {
        "id": str(doc["_id"]),
        "name": doc.get("name"),
        "email": doc.get("email"),
        "phone": doc.get("phone"),
        "createdAt": serialize(doc.get("createdAt")),
    }


# Request bodies

class Credentials(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.lower()


class UserSignup(Credentials):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    name: str = Field(..., min_length=1)
    phone: str
    password: str = Field(..., min_length=6)
    confirm_password: str = Field(..., alias="confirmPassword")

    @field_validator("phone")
    @classmethod
    def valid_phone(cls, v):
        return check_phone(v)

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class ForgetPassword(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    email: EmailStr
    new_password: str = Field(..., min_length=6, alias="newPassword")
    confirm_password: str = Field(..., alias="confirmPassword")

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.lower()

    @model_validator(mode="after")
    def passwords_match(self):
        if self.new_password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class AdminSignup(Credentials):
    name: Optional[str] = None
    password: str = Field(..., min_length=6)


# Users

def signup_user(db, body: UserSignup) -> dict:
    if db["user"].find_one({"email": body.email}):
        raise DuplicateKeyError("email")
    user = User(name=body.name, email=body.email, phone=body.phone, password=get_password_hash(body.password))
    try:
        doc = create_document(db, "user", user)
    except MongoDuplicateKeyError:
        raise DuplicateKeyError("email")
    token = create_access_token({"sub": str(doc["_id"]), "role": USER_ROLE})
    logger.info("User %s signed up", doc["_id"])
    return {"token": token, "user": public_user(doc)}


def login_user(db, body: Credentials) -> dict:
    doc = db["user"].find_one({"email": body.email})
    if not doc or not verify_password(body.password, doc["password"]):
        raise AuthError("Invalid credentials")
    token = create_access_token({"sub": str(doc["_id"]), "role": USER_ROLE})
    return {"token": token, "user": public_user(doc)}


def reset_password(db, body: ForgetPassword):
    result = db["user"].update_one(
        {"email": body.email},
        {"$set": {"password": get_password_hash(body.new_password), "updatedAt": datetime.now(timezone.utc)}},
    )
    if result.matched_count == 0:
        raise NotFoundError("User not found")


def list_users(db):
    return [public_user(d) for d in get_documents(db, "user", newest_first=True, projection={"password": 0})]


def delete_user(db, user_id: str):
    result = db["user"].delete_one({"_id": to_object_id(user_id, "id")})
    if result.deleted_count == 0:
        raise NotFoundError("User not found")


# Admins

def signup_admin(db, body: AdminSignup):
    if db["admin"].find_one({"email": body.email}):
        raise DuplicateKeyError("email")
    admin = Admin(name=body.name, email=body.email, password=get_password_hash(body.password))
    try:
        doc = create_document(db, "admin", admin)
    except MongoDuplicateKeyError:
        raise DuplicateKeyError("email")
    logger.info("Admin %s signed up", doc["_id"])


def login_admin(db, body: Credentials) -> dict:
    doc = db["admin"].find_one({"email": body.email})
    if not doc or not verify_password(body.password, doc["password"]):
        raise AuthError("Wrong email or password")
    token = create_access_token(
        {"sub": str(doc["_id"]), "email": doc["email"], "role": ADMIN_ROLE},
        timedelta(minutes=config.ADMIN_TOKEN_EXPIRE_MINUTES),
    )
    return {"jwtToken": token, "email": doc["email"], "name": doc.get("name")}


# Auth dependencies

def _load(db, token: Optional[str], role: str, collection: str):
    if not token:
        raise AuthError("Unauthorized - No token provided")
    payload = decode_token(token)
    if payload.get("role") != role:
        raise ForbiddenError("Forbidden - Insufficient role")
    try:
        oid = to_object_id(payload["sub"])
    except ValidationError:
        raise AuthError("Unauthorized - Invalid token")
    doc = db[collection].find_one({"_id": oid})
    if not doc:
        raise AuthError(f"Unauthorized - {collection.capitalize()} not found")
    return doc


def get_current_user(token: Optional[str] = Depends(oauth2_scheme), db=Depends(get_db)):
    return _load(db, token, USER_ROLE, "user")


def get_current_admin(token: Optional[str] = Depends(oauth2_scheme), db=Depends(get_db)):
    return _load(db, token, ADMIN_ROLE, "admin")
