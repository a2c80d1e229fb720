from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from motor.motor_asyncio import AsyncIOMotorDatabase
from database.mongodb import get_database
from models.user import UserCreate, User, Token
from services.auth_deps import get_current_user
from services.auth_service import verify_password, get_password_hash, create_access_token
from datetime import datetime, timezone
import logging
import uuid

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/auth", tags=["authentication"])

MIN_PASSWORD_LENGTH = 8
# bcrypt only looks at the first 72 bytes
MAX_PASSWORD_BYTES = 72


def _user_from_doc(user_doc: dict) -> User:
    return User(
        id=user_doc["_id"],
        email=user_doc["email"],
        name=user_doc["name"],
        created_at=user_doc["created_at"]
    )


@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
async def register(user: UserCreate, db: AsyncIOMotorDatabase = Depends(get_database)):
    """Create a new user account"""
    if not user.name.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Name, email, and password are required"
        )
    if len(user.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )
    if len(user.password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be at most {MAX_PASSWORD_BYTES} bytes"
        )

    existing_user = await db.users.find_one({"email": user.email})
    if existing_user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    user_doc = {
        "_id": str(uuid.uuid4()),
        "email": user.email,
        "name": user.name,
        "hashed_password": get_password_hash(user.password),
        "created_at": datetime.now(timezone.utc),
    }
    await db.users.insert_one(user_doc)
    logger.info(f"New user created: {user.email}")

    access_token = create_access_token(data={"sub": user_doc["_id"]})
    return Token(access_token=access_token, user=_user_from_doc(user_doc))


@router.post("/login", response_model=Token)
async def login(form_data: OAuth2PasswordRequestForm = Depends(), db: AsyncIOMotorDatabase = Depends(get_database)):
    """Login with email (as ``username``) and password"""
    credentials_error = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Incorrect email or password",
        headers={"WWW-Authenticate": "Bearer"},
    )

    user_doc = await db.users.find_one({"email": form_data.username})
    # Users issued by scripts/issue_token.py have no password
    if not user_doc or not user_doc.get("hashed_password"):
        raise credentials_error
    if not verify_password(form_data.password, user_doc["hashed_password"]):
        raise credentials_error

    access_token = create_access_token(data={"sub": user_doc["_id"]})
    logger.info(f"User logged in: {user_doc['email']}")

    return Token(access_token=access_token, user=_user_from_doc(user_doc))


@router.get("/me", response_model=User)
async def get_me(current_user: User = Depends(get_current_user)):
    """Get the user behind the bearer token"""
    return current_user
