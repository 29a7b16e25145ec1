import json
import logging
from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import quote, urlencode

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse
from pymongo.errors import PyMongoError

from config import Settings
from database import create_document, get_db, serialize, update_document
from mailer import Mailer
from oauth import GoogleOAuth, OAuthError
from schemas import ForgotPasswordRequest, LoginRequest, RegisterRequest, ResetPasswordRequest, User
from security import (
    create_access_token,
    generate_reset_token,
    get_current_user,
    get_settings,
    hash_password,
    hash_reset_token,
    public_user,
    strip_sensitive,
    verify_password,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

GOOGLE_ONLY_LOGIN = 'This account uses Google sign-in. Please use "Continue with Google" instead.'
GOOGLE_ONLY_RESET = 'This account uses Google sign-in. Please use "Continue with Google" to log in.'
INVALID_CREDENTIALS = "Invalid credentials"


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer


def get_oauth(request: Request) -> Optional[GoogleOAuth]:
    return request.app.state.oauth


def _session(user: dict, settings: Settings, message: str) -> dict:
    return {
        "success": True,
        "message": message,
        "token": create_access_token(user["_id"], settings),
        "user": public_user(user),
    }


@router.post("/register", status_code=201)
async def register(payload: RegisterRequest, db=Depends(get_db), settings: Settings = Depends(get_settings)):
    if payload.role == "admin":
        raise HTTPException(status_code=403, detail="Admin accounts cannot be created through registration")
    email = payload.email.lower()
    if await db["users"].find_one({"email": email}):
        raise HTTPException(status_code=409, detail="User already exists with this email")

    user = User(
        name=payload.name,
        email=email,
        password=hash_password(payload.password),
        role=payload.role,
        phone=payload.phone,
    )
    if payload.role == "school":
        user.school_name = payload.school_name
        user.address = payload.address
    else:
        user.subject = payload.subject
        user.experience = payload.experience
    user_doc = await create_document(db, "users", user.model_dump(exclude={"id", "google_id"}))
    logger.info("Registered %s account %s", user_doc["role"], user_doc["_id"])
    return _session(user_doc, settings, "User registered successfully")


@router.post("/login")
async def login(payload: LoginRequest, db=Depends(get_db), settings: Settings = Depends(get_settings)):
    user = await db["users"].find_one({"email": payload.email.lower()})
    if not user:
        logger.warning("Failed login for unknown email")
        raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS)
    if not user.get("password") and user.get("google_id"):
        raise HTTPException(status_code=400, detail=GOOGLE_ONLY_LOGIN)
    if not verify_password(payload.password, user.get("password")):
        logger.warning("Failed login for user %s", user["_id"])
        raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS)
    return _session(user, settings, "Login successful")


@router.get("/me")
async def me(current_user: dict = Depends(get_current_user)):
    return {"success": True, "user": serialize(strip_sensitive(current_user))}


@router.post("/forgot-password")
async def forgot_password(
    payload: ForgotPasswordRequest,
    db=Depends(get_db),
    settings: Settings = Depends(get_settings),
    mailer: Mailer = Depends(get_mailer),
):
    user = await db["users"].find_one({"email": payload.email.lower()})
    if not user:
        raise HTTPException(status_code=404, detail="No account found with that email address")
    if user.get("google_id") and not user.get("password"):
        raise HTTPException(status_code=400, detail=GOOGLE_ONLY_RESET)

    token, token_hash = generate_reset_token()
    expire = datetime.utcnow() + timedelta(minutes=settings.reset_token_expire_minutes)
    await update_document(db, "users", user["_id"], {"reset_password_token": token_hash, "reset_password_expire": expire})

    reset_url = f"{settings.frontend_url}/reset-password/{token}"
    try:
        await mailer.send_password_reset(user["email"], reset_url)
    except Exception:
        logger.exception("Email send error for user %s", user["_id"])
        await update_document(db, "users", user["_id"], {}, unset=("reset_password_token", "reset_password_expire"))
        raise HTTPException(status_code=503, detail="Email could not be sent. Please try again later.")
    return {"success": True, "message": "Password reset email sent successfully. Please check your inbox."}


@router.put("/reset-password/{token}")
async def reset_password(
    token: str,
    payload: ResetPasswordRequest,
    db=Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    user = await db["users"].find_one({
        "reset_password_token": hash_reset_token(token),
        "reset_password_expire": {"$gt": datetime.utcnow()},
    })
    if not user:
        raise HTTPException(
            status_code=400,
            detail="Invalid or expired reset token. Please request a new password reset.",
        )
    user = await update_document(
        db,
        "users",
        user["_id"],
        {"password": hash_password(payload.password)},
        unset=("reset_password_token", "reset_password_expire"),
    )
    logger.info("Password reset for user %s", user["_id"])
    return _session(user, settings, "Password reset successful")


# Google OAuth

async def federated_login(db, profile: dict) -> dict:
    """Find, link or create the account for a Google profile."""
    user = await db["users"].find_one({"google_id": profile["id"]})
    if user:
        return user

    user = await db["users"].find_one({"email": profile["email"].lower()})
    if user:
        updates = {"google_id": profile["id"]}
        if not user.get("avatar") and profile.get("picture"):
            updates["avatar"] = profile["picture"]
        logger.info("Linked Google account to user %s", user["_id"])
        return await update_document(db, "users", user["_id"], updates)

    new_user = User(
        name=profile["name"],
        email=profile["email"].lower(),
        google_id=profile["id"],
        avatar=profile.get("picture") or "",
        role="teacher",
        phone="",
        verified=True,
    )
    user = await create_document(db, "users", new_user.model_dump(exclude={"id", "password"}))
    logger.info("Created teacher account %s from Google sign-in", user["_id"])
    return user


def _callback_redirect(settings: Settings, **params) -> RedirectResponse:
    return RedirectResponse(f"{settings.frontend_url}/auth/google/callback?{urlencode(params, quote_via=quote)}")


@router.get("/google")
async def google_login(settings: Settings = Depends(get_settings), oauth: Optional[GoogleOAuth] = Depends(get_oauth)):
    if oauth is None:
        return _callback_redirect(settings, error="Google OAuth is not configured")
    return RedirectResponse(oauth.authorization_url())


@router.get("/google/callback")
async def google_callback(
    code: Optional[str] = None,
    error: Optional[str] = None,
    db=Depends(get_db),
    settings: Settings = Depends(get_settings),
    oauth: Optional[GoogleOAuth] = Depends(get_oauth),
):
    if oauth is None:
        return _callback_redirect(settings, error="Google OAuth is not configured")
    if error or not code:
        return _callback_redirect(settings, error=error or "Google authentication failed")
    try:
        profile = await oauth.fetch_profile(code)
    except OAuthError as e:
        logger.warning("Google callback failed: %s", e)
        return _callback_redirect(settings, error=str(e))
    try:
        user = await federated_login(db, profile)
    except PyMongoError:
        logger.exception("Google sign-in could not be saved for %s", profile.get("email"))
        return _callback_redirect(settings, error="Google authentication failed")
    token = create_access_token(user["_id"], settings)
    return _callback_redirect(settings, token=token, user=json.dumps(public_user(user)))
