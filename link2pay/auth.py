import logging

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.orm import Session

from .config import ADMIN_EMAILS, SUPABASE_JWT_AUDIENCE, SUPABASE_JWT_SECRET
from .database import get_db
from .models import Profile

logger = logging.getLogger(__name__)

security = HTTPBearer()


def verify_supabase_token(token: str) -> dict:
    """
    Verify a Supabase access token (HS256, signed with the project's JWT secret).
    Returns the decoded claims.
    """
    if not SUPABASE_JWT_SECRET:
        logger.error("❌ SUPABASE_JWT_SECRET not configured")
        raise HTTPException(status_code=500, detail="Authentication not configured")

    try:
        claims = jwt.decode(
            token,
            SUPABASE_JWT_SECRET,
            algorithms=["HS256"],
            audience=SUPABASE_JWT_AUDIENCE,
        )
    except ExpiredSignatureError as e:
        raise HTTPException(
            status_code=401,
            detail="Token has expired. Please refresh your session.",
            headers={"X-Token-Expired": "true"},
        ) from e
    except JWTError as e:
        logger.warning(f"⚠️ Token verification failed: {str(e)}")
        raise HTTPException(status_code=401, detail="Invalid token") from e

    logger.debug(f"✅ Token verified for user: {claims.get('email')}")
    return claims


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> Profile:
    """Get the merchant profile for the bearer token, creating it on first sign-in"""

    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    token = credentials.credentials
    if len(token.split(".")) != 3:
        logger.warning(f"⚠️ Malformed token received, length: {len(token)}")
        raise HTTPException(
            status_code=401, detail="Invalid token format. Expected a valid JWT token."
        )

    claims = verify_supabase_token(token)

    user_id = claims.get("sub")
    if not user_id:
        logger.error(f"❌ Token missing sub claim. Available claims: {list(claims.keys())}")
        raise HTTPException(status_code=401, detail="Invalid token claims")

    email = claims.get("email")
    metadata = claims.get("user_metadata") or {}

    profile = db.query(Profile).filter(Profile.id == user_id).first()
    if profile:
        if email and profile.email != email:
            profile.email = email
            db.commit()
        return profile

    logger.info(f"🆕 Creating profile for {email}")
    profile = Profile(
        id=user_id,
        email=email,
        full_name=metadata.get("full_name"),
        business_name=metadata.get("business_name"),
    )
    db.add(profile)
    try:
        db.commit()
        db.refresh(profile)
        logger.info(f"✅ Profile created: {profile.email}")
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Failed to create profile for {email}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to create profile") from e

    # Drip enrollment should never block sign-in
    try:
        from .domain.campaigns.service import enroll_in_email_campaigns, enroll_in_whatsapp_campaigns

        enroll_in_email_campaigns(db, profile.id)
        enroll_in_whatsapp_campaigns(db, profile.id)
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Campaign enrollment failed for {profile.id}: {str(e)}")

    return profile


async def get_admin_user(user: Profile = Depends(get_current_user)) -> Profile:
    """Restrict a route to the platform operators listed in ADMIN_EMAILS"""
    if not user.email or user.email.lower() not in ADMIN_EMAILS:
        logger.warning(f"⚠️ Non-admin {user.email} attempted to access an admin route")
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
