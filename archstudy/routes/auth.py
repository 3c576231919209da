from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, EmailStr
import logging

from archstudy.utils.auth_utils import CurrentUser, get_context, get_current_user

router = APIRouter()

class SignInRequest(BaseModel):
    email: EmailStr
    password: str

class AuthResponse(BaseModel):
    message: str
    user: CurrentUser

@router.post("/signin", response_model=AuthResponse)
async def signin(request: SignInRequest, context=Depends(get_context)):
    """Sign in with Supabase Auth and start syncing this user's data"""
    if context.auth is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Sign-in is unavailable in offline-only mode"
        )
    try:
        user = await context.auth.sign_in(request.email, request.password)
        return AuthResponse(message="Signed in", user=user)
    except HTTPException:
        raise
    except Exception as e:
        logging.error(f"Signin error: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials"
        )

@router.post("/signout")
async def signout(context=Depends(get_context)):
    """Sign out; local data stays on the device"""
    if context.auth is not None:
        await context.auth.sign_out()
    else:
        await context.identity.sign_out()
    return {"message": "Signed out"}

@router.get("/me", response_model=CurrentUser)
async def get_me(current_user: CurrentUser = Depends(get_current_user)):
    return current_user
