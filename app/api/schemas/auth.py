from pydantic import BaseModel, EmailStr, Field

from app.models.user import UserPublic


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    name: str = Field(min_length=2)
    timezone: str = Field(pattern=r"^[+-]\d{2}:\d{2}$", examples=["+05:30", "-08:00"])


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    user: UserPublic


class SharableIdResponse(BaseModel):
    sharable_id: str
    message: str
