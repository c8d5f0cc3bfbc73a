"""
Pydantic request schemas for the users and courses APIs
"""
import re
from typing import Optional, Dict

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


# Latin and Cyrillic letters (Ukrainian included), digits, common punctuation, whitespace
STANDARD_CHARACTERS = re.compile(r"^[a-zA-Zа-яА-ЯёЁіІїЇєЄґҐ0-9!@#$%^&*()_+=\-,.;'\s]*$")

DIFFICULTY_LEVELS = {"beginner", "intermediate", "advanced"}

USER_ROLES = {"user", "admin"}


def has_standard_characters(value: str) -> bool:
    return bool(STANDARD_CHARACTERS.match(value))


def _check_standard(value: Optional[str]) -> Optional[str]:
    if value is not None and not has_standard_characters(value):
        raise ValueError("must contain only letters, digits and common punctuation")
    return value


class CamelModel(BaseModel):
    """Accepts both snake_case names and the frontend's camelCase aliases"""
    model_config = ConfigDict(populate_by_name=True)


class SignupRequest(CamelModel):
    user_name: Optional[str] = Field(None, alias="userName", max_length=100)
    email: EmailStr
    password: str = Field(..., max_length=128)

    @field_validator("user_name")
    @classmethod
    def validate_user_name(cls, v):
        return _check_standard(v)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()


class SigninRequest(CamelModel):
    # Optional so that missing credentials are reported as a domain validation error
    email: Optional[str] = Field(None, max_length=255)
    password: Optional[str] = Field(None, max_length=128)


class GoogleAuthRequest(CamelModel):
    id_token: str = Field(..., alias="idToken", min_length=1)


class ForgotPasswordRequest(CamelModel):
    email: str = Field(..., max_length=255)


class CheckTokenRequest(CamelModel):
    email: str = Field(..., max_length=255)
    code: Optional[str] = Field(None, alias="passwordResetToken", max_length=64)


class ResetPasswordRequest(CheckTokenRequest):
    password: str = Field(..., max_length=128)


class UpdateMeRequest(CamelModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    user_name: Optional[str] = Field(None, alias="userName", max_length=100)

    @field_validator("user_name")
    @classmethod
    def validate_user_name(cls, v):
        return _check_standard(v)


class CourseFields(CamelModel):
    name_uk: Optional[str] = Field(None, max_length=200)
    description_en: Optional[str] = Field(None, max_length=5000)
    description_uk: Optional[str] = Field(None, max_length=5000)
    duration: Optional[int] = Field(None, ge=0)
    difficulty: Optional[str] = None
    file_id: Optional[str] = Field(None, alias="fileId", max_length=200)

    @field_validator("name_uk", "description_en", "description_uk")
    @classmethod
    def validate_text(cls, v):
        return _check_standard(v)

    @field_validator("difficulty")
    @classmethod
    def validate_difficulty(cls, v):
        if v is not None and v not in DIFFICULTY_LEVELS:
            raise ValueError(f"must be one of {', '.join(sorted(DIFFICULTY_LEVELS))}")
        return v


def _validate_price(v):
    if v is None:
        return v
    prices = {}
    for currency, amount in v.items():
        if amount < 0:
            raise ValueError("price cannot be negative")
        prices[currency.lower()] = amount
    return prices


class CourseCreate(CourseFields):
    name_en: str = Field(..., min_length=1, max_length=200)
    price: Dict[str, int]

    @field_validator("name_en")
    @classmethod
    def validate_name(cls, v):
        return _check_standard(v)

    @field_validator("price")
    @classmethod
    def validate_price(cls, v):
        return _validate_price(v)


class CourseUpdate(CourseFields):
    name_en: Optional[str] = Field(None, min_length=1, max_length=200)
    price: Optional[Dict[str, int]] = None

    @field_validator("name_en")
    @classmethod
    def validate_name(cls, v):
        return _check_standard(v)

    @field_validator("price")
    @classmethod
    def validate_price(cls, v):
        return _validate_price(v)



class AdminUserUpdate(CamelModel):
    """Fields an admin may change on another account"""
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    user_name: Optional[str] = Field(None, alias="userName", max_length=100)
    role: Optional[str] = None

    @field_validator("user_name")
    @classmethod
    def validate_user_name(cls, v):
        return _check_standard(v)

    @field_validator("role")
    @classmethod
    def validate_role(cls, v):
        if v is not None and v not in USER_ROLES:
            raise ValueError(f"must be one of {', '.join(sorted(USER_ROLES))}")
        return v
