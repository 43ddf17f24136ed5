from pydantic import BaseModel, Field, field_validator
from typing import Optional

REGISTRABLE_ROLES = {"user", "manager"}

class RegisterIn(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: str = Field(max_length=200)
    password: str = Field(min_length=6)
    role: Optional[str] = None

    @field_validator("email")
    @classmethod
    def _email_shape(cls, value: str) -> str:
        text = str(value or "").strip().lower()
        local, _, domain = text.partition("@")
        if not local or "." not in domain or " " in text:
            raise ValueError("must be a valid e-mail address")
        return text

    @field_validator("role")
    @classmethod
    def _registrable_role(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        role = value.strip().lower()
        if role not in REGISTRABLE_ROLES:
            raise ValueError("must be one of: " + ", ".join(sorted(REGISTRABLE_ROLES)))
        return role

class LoginIn(BaseModel):
    email: str
    password: str

class UserOut(BaseModel):
    id: int
    name: str
    email: str
    role: str

class AuthOut(BaseModel):
    message: str
    user: UserOut
    token: str

class MeOut(BaseModel):
    user: UserOut
