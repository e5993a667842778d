from pydantic import BaseModel, Field, field_validator
from typing import Literal

class UserRegister(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: str = Field(min_length=3, max_length=200)
    password: str = Field(min_length=6)
    role: Literal["user", "publisher"] = "user"

    @field_validator("email")
    @classmethod
    def _email_shape(cls, value: str) -> str:
        email = value.strip().lower()
        if "@" not in email or email.startswith("@") or email.endswith("@"):
            raise ValueError("Please add a valid email")
        return email

class UserLogin(BaseModel):
    email: str
    password: str

class TokenOut(BaseModel):
    success: bool = True
    token: str
