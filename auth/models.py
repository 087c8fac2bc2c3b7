# backend/auth/models.py
from pydantic import BaseModel, Field
from typing import Optional

class UserRegister(BaseModel):
    username: str = Field(min_length=1)
    email: Optional[str] = None
    password: str = Field(min_length=1)
