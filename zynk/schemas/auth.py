"""Auth-related Pydantic schemas."""

from typing import Literal

from pydantic import BaseModel

Role = Literal["customer", "chef", "delivery", "admin"]


class Identity(BaseModel):
    user_id: int
    role: Role
