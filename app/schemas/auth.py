from typing import Optional
from pydantic import BaseModel


class Requester(BaseModel):
    """Identity carried by a validated bearer token."""
    id: str
    role: str
    name: Optional[str] = None
