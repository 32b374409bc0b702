from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class Seller(BaseModel):
    id: int
    email: str
    name: str
    store_name: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True

    @property
    def display_name(self) -> str:
        return self.store_name or self.name
