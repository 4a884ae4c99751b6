from pydantic import BaseModel, ConfigDict
from typing import Dict, Optional
from datetime import datetime


class UserBase(BaseModel):
    """
    Basic user payload returned by the API
    """

    id: int
    username: str
    level: int = 0
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class WalletBalances(BaseModel):
    user_id: int
    balances: Dict[str, float]
    bonus_attempts: int = 0
    tickets: int = 0
