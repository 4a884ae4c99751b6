from pydantic import BaseModel, ConfigDict
from typing import Any, Dict, List, Optional, Union
from datetime import datetime


class AttemptRequest(BaseModel):
    pool_id: int
    # Instant-win pools: the instant win (reward unit) being claimed
    context_id: Optional[Union[int, str]] = None
    extra_context: Optional[Dict[str, Any]] = None


class RewardOut(BaseModel):
    type: str
    value: float = 0
    unit_id: Optional[int] = None
    name: Optional[str] = None
    status: Optional[str] = None
    message: Optional[str] = None
    details: Dict[str, Any] = {}


class AttemptResponse(BaseModel):
    success: bool = True
    attempt_id: str
    outcome: str
    reward: RewardOut
    remaining_attempts: int


class RejectionResponse(BaseModel):
    success: bool = False
    reason: str
    next_available_at: Optional[datetime] = None
    remaining_attempts: int = 0


class ErrorResponse(BaseModel):
    success: bool = False
    code: str
    message: str


class EligibilityResponse(BaseModel):
    pool_id: int
    allowed: bool
    reason: Optional[str] = None
    remaining_attempts: int = 0
    next_available_at: Optional[datetime] = None
    period: Optional[str] = None
    used: int = 0
    limit: int = 0


class PoolStatus(BaseModel):
    pool_id: int
    name: Optional[str] = None
    kind: str
    period_key: Optional[str] = None
    cooldown_hours: Optional[int] = None
    min_tier: Optional[int] = None
    is_eligible: bool
    remaining_attempts: int = 0
    next_available_at: Optional[datetime] = None


class AttemptHistoryItem(BaseModel):
    id: str
    pool_id: int
    pool_name: Optional[str] = None
    unit_id: Optional[int] = None
    unit_name: Optional[str] = None
    reward_type: Optional[str] = None
    magnitude: float = 0
    outcome: str
    result_metadata: Optional[Dict[str, Any]] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UnitStock(BaseModel):
    unit_id: int
    name: Optional[str] = None
    reward_type: str
    capacity: Optional[int] = None
    consumed: int = 0
    remaining: Optional[int] = None


class TrendPoint(BaseModel):
    date: str
    attempts: int
    wins: int


class PoolStatistics(BaseModel):
    pool_id: int
    total_attempts: int
    unique_principals: int
    winning_attempts: int
    rejected_attempts: int
    total_prize_value: float
    distribution: Dict[str, int]
    stock: List[UnitStock]
    trend: List[TrendPoint]
