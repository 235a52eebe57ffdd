from typing import Dict, List, Optional
from pydantic import BaseModel


class CircuitStatusOut(BaseModel):
    state: str
    failures: int
    last_failure: int
    threshold: int
    reset_seconds: int


class CircuitOut(CircuitStatusOut):
    name: str
    retry_in: Optional[int] = None  # seconds until the next recovery attempt, only when open


class CircuitListOut(BaseModel):
    circuits: Dict[str, CircuitStatusOut]


class CircuitHealthOut(BaseModel):
    status: str
    open_circuits: List[str] = []
    half_open_circuits: List[str] = []
    closed_circuits: List[str] = []
    total_circuits: int = 0
    reason: Optional[str] = None
