# sis/schemas/grading.py
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class GPASummary(BaseModel):
    student_id: UUID
    semester: Optional[str] = None  # None for cumulative
    gpa: Decimal
    credits_attempted: int
    credits_earned: int
