"""One-time employee self-registration tokens."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

REGISTRATION_TOKENS_COLLECTION = "registrationTokens"
EMPLOYEES_COLLECTION = "employees"


class TokenStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class RegistrationToken(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    shop_id: str
    expires: datetime
    used: bool = False
    used_by: Optional[str] = None
    status: TokenStatus = TokenStatus.PENDING
    completed_at: Optional[datetime] = None
