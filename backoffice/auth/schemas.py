from typing import Dict, Optional
from uuid import UUID

from pydantic import BaseModel


class CurrentUser(BaseModel):
    """Request-scoped caller context passed explicitly into every service call.
    school_id is None when the user is not associated with a school; fee services refuse such callers.
    """

    id: UUID
    school_id: Optional[UUID] = None
    role: str
    permissions: Dict[str, Dict[str, bool]]
