from uuid import UUID

from pydantic import BaseModel


class CurrentUser(BaseModel):
    """Authenticated caller: already-verified user and the organization the token was issued for."""

    id: UUID
    organization_id: UUID
