import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String, Uuid

from studio_crm.db.session import Base


class Organization(Base):
    """
    Tenant (organization). Every other row is owned by exactly one organization,
    either directly (organization_id) or through its group/session.
    """

    __tablename__ = "organizations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    # Public identifier used for subdomain routing; never used as FK
    slug = Column(String(100), unique=True, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
