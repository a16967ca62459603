"""
Organization model for multi-tenant scoping of workflows and agents.
"""
from sqlalchemy import Column, String, DateTime, Boolean

from opsflow.database import db
from opsflow.models.types import new_id, utcnow, iso


class Organization(db.Model):
    """Tenant that owns workflows, agents, tools and entity records."""

    __tablename__ = 'organizations'

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False, index=True)
    slug = Column(String(100), unique=True, nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return f'<Organization {self.name} ({self.slug})>'

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'slug': self.slug,
            'is_active': self.is_active,
            'created_at': iso(self.created_at),
        }
