"""
Generic org-scoped record used as the object store behind entity steps.

``kind`` names the entity type (``Ticket``, ``Query``, ``KnowledgeBase`` ...);
``data`` holds its fields.
"""
from sqlalchemy import Column, String, DateTime

from opsflow.database import db
from opsflow.models.types import JSONDict, new_id, utcnow, iso


class EntityRecord(db.Model):
    __tablename__ = "entity_records"

    id = Column(String(36), primary_key=True, default=new_id)
    org_id = Column(String(36), nullable=False, index=True)
    kind = Column(String(100), nullable=False, index=True)
    data = Column(JSONDict)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            **(self.data or {}),
            "id": self.id,
            "org_id": self.org_id,
            "kind": self.kind,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
