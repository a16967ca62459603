"""
Integration Model

Per-org connection to a third-party system used by ``integration_action`` steps.
"""
from sqlalchemy import Column, String, DateTime, ForeignKey

from opsflow.database import db
from opsflow.models.types import JSONDict, new_id, utcnow, iso

INTEGRATION_TYPES = ("slack", "notion", "linear", "jira")


class Integration(db.Model):
    __tablename__ = "integrations"

    id = Column(String(36), primary_key=True, default=new_id)
    org_id = Column(String(36), ForeignKey("organizations.id"), nullable=False, index=True)
    type = Column(String(32), nullable=False)
    # active, inactive
    status = Column(String(20), nullable=False, default="active")
    config = Column(JSONDict)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    def to_dict(self):
        # config may hold credentials; only expose its keys
        return {
            "id": self.id,
            "org_id": self.org_id,
            "type": self.type,
            "status": self.status,
            "config_keys": sorted((self.config or {}).keys()),
            "created_at": iso(self.created_at),
        }
