'''
Entity Store

Generic create/filter/update/delete over org-scoped EntityRecord rows. This is
the object store the engine mutates from ``create_entity``/``update_entity``
steps, agent entity operations and tools.
'''

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from opsflow.models.entity_record import EntityRecord
from opsflow.services.errors import NotFoundError, StepConfigurationError
from opsflow.services.structured_logging import get_logger

logger = get_logger('opsflow.entities')


class EntityStore:
    def __init__(self, db: Session):
        self.db = db

    def create(self, kind: str, fields: Dict[str, Any], org_id: str) -> EntityRecord:
        if not kind:
            raise StepConfigurationError("Entity kind is required")
        if not isinstance(fields, dict):
            raise StepConfigurationError(f"Entity data for {kind} must be an object")

        data = {k: v for k, v in fields.items() if k not in ("id", "org_id")}
        record = EntityRecord(org_id=org_id, kind=kind, data=data)
        self.db.add(record)
        self.db.commit()
        logger.info(f"Created {kind} record {record.id}", org_id=org_id, kind=kind)
        return record

    def get(self, kind: str, record_id: str, org_id: Optional[str] = None) -> Optional[EntityRecord]:
        query = self.db.query(EntityRecord).filter(
            EntityRecord.id == record_id,
            EntityRecord.kind == kind,
        )
        if org_id is not None:
            query = query.filter(EntityRecord.org_id == org_id)
        return query.first()

    def filter(self, kind: str, org_id: str, criteria: Optional[Dict[str, Any]] = None,
               sort: Optional[str] = None, limit: Optional[int] = None) -> List[EntityRecord]:
        """
        Records of ``kind`` whose data matches every key in ``criteria``.

        ``sort`` names a data field; a leading ``-`` sorts descending.
        """
        records = self.db.query(EntityRecord).filter(
            EntityRecord.kind == kind,
            EntityRecord.org_id == org_id,
        ).order_by(EntityRecord.created_at).all()

        if criteria:
            records = [
                r for r in records
                if all((r.data or {}).get(key) == value for key, value in criteria.items())
            ]

        if sort:
            field = sort.lstrip("-")
            records = sorted(
                records,
                key=lambda r: ((r.data or {}).get(field) is None, (r.data or {}).get(field)),
                reverse=sort.startswith("-"),
            )

        if limit is not None:
            records = records[:limit]
        return records

    def update(self, kind: str, record_id: str, fields: Dict[str, Any],
               org_id: Optional[str] = None) -> EntityRecord:
        record = self.get(kind, record_id, org_id)
        if not record:
            raise NotFoundError(f"{kind} {record_id} not found")
        if not isinstance(fields, dict):
            raise StepConfigurationError(f"Update data for {kind} must be an object")

        record.data = {**(record.data or {}), **fields}
        self.db.commit()
        logger.info(f"Updated {kind} record {record_id}", kind=kind, fields=sorted(fields))
        return record

    def delete(self, kind: str, record_id: str, org_id: Optional[str] = None) -> None:
        record = self.get(kind, record_id, org_id)
        if not record:
            raise NotFoundError(f"{kind} {record_id} not found")
        self.db.delete(record)
        self.db.commit()
        logger.info(f"Deleted {kind} record {record_id}", kind=kind)
