from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Boolean, DateTime


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin:
    # Python-side defaults so values are present on the instance right after flush
    created_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        onupdate=utcnow
    )


class SoftDeleteMixin:
    is_deleted = Column(Boolean, default=False, nullable=False)


class AuditMixin:
    # Actors come from the identity provider; ids are opaque and names are snapshots
    created_by_id = Column(Integer, nullable=True, index=True)
    created_by_name = Column(String(150), nullable=True)
    updated_by_id = Column(Integer, nullable=True, index=True)
    updated_by_name = Column(String(150), nullable=True)

    def stamp_created(self, actor) -> None:
        self.created_by_id = actor.id
        self.created_by_name = actor.username
        self.stamp_updated(actor)

    def stamp_updated(self, actor) -> None:
        self.updated_by_id = actor.id
        self.updated_by_name = actor.username
