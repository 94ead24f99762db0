from sqlalchemy import Column, DateTime, Integer, String, Text, func

from .database import Base, get_engine


class BlobRecord(Base):
    """One JSON value per (namespace, key), with a version for conditional writes."""

    __tablename__ = "blob_record"

    namespace = Column(String(64), primary_key=True)
    blob_key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
    version = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


def init_schema(engine=None) -> None:
    Base.metadata.create_all(bind=engine or get_engine())
