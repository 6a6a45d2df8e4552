from datetime import datetime, timezone

from sqlalchemy import Column, Float, Integer, String, UniqueConstraint
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class SavedPlace(Base):
    __tablename__ = "saved_places"
    __table_args__ = (UniqueConstraint("agent", "name", name="uq_agent_place"),)

    id = Column(Integer, primary_key=True, index=True)
    agent = Column(String, index=True, nullable=False)
    name = Column(String, nullable=False)
    x = Column(Float, nullable=False)
    y = Column(Float, nullable=False)
    z = Column(Float, nullable=False)
    updated_at = Column(String, default=lambda: datetime.now(timezone.utc).isoformat())
