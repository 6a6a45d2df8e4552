"""Named places the agent remembers across sessions."""

from datetime import datetime, timezone

from sqlalchemy.orm import sessionmaker

from mindbot.storage import models
from mindbot.storage.database import init_db, make_engine


class MemoryBank:
    def __init__(self, agent_name: str, database_url: str):
        self.agent_name = agent_name
        self.engine = make_engine(database_url)
        self.SessionLocal: sessionmaker = init_db(self.engine)

    def remember_place(self, name: str, x: float, y: float, z: float) -> models.SavedPlace:
        db = self.SessionLocal()
        try:
            place = db.query(models.SavedPlace).filter_by(agent=self.agent_name, name=name).first()
            if not place:
                place = models.SavedPlace(agent=self.agent_name, name=name, x=x, y=y, z=z)
                db.add(place)
            else:
                place.x, place.y, place.z = x, y, z
                place.updated_at = datetime.now(timezone.utc).isoformat()
            db.commit()
            db.refresh(place)
            return place
        finally:
            db.close()

    def recall_place(self, name: str) -> tuple[float, float, float] | None:
        db = self.SessionLocal()
        try:
            place = db.query(models.SavedPlace).filter_by(agent=self.agent_name, name=name).first()
            if not place:
                return None
            return place.x, place.y, place.z
        finally:
            db.close()

    def get_keys(self) -> list[str]:
        db = self.SessionLocal()
        try:
            places = db.query(models.SavedPlace).filter_by(agent=self.agent_name).order_by(models.SavedPlace.name).all()
            return [p.name for p in places]
        finally:
            db.close()

    def close(self) -> None:
        self.engine.dispose()
