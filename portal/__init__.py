from sqlalchemy.orm import Session

from .database import Base, engine
from .routes import api_router
from .services.academics import seed_class_levels
from .services.admin import ensure_school_settings


def init_portal() -> None:
    Base.metadata.create_all(bind=engine)
    db = Session(bind=engine)
    try:
        seed_class_levels(db)
        ensure_school_settings(db)
    finally:
        db.close()


__all__ = ["api_router", "init_portal"]
