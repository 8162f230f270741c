from .base import Base
from .session import engine

from dropstore.db.session import engine
from dropstore.models import *

def init_db():
    Base.metadata.create_all(bind=engine)
# Export for convenience
__all__ = ["Base", "engine", "init_db"]
