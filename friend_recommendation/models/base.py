# Re-export the main Base class from db.py for recommendation models
# so every table shares one metadata object
from db import Base

__all__ = ["Base"]
