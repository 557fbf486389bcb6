"""declarative base shared by all Formular models"""

from sqlalchemy.orm import declarative_base

BASE = declarative_base()
