from sqlalchemy import Column, Float, ForeignKey, Integer, String

from .base import Base


class University(Base):
    __tablename__ = "universities"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    institution_type = Column(String(32))  # public/private/community/research
    global_rank = Column(Integer)
    latitude = Column(Float)
    longitude = Column(Float)
    city = Column(String(128))
    state = Column(String(128))
    country = Column(String(128))


class Department(Base):
    __tablename__ = "departments"

    id = Column(String(64), primary_key=True)
    university_id = Column(String(64), ForeignKey("universities.id"), index=True)
    name = Column(String(255), nullable=False)
    ranking = Column(Integer)
