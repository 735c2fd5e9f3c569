import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from academic_agent.core.database import Base


def _new_id() -> str:
    return uuid.uuid4().hex


class Program(Base):
    __tablename__ = "programs"

    id = Column(String, primary_key=True, default=_new_id)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True, index=True)
    code = Column(String, nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="active")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    levels = relationship("Level", back_populates="program", cascade="all, delete-orphan")


class Level(Base):
    __tablename__ = "levels"

    id = Column(String, primary_key=True, default=_new_id)
    program_id = Column(String, ForeignKey("programs.id"), nullable=False)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, index=True)
    code = Column(String, nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="active")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    program = relationship("Program", back_populates="levels")
    semesters = relationship("Semester", back_populates="level", cascade="all, delete-orphan")


class Semester(Base):
    __tablename__ = "semesters"

    id = Column(String, primary_key=True, default=_new_id)
    level_id = Column(String, ForeignKey("levels.id"), nullable=False)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, index=True)
    code = Column(String, nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="active")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    level = relationship("Level", back_populates="semesters")
