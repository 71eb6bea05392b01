from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from sqlalchemy import JSON, Column, DateTime, String, Text

from ..config.database import Base

WEEK_DAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class Lecturer(Base):
    __tablename__ = "lecturers"

    id = Column(String, primary_key=True, index=True)
    first_name = Column("firstName", String, nullable=False, default="")
    last_name = Column("lastName", String, nullable=False, default="")
    email = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    office = Column(String, nullable=True)
    department = Column(String, nullable=False, default="")
    title = Column(String, nullable=False, default="")
    bio = Column(Text, nullable=False, default="")
    office_hours = Column("officeHours", JSON, nullable=False, default=dict)
    created_at = Column("createdAt", DateTime(timezone=True), nullable=False, index=True)
    updated_at = Column("updatedAt", DateTime(timezone=True), nullable=False)


def _check_office_hours(hours: Optional[Dict[str, str]]) -> Optional[Dict[str, str]]:
    if hours is None:
        return None
    cleaned = {}
    for day, text in hours.items():
        key = day.strip().lower()
        if key not in WEEK_DAYS:
            raise ValueError(f"Unknown day in officeHours: {day}")
        cleaned[key] = text
    return cleaned


class LecturerProfileBase(BaseModel):
    firstName: str = ""
    lastName: str = ""
    email: str
    phone: Optional[str] = None
    office: Optional[str] = None
    department: str = ""
    title: str = ""
    bio: str = ""
    officeHours: Dict[str, str] = {}

    @field_validator("officeHours")
    @classmethod
    def _valid_days(cls, hours):
        return _check_office_hours(hours)


class LecturerProfileCreate(LecturerProfileBase):
    pass


class LecturerProfileUpdate(BaseModel):
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    office: Optional[str] = None
    department: Optional[str] = None
    title: Optional[str] = None
    bio: Optional[str] = None
    officeHours: Optional[Dict[str, str]] = None

    @field_validator("officeHours")
    @classmethod
    def _valid_days(cls, hours):
        return _check_office_hours(hours)


class LecturerProfile(LecturerProfileBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    createdAt: datetime
    updatedAt: datetime
