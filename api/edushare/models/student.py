from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import JSON, Column, DateTime, String

from ..config.database import Base
from .content import ContentType


class Department(str, Enum):
    COMPUTER_SCIENCE = "Computer Science"
    INFORMATION_TECHNOLOGY = "Information Technology"
    SOFTWARE_ENGINEERING = "Software Engineering"
    ELECTRICAL_ENGINEERING = "Electrical Engineering"
    MECHANICAL_ENGINEERING = "Mechanical Engineering"
    CIVIL_ENGINEERING = "Civil Engineering"
    BUSINESS_ADMINISTRATION = "Business Administration"
    ACCOUNTING = "Accounting"
    ECONOMICS = "Economics"
    MATHEMATICS = "Mathematics"
    PHYSICS = "Physics"
    CHEMISTRY = "Chemistry"
    BIOLOGY = "Biology"
    ENGLISH = "English"
    MASS_COMMUNICATION = "Mass Communication"
    LAW = "Law"
    MEDICINE = "Medicine"
    NURSING = "Nursing"
    PHARMACY = "Pharmacy"
    OTHER = "Other"


class StudentLevel(str, Enum):
    LEVEL_100 = "100 Level"
    LEVEL_200 = "200 Level"
    LEVEL_300 = "300 Level"
    LEVEL_400 = "400 Level"
    LEVEL_500 = "500 Level"
    LEVEL_600 = "600 Level"
    POSTGRADUATE = "Postgraduate"


class Student(Base):
    __tablename__ = "students"

    id = Column(String, primary_key=True, index=True)  # the student's email
    first_name = Column("firstName", String, nullable=False)
    last_name = Column("lastName", String, nullable=False)
    email = Column(String, nullable=False)
    matric_number = Column("matricNumber", String, nullable=False)
    department = Column(String, nullable=False)
    level = Column(String, nullable=False)
    phone_number = Column("phoneNumber", String, nullable=True)
    created_at = Column("createdAt", DateTime(timezone=True), nullable=False)


class Download(Base):
    __tablename__ = "downloads"

    id = Column(String, primary_key=True, index=True)
    content_id = Column("contentId", String, nullable=False, index=True)
    content_title = Column("contentTitle", String, nullable=False)
    content_type = Column("contentType", String, nullable=False)
    student_info = Column("studentInfo", JSON, nullable=False)
    download_date = Column("downloadDate", DateTime(timezone=True), nullable=False, index=True)
    ip_address = Column("ipAddress", String, nullable=True)


class StudentInfoInput(BaseModel):
    """Identity a student submits before a download"""

    firstName: str = Field(..., min_length=1)
    lastName: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    matricNumber: str = Field(..., min_length=1)
    department: Department
    level: StudentLevel
    phoneNumber: Optional[str] = None

    @field_validator("firstName", "lastName", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value):
        if isinstance(value, str):
            value = value.strip().lower()
            if "@" not in value:
                raise ValueError("Please enter a valid email address")
        return value

    @field_validator("matricNumber", mode="before")
    @classmethod
    def _normalize_matric(cls, value):
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("phoneNumber", mode="before")
    @classmethod
    def _blank_phone(cls, value):
        if isinstance(value, str):
            value = value.strip()
        return value or None


class StudentInfo(StudentInfoInput):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    createdAt: datetime


class DownloadRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    contentId: str
    contentTitle: str
    contentType: ContentType
    studentInfo: StudentInfo
    downloadDate: datetime
    ipAddress: Optional[str] = None


class DownloadReceipt(BaseModel):
    """Returned to the student once a download has been recorded"""

    downloadId: str
    contentId: str
    url: str
