from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator
from sqlalchemy import JSON, Column, DateTime, Integer, String, Text

from ..config.database import Base


class ContentType(str, Enum):
    PDF = "pdf"
    VIDEO = "video"
    POWERPOINT = "powerpoint"


class VisibilityLevel(str, Enum):
    PUBLIC = "public"                # students and lecturers
    LECTURER_ONLY = "lecturer_only"  # lecturers only


FILE_CONTENT_TYPES = {ContentType.PDF, ContentType.POWERPOINT}

# Blob folder per file-backed content type
STORAGE_FOLDERS = {
    ContentType.PDF: "pdfs",
    ContentType.POWERPOINT: "powerpoints",
}


class Content(Base):
    __tablename__ = "content"

    id = Column(String, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    course_title = Column("courseTitle", String, nullable=False, default="")
    course_description = Column("courseDescription", Text, nullable=False, default="")
    category = Column(String, nullable=False, default="")
    tags = Column(JSON, nullable=False, default=list)
    content_type = Column("contentType", String, nullable=False, index=True)
    visibility = Column(String, nullable=False, index=True)
    # pdf / powerpoint only
    file_name = Column("fileName", String, nullable=True)
    file_size = Column("fileSize", Integer, nullable=True)
    download_url = Column("downloadURL", String, nullable=True)
    # video only
    video_url = Column("videoURL", String, nullable=True)
    video_duration = Column("videoDuration", Integer, nullable=True)
    video_thumbnail = Column("videoThumbnail", String, nullable=True)
    upload_date = Column("uploadDate", DateTime(timezone=True), nullable=False, index=True)
    downloads = Column(Integer, nullable=False, default=0)
    views = Column(Integer, nullable=False, default=0)
    uploaded_by = Column("uploadedBy", String, nullable=False)


class ContentBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: str = ""
    courseTitle: str = ""
    courseDescription: str = ""
    category: str = ""
    tags: List[str] = Field(default_factory=list)
    visibility: VisibilityLevel
    uploadDate: datetime
    downloads: int = Field(0, ge=0)
    views: int = Field(0, ge=0)
    uploadedBy: str


class FileContent(ContentBase):
    fileName: str
    fileSize: int = Field(..., ge=0)
    downloadURL: str


class DocumentContent(FileContent):
    contentType: Literal["pdf"] = "pdf"


class SlideDeckContent(FileContent):
    contentType: Literal["powerpoint"] = "powerpoint"


class VideoContent(ContentBase):
    contentType: Literal["video"] = "video"
    videoURL: str
    videoDuration: Optional[int] = Field(None, ge=0)
    videoThumbnail: Optional[str] = None


ContentRecord = Annotated[
    Union[DocumentContent, SlideDeckContent, VideoContent],
    Field(discriminator="contentType"),
]

_content_adapter = TypeAdapter(ContentRecord)


def parse_content(raw: Dict[str, Any]) -> ContentRecord:
    """Build the variant matching a raw store record's contentType"""
    return _content_adapter.validate_python(raw)


class ContentCreate(BaseModel):
    """Upload metadata; ids, counters, timestamps and file fields are filled in on upload"""

    title: str = Field(..., min_length=1)
    description: str = ""
    courseTitle: str = ""
    courseDescription: str = ""
    category: str = ""
    tags: List[str] = Field(default_factory=list)
    contentType: ContentType
    visibility: VisibilityLevel = VisibilityLevel.PUBLIC
    uploadedBy: str
    videoURL: Optional[str] = None
    videoDuration: Optional[int] = Field(None, ge=0)
    videoThumbnail: Optional[str] = None

    @field_validator("tags")
    @classmethod
    def _clean_tags(cls, tags: List[str]) -> List[str]:
        return [tag.strip() for tag in tags if tag and tag.strip()]

    @model_validator(mode="after")
    def _check_video_fields(self):
        if self.contentType == ContentType.VIDEO:
            if not self.videoURL:
                raise ValueError("videoURL is required for video content")
        elif self.videoURL or self.videoDuration is not None or self.videoThumbnail:
            raise ValueError(f"Video fields are not allowed for {self.contentType.value} content")
        return self


@dataclass
class FileUpload:
    """A file handed to upload_content"""
    filename: str
    data: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)


class ContentStatistics(BaseModel):
    totalContent: int
    totalDownloads: int
    totalViews: int
    totalStudents: int
    contentByType: Dict[ContentType, int]
    publicContent: int
    privateContent: int
