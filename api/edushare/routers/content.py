import json
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from ..config.settings import ALLOWED_EXTENSIONS, MAX_FILE_SIZE, SUBSCRIPTION_POLL_INTERVAL
from ..core.credentials import Session
from ..core.dependencies import get_content_service, get_download_service
from ..core.security import get_session, require_lecturer
from ..models.content import (
    ContentCreate, ContentRecord, ContentStatistics, ContentType, FileUpload,
    FILE_CONTENT_TYPES, VisibilityLevel,
)
from ..models.student import DownloadReceipt, StudentInfoInput
from ..services.content_service import ContentService
from ..services.download_service import DownloadService
from ..services.subscription import ContentSubscription
from ..utils.file_utils import is_valid_file_type

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/content",
    tags=["content"]
)


async def _get_or_404(service: ContentService, content_id: str, session: Session):
    content = await service.get_content(content_id, is_privileged=session.is_privileged)
    if content is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Content not found")
    return content


@router.get("", response_model=List[ContentRecord])
async def list_content(
    contentType: Optional[ContentType] = None,
    session: Session = Depends(get_session),
    service: ContentService = Depends(get_content_service),
):
    """All content the caller may see, newest first"""
    if contentType is not None:
        return await service.get_content_by_type(contentType, is_privileged=session.is_privileged)
    return await service.list_content(is_privileged=session.is_privileged)


@router.get("/stream")
async def stream_content(
    request: Request,
    session: Session = Depends(get_session),
    service: ContentService = Depends(get_content_service),
):
    """Server-sent events; every event carries the full visible content list"""
    async def event_stream():
        async with ContentSubscription(
            service, is_privileged=session.is_privileged, poll_interval=SUBSCRIPTION_POLL_INTERVAL
        ) as subscription:
            async for snapshot in subscription:
                if await request.is_disconnected():
                    break
                yield f"data: {json.dumps(jsonable_encoder(snapshot))}\n\n"

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.get("/statistics", response_model=ContentStatistics)
async def content_statistics(
    _: Session = Depends(require_lecturer),
    service: ContentService = Depends(get_content_service),
):
    return await service.get_content_statistics()


@router.get("/{content_id}", response_model=ContentRecord)
async def get_content(
    content_id: str,
    session: Session = Depends(get_session),
    service: ContentService = Depends(get_content_service),
):
    return await _get_or_404(service, content_id, session)


@router.post("", response_model=ContentRecord, status_code=status.HTTP_201_CREATED)
async def upload_content(
    title: str = Form(...),
    contentType: ContentType = Form(...),
    visibility: VisibilityLevel = Form(VisibilityLevel.PUBLIC),
    description: str = Form(""),
    courseTitle: str = Form(""),
    courseDescription: str = Form(""),
    category: str = Form(""),
    tags: str = Form(""),
    videoURL: Optional[str] = Form(None),
    videoDuration: Optional[int] = Form(None),
    videoThumbnail: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    session: Session = Depends(require_lecturer),
    service: ContentService = Depends(get_content_service),
):
    """
    Upload a new piece of content.

    pdf and powerpoint content need a file; video content needs a videoURL.
    Tags are sent as one comma separated string.
    """
    try:
        metadata = ContentCreate(
            title=title,
            description=description,
            courseTitle=courseTitle,
            courseDescription=courseDescription,
            category=category,
            tags=tags.split(","),
            contentType=contentType,
            visibility=visibility,
            uploadedBy=session.email,
            videoURL=videoURL or None,
            videoDuration=videoDuration,
            videoThumbnail=videoThumbnail or None,
        )
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="; ".join(error["msg"] for error in e.errors()),
        )

    upload = None
    if contentType in FILE_CONTENT_TYPES:
        if file is None or not file.filename:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"A file is required for {contentType.value} content",
            )

        allowed = ALLOWED_EXTENSIONS[contentType.value]
        if not is_valid_file_type(file.filename, allowed):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid file type for {contentType.value} content. Allowed: {', '.join(sorted(allowed))}",
            )

        data = await file.read()
        if len(data) > MAX_FILE_SIZE:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"File too large. Maximum size is {MAX_FILE_SIZE // (1024 * 1024)}MB",
            )
        upload = FileUpload(filename=file.filename, data=data, content_type=file.content_type)

    content_id = await service.upload_content(metadata, upload)
    return await service.get_content(content_id, is_privileged=True)


@router.delete("/{content_id}")
async def delete_content(
    content_id: str,
    session: Session = Depends(require_lecturer),
    service: ContentService = Depends(get_content_service),
):
    """Delete the record, then its stored file"""
    content = await _get_or_404(service, content_id, session)
    blob_url = content.downloadURL if content.contentType in FILE_CONTENT_TYPES else None
    await service.delete_content(content_id, blob_url)
    return {"message": "Content deleted successfully", "id": content_id}


@router.post("/{content_id}/views", status_code=status.HTTP_202_ACCEPTED)
async def record_view(
    content_id: str,
    session: Session = Depends(get_session),
    service: ContentService = Depends(get_content_service),
):
    await _get_or_404(service, content_id, session)
    await service.increment_view_count(content_id)
    return {"id": content_id}


@router.post("/{content_id}/downloads", response_model=DownloadReceipt, status_code=status.HTTP_201_CREATED)
async def download_content(
    content_id: str,
    student: StudentInfoInput,
    request: Request,
    session: Session = Depends(get_session),
    service: ContentService = Depends(get_content_service),
    downloads: DownloadService = Depends(get_download_service),
):
    """Record the student's details, then hand back the file or video URL"""
    content = await _get_or_404(service, content_id, session)
    download_id = await downloads.record_student_download(
        content_id=content.id,
        content_title=content.title,
        content_type=ContentType(content.contentType),
        student_info=student,
        ip_address=request.client.host if request.client else None,
    )

    url = content.videoURL if content.contentType == ContentType.VIDEO.value else content.downloadURL
    return DownloadReceipt(downloadId=download_id, contentId=content.id, url=url)
