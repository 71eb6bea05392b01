import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..config.settings import DOWNLOAD_RECORDS_LIMIT
from ..core.credentials import Session
from ..core.dependencies import get_download_service
from ..core.security import require_lecturer
from ..models.student import DownloadRecord, StudentInfo
from ..services.download_service import DownloadService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["downloads"])


@router.get("/api/downloads", response_model=List[DownloadRecord])
async def download_records(
    limit: int = Query(DOWNLOAD_RECORDS_LIMIT, ge=0),
    _: Session = Depends(require_lecturer),
    service: DownloadService = Depends(get_download_service),
):
    """Most recent downloads first; limit=0 returns the whole history"""
    return await service.get_download_records(limit)


@router.get("/api/students/{email}", response_model=StudentInfo)
async def student_info(
    email: str,
    _: Session = Depends(require_lecturer),
    service: DownloadService = Depends(get_download_service),
):
    student = await service.get_student_info(email)
    if student is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")
    return student
