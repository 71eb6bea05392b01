import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status

from ..core.credentials import Session
from ..core.dependencies import get_lecturer_service
from ..core.security import require_lecturer
from ..models.lecturer import LecturerProfile, LecturerProfileCreate, LecturerProfileUpdate
from ..services.lecturer_service import LecturerService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/lecturers",
    tags=["lecturers"]
)


@router.get("/main", response_model=Optional[LecturerProfile])
async def main_lecturer(service: LecturerService = Depends(get_lecturer_service)):
    """Public contact card shown to students; null until a profile exists"""
    return await service.get_main_lecturer()


@router.get("/{lecturer_id}", response_model=LecturerProfile)
async def get_lecturer(
    lecturer_id: str,
    _: Session = Depends(require_lecturer),
    service: LecturerService = Depends(get_lecturer_service),
):
    profile = await service.get_lecturer_profile(lecturer_id)
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lecturer profile not found")
    return profile


@router.put("/{lecturer_id}", response_model=LecturerProfile)
async def save_lecturer(
    lecturer_id: str,
    changes: LecturerProfileUpdate,
    _: Session = Depends(require_lecturer),
    service: LecturerService = Depends(get_lecturer_service),
):
    """Create the profile on first save, update it afterwards"""
    existing = await service.get_lecturer_profile(lecturer_id, strict=True)
    if existing is None:
        fields = changes.model_dump(exclude_unset=True)
        if not fields.get("email"):
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="email is required when creating a profile",
            )
        profile = LecturerProfileCreate(**{k: v for k, v in fields.items() if v is not None})
        await service.create_lecturer_profile(lecturer_id, profile)
    else:
        await service.update_lecturer_profile(lecturer_id, changes)

    saved = await service.get_lecturer_profile(lecturer_id, strict=True)
    if saved is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lecturer profile not found")
    return saved
