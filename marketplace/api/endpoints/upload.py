"""
Video upload endpoints.
"""
import time
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.deps import (
    get_app_settings,
    get_current_user,
    get_media_service,
    get_storage_service,
    get_temp_file_manager,
)
from marketplace.core.logging import log_operation_complete, log_operation_start, get_request_id
from marketplace.database.dependencies import get_db
from marketplace.database.models.user import User
from marketplace.models.schemas import UploadResponse, VideoDetail
from marketplace.services import upload_service
from marketplace.services.media_service import MediaService
from marketplace.services.storage_service import GCSStorage
from marketplace.services.temp_file_manager import TempFileManager
from marketplace.services.upload_service import UploadForm, UploadService
from marketplace.services.video_service import video_detail

router = APIRouter()


@router.post("/videos/upload", response_model=UploadResponse)
async def upload_video(
    video: Optional[UploadFile] = File(None),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    ai_model: Optional[str] = Form(None, alias="aiModel"),
    prompts: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    style: Optional[str] = Form(None),
    personal_license: Optional[str] = Form(None, alias="personalLicense"),
    commercial_license: Optional[str] = Form(None, alias="commercialLicense"),
    extended_license: Optional[str] = Form(None, alias="extendedLicense"),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
    storage: GCSStorage = Depends(get_storage_service),
    media: MediaService = Depends(get_media_service),
    temp_files: TempFileManager = Depends(get_temp_file_manager),
):
    """Upload a video, extract its metadata and thumbnail, and publish it."""
    start_time = time.time()
    log_operation_start(
        logger="marketplace.api.endpoints.upload",
        function="upload_video",
        operation="upload_video",
        message="Received video upload",
        context={"request_id": get_request_id(), "filename": video.filename if video else None},
    )

    service = UploadService(session, storage, media, temp_files, get_app_settings())
    form = UploadForm(
        title=title,
        description=description,
        ai_model=ai_model,
        prompts=prompts,
        tags=tags,
        category=category,
        style=style,
        personal_license=personal_license,
        commercial_license=commercial_license,
        extended_license=extended_license,
    )
    created = await service.upload(user, video, form)
    await session.refresh(created, attribute_names=["creator"])

    log_operation_complete(
        logger="marketplace.api.endpoints.upload",
        function="upload_video",
        operation="upload_video",
        message="Video uploaded",
        context={"video_id": created.id},
        duration=time.time() - start_time,
    )
    return UploadResponse(message="Video uploaded successfully", video=video_detail(created))


@router.get("/videos/upload", response_model=VideoDetail)
async def get_uploaded_video(
    video_id: Optional[str] = Query(None, alias="videoId"),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    """Return one of the caller's own videos, whatever its status."""
    video = await upload_service.get_own_video(session, user, video_id)
    return video_detail(video)
