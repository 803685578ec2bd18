"""
Upload orchestrator: validates a creator's submission, stores the media and
publishes the Video record once its thumbnail exists.
"""
import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

from fastapi import UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import Settings
from marketplace.core.exceptions import (
    AuthorizationException,
    StorageException,
    VideoNotFoundException,
    ValidationException,
)
from marketplace.core.logging import log_operation_start, log_operation_complete, log_operation_error, log_event
from marketplace.database.models.enums import UserType, VideoCategory, VideoStatus, VideoStyle
from marketplace.database.models.user import User
from marketplace.database.models.video import Video
from marketplace.repositories import creator_db_repository, video_db_repository
from marketplace.services.media_service import MediaService
from marketplace.services.storage_service import GCSStorage
from marketplace.services.temp_file_manager import TempFileManager

logger = logging.getLogger(__name__)

_LOGGER_NAME = "marketplace.services.upload_service"


def _parse_json_list(raw: Optional[str], field_name: str) -> list[str]:
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValidationException(f"{field_name} must be a JSON array") from e
    if not isinstance(value, list):
        raise ValidationException(f"{field_name} must be a JSON array")
    return [str(item) for item in value]


def _parse_price(raw: Optional[str], field_name: str) -> Optional[float]:
    """Prices of zero or less mean the license is not offered."""
    if raw is None or str(raw).strip() == "":
        return None
    try:
        price = float(raw)
    except ValueError as e:
        raise ValidationException(f"{field_name} must be a number") from e
    return round(price, 2) if price > 0 else None


@dataclass
class UploadForm:
    """Raw multipart fields accompanying the video file."""
    title: Optional[str] = None
    description: Optional[str] = None
    ai_model: Optional[str] = None
    prompts: Optional[str] = None
    tags: Optional[str] = None
    category: Optional[str] = None
    style: Optional[str] = None
    personal_license: Optional[str] = None
    commercial_license: Optional[str] = None
    extended_license: Optional[str] = None


@dataclass
class ParsedUpload:
    title: str
    description: str
    ai_model: str
    category: str
    style: str
    prompts: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    personal_license: Optional[float] = None
    commercial_license: Optional[float] = None
    extended_license: Optional[float] = None

    @property
    def is_available_for_sale(self) -> bool:
        return any(
            price is not None
            for price in (self.personal_license, self.commercial_license, self.extended_license)
        )


def parse_upload_form(form: UploadForm) -> ParsedUpload:
    """
    Validate required fields and normalize enums, lists and prices.

    Raises:
        ValidationException: On missing fields or malformed values
    """
    required = (form.title, form.description, form.ai_model, form.category, form.style)
    if not all(value and value.strip() for value in required):
        raise ValidationException("Missing required fields")

    category = form.category.strip().upper()
    if category not in VideoCategory.__members__:
        raise ValidationException(f"Invalid category: {form.category}")
    style = form.style.strip().upper()
    if style not in VideoStyle.__members__:
        raise ValidationException(f"Invalid style: {form.style}")

    return ParsedUpload(
        title=form.title.strip(),
        description=form.description.strip(),
        ai_model=form.ai_model.strip(),
        category=category,
        style=style,
        prompts=_parse_json_list(form.prompts, "prompts"),
        tags=_parse_json_list(form.tags, "tags"),
        personal_license=_parse_price(form.personal_license, "personalLicense"),
        commercial_license=_parse_price(form.commercial_license, "commercialLicense"),
        extended_license=_parse_price(form.extended_license, "extendedLicense"),
    )


class UploadService:
    """Runs one video submission from multipart form to published record."""

    def __init__(
        self,
        session: AsyncSession,
        storage: GCSStorage,
        media: MediaService,
        temp_files: TempFileManager,
        settings: Settings,
    ):
        self.session = session
        self.storage = storage
        self.media = media
        self.temp_files = temp_files
        self.settings = settings

    async def upload(self, user: User, file: Optional[UploadFile], form: UploadForm) -> Video:
        """
        Validate, store and publish a video.

        Raises:
            AuthorizationException: Browser accounts cannot upload
            ValidationException: Missing fields or rejected file (no record created)
            MediaProcessingException: Probe or thumbnail failure
            StorageException: Object storage failure
        """
        if user.user_type == UserType.BROWSER.value:
            raise AuthorizationException("Only creators can upload videos")

        if file is None or not file.filename:
            raise ValidationException("No file provided")
        parsed = parse_upload_form(form)
        self.media.validate(file.filename, file.content_type, file.size)

        upload_id = uuid.uuid4().hex
        operation = "video_upload"
        start_time = time.time()
        log_operation_start(
            logger=_LOGGER_NAME,
            function="upload",
            operation=operation,
            message=f"Processing upload {file.filename}",
            context={"upload_id": upload_id, "user_id": user.id, "size": file.size},
        )

        try:
            video = await self._process(user, file, parsed, upload_id)
        except Exception as e:
            log_operation_error(
                logger=_LOGGER_NAME,
                function="upload",
                operation=operation,
                error=e,
                context={"upload_id": upload_id},
            )
            raise
        finally:
            self.temp_files.cleanup(upload_id)

        log_operation_complete(
            logger=_LOGGER_NAME,
            function="upload",
            operation=operation,
            context={"upload_id": upload_id, "video_id": video.id},
            duration=time.time() - start_time,
        )
        return video

    async def _process(self, user: User, file: UploadFile, parsed: ParsedUpload, upload_id: str) -> Video:
        temp_path, size = await self.temp_files.save_upload(
            file, upload_id, self.settings.max_upload_size_bytes
        )

        metadata = await self.media.probe(temp_path)

        video_key = self.storage.generate_video_key(user.id, file.filename)
        video_url = await self.storage.upload_file(temp_path, video_key, file.content_type)

        video = await video_db_repository.create(
            self.session,
            creator_id=user.id,
            title=parsed.title,
            description=parsed.description,
            video_url=video_url,
            storage_key=video_key,
            thumbnail_url="",
            duration=round(metadata.duration, 2),
            file_size=size,
            resolution=metadata.resolution,
            aspect_ratio=metadata.aspect_ratio,
            fps=metadata.fps,
            ai_model=parsed.ai_model,
            prompts=parsed.prompts,
            tags=parsed.tags,
            category=parsed.category,
            style=parsed.style,
            personal_license=parsed.personal_license,
            commercial_license=parsed.commercial_license,
            extended_license=parsed.extended_license,
            is_available_for_sale=parsed.is_available_for_sale,
            status=VideoStatus.DRAFT.value,
        )
        await self.session.commit()
        video_id = video.id
        stored_keys = [video_key]

        try:
            video = await self._publish_with_thumbnail(user, video, temp_path, upload_id, stored_keys)
        except Exception as e:
            await self._discard_draft(video_id, stored_keys, e)
            raise

        await self._count_video_for_creator(user.id)
        return video

    async def _publish_with_thumbnail(
        self, user: User, video: Video, temp_path, upload_id: str, stored_keys: list[str]
    ) -> Video:
        thumbnail_path = self.temp_files.get_temp_file_path("thumbnails", upload_id, f"{upload_id}.jpg")
        await self.media.thumbnail(temp_path, thumbnail_path)

        thumbnail_key = self.storage.generate_thumbnail_key(user.id, video.id)
        thumbnail_url = await self.storage.upload_file(thumbnail_path, thumbnail_key, "image/jpeg")
        stored_keys.append(thumbnail_key)

        video.thumbnail_url = thumbnail_url
        video.thumbnail_key = thumbnail_key
        video.status = VideoStatus.PUBLISHED.value
        await self.session.flush()
        return video

    async def _discard_draft(self, video_id: str, stored_keys: list[str], error: Exception) -> None:
        """Remove a draft whose thumbnail step failed, and every object stored for it."""
        log_event(
            level="WARNING",
            logger=_LOGGER_NAME,
            function="_discard_draft",
            operation="video_upload",
            event="draft_discarded",
            message="Thumbnail step failed, removing draft video",
            context={"video_id": video_id, "error": str(error)},
        )
        await self.session.rollback()
        await video_db_repository.delete_by_id(self.session, video_id)
        await self.session.commit()

        for key in stored_keys:
            try:
                await self.storage.delete(key)
            except StorageException as e:
                logger.warning(f"Could not delete stored object {key} after failed upload: {e.error}")

    async def _count_video_for_creator(self, user_id: str) -> None:
        """Bump the creator's video counter; failures never fail the upload."""
        try:
            async with self.session.begin_nested():
                await creator_db_repository.get_or_create(self.session, user_id)
                await creator_db_repository.increment_total_videos(self.session, user_id)
        except Exception as e:
            logger.warning(f"Could not update creator video count for {user_id}: {e}")


async def get_own_video(session: AsyncSession, user: User, video_id: Optional[str]) -> Video:
    """Return one of the caller's own videos (any status)."""
    if not video_id:
        raise ValidationException("Video ID required")
    video = await video_db_repository.get_with_creator(session, video_id)
    if video is None:
        raise VideoNotFoundException(video_id)
    if video.creator_id != user.id:
        raise AuthorizationException("Unauthorized")
    return video
