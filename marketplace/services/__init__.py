"""
Services layer for the video marketplace.
Contains business logic and orchestration over the repositories and external clients.
"""

from marketplace.services.payment_gateway import (
    StripeGateway,
    calculate_platform_fee,
    to_minor_units,
    from_minor_units,
)
from marketplace.services.storage_service import GCSStorage
from marketplace.services.media_service import MediaService, VideoMetadata
from marketplace.services.temp_file_manager import TempFileManager
from marketplace.services.upload_service import UploadService, UploadForm
from marketplace.services.purchase_service import PurchaseService
from marketplace.services.subscription_service import SubscriptionService
from marketplace.services.webhook_service import WebhookService

__all__ = [
    # External clients
    "StripeGateway",
    "calculate_platform_fee",
    "to_minor_units",
    "from_minor_units",
    "GCSStorage",
    "MediaService",
    "VideoMetadata",
    "TempFileManager",

    # Write-side orchestration
    "UploadService",
    "UploadForm",
    "PurchaseService",
    "SubscriptionService",
    "WebhookService",
]
