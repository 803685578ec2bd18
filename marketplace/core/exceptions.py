"""
Custom exception classes for the marketplace API.
Each exception carries the HTTP status code the error handling middleware responds with.
"""


class MarketplaceException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class AuthenticationException(MarketplaceException):
    """Raised when a request carries no valid session."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message=message, status_code=401)


class AuthorizationException(MarketplaceException):
    """Raised when the caller is signed in but not allowed to act."""

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message=message, status_code=403)


class ValidationException(MarketplaceException):
    """Raised when request data validation fails."""

    def __init__(self, message: str):
        super().__init__(message=message, status_code=400)


class PriceMismatchException(ValidationException):
    """Raised when the submitted amount does not match the stored license price."""

    def __init__(self, expected: float, submitted: float):
        super().__init__("Price mismatch")
        self.expected = expected
        self.submitted = submitted


class DuplicatePurchaseException(MarketplaceException):
    """Raised when the user already owns a completed license for the video."""

    def __init__(self, video_id: str, license_type: str):
        super().__init__(message="You already own this license", status_code=400)
        self.video_id = video_id
        self.license_type = license_type


class NotFoundException(MarketplaceException):
    """Raised when a requested entity does not exist."""

    def __init__(self, message: str):
        super().__init__(message=message, status_code=404)


class VideoNotFoundException(NotFoundException):
    """Raised when a video is not found."""

    def __init__(self, video_id: str):
        super().__init__("Video not found")
        self.video_id = video_id


class UserNotFoundException(NotFoundException):
    """Raised when a user is not found."""

    def __init__(self, identifier: str):
        super().__init__("User not found")
        self.identifier = identifier


class CreatorNotFoundException(NotFoundException):
    """Raised when a creator (or their profile) is not found."""

    def __init__(self, identifier: str, message: str = "Creator not found"):
        super().__init__(message)
        self.identifier = identifier


class CollectionNotFoundException(NotFoundException):
    """Raised when a collection is not found or not owned by the caller."""

    def __init__(self, collection_id: str):
        super().__init__("Collection not found")
        self.collection_id = collection_id


class WebhookSignatureException(MarketplaceException):
    """Raised when a webhook payload fails signature verification."""

    def __init__(self, message: str = "Webhook signature verification failed"):
        super().__init__(message=message, status_code=400)


class ExternalServiceException(MarketplaceException):
    """Raised when a call to an external collaborator fails."""

    def __init__(self, service: str, error: str, message: str = None):
        super().__init__(
            message=message or f"{service} error: {error}",
            status_code=500
        )
        self.service = service
        self.error = error


class PaymentGatewayException(ExternalServiceException):
    """Raised when the payment provider rejects or fails a request."""

    def __init__(self, operation: str, error: str):
        super().__init__(service="payment_gateway", error=error, message=f"Payment provider error during {operation}")
        self.operation = operation


class StorageException(ExternalServiceException):
    """Raised when object storage operations fail."""

    def __init__(self, operation: str, key: str, error: str):
        super().__init__(service="storage", error=error, message=f"Storage {operation} failed for {key}")
        self.operation = operation
        self.key = key


class MediaProcessingException(ExternalServiceException):
    """Raised when probing or thumbnail extraction fails."""

    def __init__(self, operation: str, error: str):
        super().__init__(service="media", error=error, message="Failed to process video")
        self.operation = operation
