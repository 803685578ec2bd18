"""
Enumerations shared by the ORM models and API schemas.
Stored as their string values.
"""
from enum import Enum


class UserType(str, Enum):
    CREATOR = "CREATOR"
    COLLECTOR = "COLLECTOR"
    BROWSER = "BROWSER"


class SubscriptionTier(str, Enum):
    FREE = "FREE"
    PREMIUM = "PREMIUM"
    PRO = "PRO"


class SubscriptionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PAST_DUE = "PAST_DUE"
    CANCELED = "CANCELED"


class PurchaseStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class TipStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class LicenseType(str, Enum):
    PERSONAL = "PERSONAL"
    COMMERCIAL = "COMMERCIAL"
    EXTENDED = "EXTENDED"
    EXCLUSIVE = "EXCLUSIVE"

    @classmethod
    def parse(cls, value: str) -> "LicenseType":
        """Case-insensitive lookup; raises ValueError for unknown names."""
        return cls(value.strip().upper())


class VideoStatus(str, Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"


class VideoCategory(str, Enum):
    CINEMATIC = "CINEMATIC"
    ABSTRACT = "ABSTRACT"
    PHOTOREALISTIC = "PHOTOREALISTIC"
    ANIMATION = "ANIMATION"
    MOTION_GRAPHICS = "MOTION_GRAPHICS"
    EXPERIMENTAL = "EXPERIMENTAL"
    NATURE = "NATURE"
    ARCHITECTURE = "ARCHITECTURE"
    FASHION = "FASHION"
    TECHNOLOGY = "TECHNOLOGY"


class VideoStyle(str, Enum):
    CINEMATIC = "CINEMATIC"
    MINIMALIST = "MINIMALIST"
    SURREAL = "SURREAL"
    RETRO = "RETRO"
    FUTURISTIC = "FUTURISTIC"
    ARTISTIC = "ARTISTIC"
    COMMERCIAL = "COMMERCIAL"
    DOCUMENTARY = "DOCUMENTARY"
