import enum
from typing import Dict

from violation_service.core.exceptions import InvalidInput


class ParseableEnum(enum.Enum):
    """Closed enumeration with strict parsing of external strings."""

    @classmethod
    def aliases(cls) -> Dict[str, "ParseableEnum"]:
        return {}

    @classmethod
    def parse(cls, raw):
        if isinstance(raw, cls):
            return raw
        if raw is None:
            raise InvalidInput(f"{cls.__name__} is required")
        key = str(raw).strip().upper().replace("-", "_").replace(" ", "_")
        alias = cls.aliases().get(key)
        if alias is not None:
            return alias
        try:
            return cls(key)
        except ValueError:
            raise InvalidInput(f"unknown {cls.__name__} value: {raw!r}")


class UserRole(ParseableEnum):
    CITY_ADMIN = "AKIMAT_ADMIN"
    OVERSIGHT_ADMIN = "KGU_ZKH_ADMIN"
    TECHNICAL_ADMIN = "TOO_ADMIN"  # legacy landfill-operator alias, diagnostics only
    LANDFILL_ADMIN = "LANDFILL_ADMIN"
    LANDFILL_USER = "LANDFILL_USER"
    CONTRACTOR_ADMIN = "CONTRACTOR_ADMIN"
    DRIVER = "DRIVER"


class OrganizationType(ParseableEnum):
    CITY = "AKIMAT"
    OVERSIGHT = "KGU"
    CONTRACTOR = "CONTRACTOR"
    LANDFILL = "LANDFILL"


class ViolationStatus(ParseableEnum):
    OPEN = "OPEN"
    CANCELED = "CANCELED"
    FIXED = "FIXED"


class ViolationSeverity(ParseableEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class ViolationDetectedBy(ParseableEnum):
    LPR = "LPR"  # automated plate match
    VOLUME = "VOLUME"  # volume sensor
    GPS = "GPS"  # location tracking
    SYSTEM = "SYSTEM"  # system inferred


class ViolationType(ParseableEnum):
    ROUTE_VIOLATION = "ROUTE_VIOLATION"
    FOREIGN_AREA = "FOREIGN_AREA"
    MISMATCH_PLATE = "MISMATCH_PLATE"
    OVER_CAPACITY = "OVER_CAPACITY"
    NO_AREA_WORK = "NO_AREA_WORK"
    OVER_CONTRACT_LIMIT = "OVER_CONTRACT_LIMIT"
    SYSTEM = "SYSTEM"


class AppealStatus(ParseableEnum):
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    NEED_INFO = "NEED_INFO"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CLOSED = "CLOSED"


class AppealReasonCode(ParseableEnum):
    CAMERA_ERROR = "CAMERA_ERROR"
    TRANSIT_PATH = "TRANSIT_PATH"
    WRONG_ASSIGNMENT = "WRONG_ASSIGNMENT"
    OTHER = "OTHER"


class AttachmentFileType(ParseableEnum):
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"
    DOC = "DOC"

    @classmethod
    def aliases(cls):
        return {"DOCUMENT": cls.DOC}


class AppealAction(ParseableEnum):
    START_REVIEW = "START_REVIEW"
    REQUEST_INFO = "REQUEST_INFO"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    CLOSE = "CLOSE"

    @classmethod
    def aliases(cls):
        # older clients send the target status instead of the action name
        return {"UNDER_REVIEW": cls.START_REVIEW, "NEED_INFO": cls.REQUEST_INFO}


ACTIVE_APPEAL_STATUSES = frozenset(
    {AppealStatus.SUBMITTED, AppealStatus.UNDER_REVIEW, AppealStatus.NEED_INFO}
)
RESOLVED_APPEAL_STATUSES = frozenset(
    {AppealStatus.APPROVED, AppealStatus.REJECTED, AppealStatus.CLOSED}
)

# Detections a technical (diagnostics) user is allowed to look at.
TECHNICAL_DETECTIONS = (
    ViolationDetectedBy.LPR,
    ViolationDetectedBy.VOLUME,
    ViolationDetectedBy.SYSTEM,
)

DEFAULT_LIST_LIMIT = 200
MIN_REASON_TEXT_LENGTH = 10
