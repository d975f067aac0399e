"""Query-string parsing shared by the routers."""
import uuid
from datetime import datetime
from typing import List, Optional

from violation_service.core.exceptions import InvalidInput


def split_csv(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def parse_enum_list(raw: Optional[str], enum_cls) -> list:
    return [enum_cls.parse(part) for part in split_csv(raw)]


def parse_uuid(raw: Optional[str], name: str) -> Optional[uuid.UUID]:
    if not raw:
        return None
    try:
        return uuid.UUID(raw.strip())
    except ValueError:
        raise InvalidInput(f"{name} must be a UUID")


def parse_uuid_list(raw: Optional[str], name: str) -> List[uuid.UUID]:
    return [parse_uuid(part, name) for part in split_csv(raw)]


def parse_datetime(raw: Optional[str], name: str) -> Optional[datetime]:
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    except ValueError:
        raise InvalidInput(f"{name} must be an ISO-8601 date")
