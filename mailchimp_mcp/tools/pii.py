"""
PII masking for tool results.

Values are classified by the key that holds them (FieldKind) and then masked
by kind. The walk dispatches on the JSON value type: objects and arrays are
traversed, strings and locations are masked when their key says so, every
other scalar is returned unchanged.
"""

import re
from enum import Enum
from functools import singledispatch
from typing import Any, Dict, List, Optional

_NON_DIGITS = re.compile(r"\D")


class FieldKind(str, Enum):
    EMAIL = "email"
    NAME = "name"
    PHONE = "phone"
    IP = "ip"
    LOCATION = "location"


def mask_email(email: str) -> str:
    """``john.doe@example.com`` -> ``j***@example.com``"""
    local, sep, domain = email.partition("@")
    if not local or not sep or not domain:
        return email
    return f"{local[0]}***@{domain}"


def mask_name(name: str) -> str:
    """``John Doe`` -> ``J***``"""
    trimmed = name.strip()
    if not trimmed:
        return name
    return f"{trimmed[0]}***"


def mask_phone(phone: str) -> str:
    """``+1-555-123-4567`` -> ``***-***-4567``"""
    digits = _NON_DIGITS.sub("", phone)
    if len(digits) <= 4:
        return "***"
    return f"***-***-{digits[-4:]}"


def mask_ip(ip: str) -> str:
    """``192.168.1.1`` -> ``192.***.***.***``; non-IPv4 values pass through."""
    parts = ip.split(".")
    if len(parts) != 4:
        return ip
    return f"{parts[0]}.***.***.***"


def mask_location(location: Dict[str, Any]) -> Dict[str, Any]:
    """Round coordinates to one decimal (roughly city level)."""
    lat, lng = location.get("latitude"), location.get("longitude")
    if not isinstance(lat, (int, float)) or not isinstance(lng, (int, float)):
        return location
    return {**location, "latitude": round(lat, 1), "longitude": round(lng, 1)}


_STRING_MASKS = {
    FieldKind.EMAIL: mask_email,
    FieldKind.NAME: mask_name,
    FieldKind.PHONE: mask_phone,
    FieldKind.IP: mask_ip,
}


def classify_key(key: str, in_merge_fields: bool = False) -> Optional[FieldKind]:
    """Map an object key to the kind of personal data it holds, if any."""
    k = key.lower()
    if "email" in k:
        return FieldKind.EMAIL
    if "name" in k or k in ("fname", "lname", "full_name"):
        return FieldKind.NAME
    if in_merge_fields and ("first" in k or "last" in k):
        return FieldKind.NAME
    if "phone" in k or "tel" in k:
        return FieldKind.PHONE
    if k == "ip" or k.startswith("ip_") or k.endswith("_ip"):
        return FieldKind.IP
    if k == "location":
        return FieldKind.LOCATION
    return None


@singledispatch
def _walk(value: Any, kind: Optional[FieldKind], in_merge_fields: bool) -> Any:
    return value


@_walk.register
def _(value: str, kind: Optional[FieldKind], in_merge_fields: bool) -> Any:
    if kind is None and in_merge_fields and "@" in value:
        kind = FieldKind.EMAIL
    mask = _STRING_MASKS.get(kind)
    return mask(value) if mask else value


@_walk.register
def _(value: list, kind: Optional[FieldKind], in_merge_fields: bool) -> List[Any]:
    return [_walk(item, None, in_merge_fields) for item in value]


@_walk.register
def _(value: dict, kind: Optional[FieldKind], in_merge_fields: bool) -> Any:
    if kind is FieldKind.LOCATION:
        return mask_location(value)
    masked = {}
    for key, item in value.items():
        nested_merge = in_merge_fields or key == "merge_fields"
        masked[key] = _walk(item, classify_key(key, in_merge_fields), nested_merge)
    return masked


def mask_pii(data: Any, enabled: bool = True) -> Any:
    """Return a masked copy of a decoded JSON document (input is not modified)."""
    if not enabled:
        return data
    return _walk(data, None, False)
