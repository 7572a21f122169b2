"""Field extraction from order webhook payloads.

The shop platform stores the VIN as a custom checkout field whose path
depends on the event type and platform version, so nothing here relies on
a schema. Extraction is layered, most trustworthy first:

1. values under a key that names the VIN (vin, fin, fahrgestellnummer, ...)
2. a 17-char VIN pattern embedded in any string
3. any string that normalizes into a VIN shape

Named hints win because orders also carry other 17-char codes (tracking
numbers, SKUs).

NO side effects, never raises. Security: NEVER log payload values.
"""

from __future__ import annotations

import re
import secrets
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

VIN_NORMALIZED_MAX_LENGTH = 25
VIN_MIN_LENGTH = 11
VIN_MAX_LENGTH = 17

_NON_VIN_CHARS = re.compile(r"[^A-Z0-9]")
_FORBIDDEN_VIN_LETTERS = frozenset("IOQ")

# Canonical 17-char VIN (no I, O, Q) on word boundaries
_VIN_PATTERN = re.compile(r"\b[A-HJ-NPR-Z0-9]{17}\b")

# Key name fragments that mark a custom field as holding the VIN.
# Matched case-insensitively after "_" and "-" are turned into spaces.
VIN_KEY_HINTS: tuple[str, ...] = (
    "vin",
    "fin",
    "fahrgestell",
    "fahrgestellnummer",
    "vehicle identification",
    "vehicle id",
)

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_KEY_SEPARATORS = re.compile(r"[^a-z0-9]+")

# Keys carrying the field name in {"name": "...", "value": "..."} custom fields
_LABEL_KEYS: tuple[str, ...] = ("name", "label", "title", "key")

# Where order data may sit, most specific first; () is the payload root
_ROOT_PATHS: tuple[tuple[str, ...], ...] = (
    ("order",),
    ("data", "order"),
    ("payload", "order"),
    ("data",),
    ("payload",),
    (),
)
_ORDER_ROOT_PATHS: tuple[tuple[str, ...], ...] = (
    ("order",),
    ("data", "order"),
    ("payload", "order"),
)

EMAIL_PATHS: tuple[tuple[str, ...], ...] = (
    ("buyerInfo", "email"),
    ("buyer_info", "email"),
    ("billingInfo", "address", "email"),
    ("billing_info", "address", "email"),
    ("billingInfo", "email"),
    ("shippingInfo", "address", "email"),
    ("shipping_info", "address", "email"),
    ("email",),
    ("contact", "email"),
    ("customer", "email"),
    ("contactDetails", "email"),
)

# Tiers in priority order; a higher tier wins whichever root it sits under
ORDER_KEY_TIERS: tuple[tuple[str, ...], ...] = (
    ("purchaseFlowId", "purchase_flow_id", "checkoutId", "checkout_id"),
    ("orderId", "order_id"),
    ("orderNumber", "order_number"),
)
# Generic names only trusted inside an order object
_ORDER_OBJECT_KEY_TIERS: tuple[tuple[str, ...], ...] = (("id",), ("number",))

FALLBACK_ORDER_KEY_PREFIX = "unknown_"


@dataclass(frozen=True)
class ExtractedFields:
    """Normalized result of payload traversal.

    vin and email are None when not recovered. order_key_generated is True
    when no explicit identifier existed and order_key is a random fallback
    (such deliveries are never recognized as duplicates).
    """

    vin: str | None
    email: str | None
    order_key: str
    order_key_generated: bool = False

    def is_complete(self) -> bool:
        """Check if both VIN and email were recovered."""
        return self.vin is not None and self.email is not None

    def missing(self) -> list[str]:
        """Names of the fields that could not be recovered."""
        return [name for name, value in (("vin", self.vin), ("email", self.email)) if value is None]


def normalize_vin(raw: Any) -> str:
    """Uppercase, keep only A-Z and 0-9, truncate to 25 chars.

    Never raises. None yields "", other scalars are stringified.
    """
    if raw is None:
        return ""
    text = raw if isinstance(raw, str) else str(raw)
    return _NON_VIN_CHARS.sub("", text.upper())[:VIN_NORMALIZED_MAX_LENGTH]


def looks_like_vin(candidate: Any) -> bool:
    """True if the normalized candidate is 11-17 chars and has no I, O or Q."""
    normalized = normalize_vin(candidate)
    if not VIN_MIN_LENGTH <= len(normalized) <= VIN_MAX_LENGTH:
        return False
    return not _FORBIDDEN_VIN_LETTERS.intersection(normalized)


def _walk(root: Any) -> Iterator[tuple[str | None, Any]]:
    """Iterate (key, node) pairs depth-first in document order.

    Explicit stack instead of recursion; containers are visited once by
    identity, so self-referencing structures terminate. List items are
    reported under the key of the list that holds them.
    """
    stack: list[tuple[str | None, Any]] = [(None, root)]
    seen: set[int] = set()
    while stack:
        key, node = stack.pop()
        if isinstance(node, (dict, list, tuple)):
            if id(node) in seen:
                continue
            seen.add(id(node))
        yield key, node

        if isinstance(node, dict):
            children = [(str(k), v) for k, v in node.items()]
        elif isinstance(node, (list, tuple)):
            children = [(key, v) for v in node]
        else:
            continue
        stack.extend(reversed(children))


def _strings(root: Any) -> Iterator[tuple[str | None, str]]:
    for key, node in _walk(root):
        if isinstance(node, str):
            yield key, node


def _hint_strength(key: Any) -> int:
    """Rank how strongly a key names the VIN field.

    2: a word of the key starts with a hint ("vinNumber", "fahrgestellnummer_fin_1")
    1: a hint only occurs inside a word ("province", "definition")
    0: no hint
    """
    if not isinstance(key, str):
        return 0
    name = _CAMEL_BOUNDARY.sub(" ", key).lower()
    name = _KEY_SEPARATORS.sub(" ", name).strip()
    if not name:
        return 0
    words = name.split()
    for hint in VIN_KEY_HINTS:
        if " " in hint:
            if hint in name:
                return 2
        elif any(word.startswith(hint) for word in words):
            return 2
    return 1 if any(hint in name for hint in VIN_KEY_HINTS) else 0


def _vin_from_string(value: str) -> str | None:
    """Accept a whole VIN-shaped string, or a VIN embedded in free text."""
    if looks_like_vin(value):
        return normalize_vin(value)
    match = _VIN_PATTERN.search(value.upper())
    return match.group(0) if match else None


def _first_vin_in(node: Any) -> str | None:
    for _, value in _strings(node):
        vin = _vin_from_string(value)
        if vin:
            return vin
    return None


def _vin_from_key_hints(payload: Any) -> str | None:
    """First VIN under a strongly hinted key, else under a weakly hinted one."""
    weak_match: str | None = None
    for key, node in _walk(payload):
        candidates: list[tuple[int, Any]] = [(_hint_strength(key), node)]
        if isinstance(node, dict) and "value" in node:
            label = next((node[k] for k in _LABEL_KEYS if isinstance(node.get(k), str)), None)
            candidates.append((_hint_strength(label), node["value"]))

        for strength, value in candidates:
            if strength == 0 or (strength == 1 and weak_match):
                continue
            vin = _first_vin_in(value)
            if not vin:
                continue
            if strength == 2:
                return vin
            weak_match = vin
    return weak_match


def _vin_from_pattern(payload: Any) -> str | None:
    for _, value in _strings(payload):
        match = _VIN_PATTERN.search(value.upper())
        if match:
            return match.group(0)
    return None


def _vin_from_scan(payload: Any) -> str | None:
    for _, value in _strings(payload):
        if looks_like_vin(value):
            return normalize_vin(value)
    return None


def find_vin(payload: Any) -> str | None:
    """Recover the VIN: key hints, then pattern match, then full scan."""
    return _vin_from_key_hints(payload) or _vin_from_pattern(payload) or _vin_from_scan(payload)


def _get_path(node: Any, path: tuple[str, ...]) -> Any:
    for part in path:
        if not isinstance(node, dict):
            return None
        node = node.get(part)
    return node


def _roots(payload: Any, paths: tuple[tuple[str, ...], ...]) -> Iterator[dict]:
    for path in paths:
        node = _get_path(payload, path)
        if isinstance(node, dict):
            yield node


def _clean_email(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    email = value.strip()
    return email if "@" in email else None


def find_email(payload: Any) -> str | None:
    """Recover the buyer email: conventional paths, then any *email* key."""
    for root in _roots(payload, _ROOT_PATHS):
        for path in EMAIL_PATHS:
            email = _clean_email(_get_path(root, path))
            if email:
                return email

    for key, value in _strings(payload):
        if key and "email" in key.lower():
            email = _clean_email(value)
            if email:
                return email
    return None


def _clean_identifier(value: Any) -> str | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def find_order_key(payload: Any) -> str | None:
    """Recover an explicit purchase-flow / order identifier, if any."""
    tiers = [(_ROOT_PATHS, tier) for tier in ORDER_KEY_TIERS]
    tiers += [(_ORDER_ROOT_PATHS, tier) for tier in _ORDER_OBJECT_KEY_TIERS]
    for root_paths, field_names in tiers:
        for root in _roots(payload, root_paths):
            for field_name in field_names:
                identifier = _clean_identifier(root.get(field_name))
                if identifier:
                    return identifier
    return None


def fallback_order_key() -> str:
    """Random order key for payloads without an identifier (never deduped)."""
    return FALLBACK_ORDER_KEY_PREFIX + secrets.token_hex(6)


def extract_fields(payload: Any) -> ExtractedFields:
    """Extract VIN, buyer email and order key from an arbitrary payload.

    Args:
        payload: Parsed JSON value of any shape (dict, list or scalar).

    Returns:
        ExtractedFields. Missing VIN/email are None; order_key is always set.
    """
    order_key = find_order_key(payload)
    return ExtractedFields(
        vin=find_vin(payload),
        email=find_email(payload),
        order_key=order_key or fallback_order_key(),
        order_key_generated=order_key is None,
    )
