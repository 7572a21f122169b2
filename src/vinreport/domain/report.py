"""Vehicle report assembly.

Maps the three provider responses (decode, stolen-check, market value)
into one immutable VehicleReport. Decode is mandatory; the two checks are
best-effort and degrade to "unavailable" sub-records.

Confidentiality: account fields (balance, price, price_currency) are
stripped from every upstream payload embedded in a report.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any

from vinreport.infra.hashing import report_id as derive_report_id
from vinreport.vindecoder.client import DecodeResult

SENSITIVE_FIELDS = frozenset({"balance", "price", "price_currency"})

STOLEN = "stolen"
NOT_STOLEN = "not-stolen"
UNKNOWN = "unknown"
UNAVAILABLE = "unavailable"

# Provider decode labels per report attribute, first present wins
VEHICLE_LABELS: dict[str, tuple[str, ...]] = {
    "make": ("Make",),
    "model": ("Model",),
    "year": ("Model Year", "Year"),
    "body": ("Body", "Body Type"),
    "fuel": ("Fuel Type - Primary", "Fuel Type"),
    "transmission": ("Transmission",),
    "manufacturer": ("Manufacturer",),
    "engine_displacement": ("Engine Displacement (ccm)", "Engine Displacement"),
    "engine_power_kw": ("Engine Power (kW)",),
    "engine_power_hp": ("Engine Power (HP)",),
    "engine_code": ("Engine Code",),
    "cylinders": ("Engine Cylinders", "Number of Cylinders"),
    "drive": ("Drive", "Drive Type"),
    "doors": ("Number of Doors",),
    "seats": ("Number of Seats",),
    "length": ("Length (mm)",),
    "width": ("Width (mm)",),
    "height": ("Height (mm)",),
    "wheelbase": ("Wheelbase (mm)",),
    "weight_empty": ("Weight Empty (kg)",),
    "weight_max": ("Max Weight (kg)", "Permitted Gross Weight (kg)"),
    "front_brakes": ("Front Brakes",),
    "rear_brakes": ("Rear Brakes",),
    "suspension": ("Suspension",),
    "emission_standard": ("Emission Standard",),
}

SUMMARY_FIELDS: tuple[str, ...] = ("make", "model", "year", "body", "fuel", "transmission")


@dataclass(frozen=True)
class VehicleAttributes:
    make: str | None = None
    model: str | None = None
    year: str | None = None
    body: str | None = None
    fuel: str | None = None
    transmission: str | None = None
    manufacturer: str | None = None
    engine_displacement: str | None = None
    engine_power_kw: str | None = None
    engine_power_hp: str | None = None
    engine_code: str | None = None
    cylinders: str | None = None
    drive: str | None = None
    doors: str | None = None
    seats: str | None = None
    length: str | None = None
    width: str | None = None
    height: str | None = None
    wheelbase: str | None = None
    weight_empty: str | None = None
    weight_max: str | None = None
    front_brakes: str | None = None
    rear_brakes: str | None = None
    suspension: str | None = None
    emission_standard: str | None = None


@dataclass(frozen=True)
class StolenCheck:
    available: bool
    status: str
    details: list[dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class MarketValueCheck:
    available: bool
    data: dict[str, Any] | None = None
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.available:
            return {"available": True, "data": self.data}
        return {"available": False, "reason": self.reason}


@dataclass(frozen=True)
class ReportChecks:
    stolen: StolenCheck
    market_value: MarketValueCheck


@dataclass(frozen=True)
class VehicleReport:
    """Normalized report for one VIN. One per successfully processed order."""

    vin: str
    report_id: str
    generated_on: date
    vehicle: VehicleAttributes
    checks: ReportChecks
    raw_decode: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "vin": self.vin,
            "report_id": self.report_id,
            "generated_on": self.generated_on.isoformat(),
            "vehicle": asdict(self.vehicle),
            "checks": {
                "stolen": asdict(self.checks.stolen),
                "market_value": self.checks.market_value.to_dict(),
            },
            "raw_decode": self.raw_decode,
        }

    def summary(self) -> dict[str, Any]:
        """Reduced preview without premium checks."""
        vehicle = asdict(self.vehicle)
        return {
            "vin": self.vin,
            "vehicle": {name: vehicle[name] for name in SUMMARY_FIELDS},
        }


@dataclass(frozen=True)
class DecodeFailure:
    """Mandatory decode call failed; no report can be built.

    retryable is True for network errors (status 0) and provider 5xx.
    """

    status: int
    body: dict[str, Any]
    retryable: bool

    @property
    def reason(self) -> str:
        return "decode_failed"


def strip_sensitive(payload: Any) -> Any:
    """Return a copy of payload without balance/price fields at any depth."""
    if isinstance(payload, dict):
        return {
            k: strip_sensitive(v) for k, v in payload.items() if k not in SENSITIVE_FIELDS
        }
    if isinstance(payload, list):
        return [strip_sensitive(item) for item in payload]
    return payload


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, list):
        parts = [str(v) for v in value if v not in (None, "")]
        return ", ".join(parts) if parts else None
    text = str(value).strip()
    return text or None


def map_vehicle(decode_items: Any) -> VehicleAttributes:
    """Map the provider's [{"label", "value"}] list onto VehicleAttributes."""
    by_label: dict[str, Any] = {}
    if isinstance(decode_items, list):
        for item in decode_items:
            if isinstance(item, dict) and isinstance(item.get("label"), str):
                by_label.setdefault(item["label"].strip().lower(), item.get("value"))

    values: dict[str, str | None] = {}
    for attribute, labels in VEHICLE_LABELS.items():
        for label in labels:
            text = _as_text(by_label.get(label.lower()))
            if text is not None:
                values[attribute] = text
                break
    return VehicleAttributes(**values)


def summarize_stolen(result: DecodeResult | None) -> StolenCheck:
    """Summarize a stolen-check response.

    stolen if any record has status "stolen" (case-insensitive), not-stolen
    if at least one record exists, unknown for an empty list. A failed call
    or a body without "stolen" is unavailable.
    """
    if result is None or not result.ok or "stolen" not in result.json:
        return StolenCheck(available=False, status=UNAVAILABLE, details=[])

    raw = result.json["stolen"]
    if isinstance(raw, dict):
        records = [raw]
    elif isinstance(raw, list):
        records = [r for r in raw if isinstance(r, dict)]
    else:
        records = []

    details = [strip_sensitive(r) for r in records]
    if any(str(r.get("status", "")).strip().lower() == STOLEN for r in records):
        status = STOLEN
    elif records:
        status = NOT_STOLEN
    else:
        status = UNKNOWN
    return StolenCheck(available=True, status=status, details=details)


def summarize_market_value(result: DecodeResult | None) -> MarketValueCheck:
    """Summarize a market-value response, passing the value payload through."""
    if result is None:
        return MarketValueCheck(available=False, reason="not_requested")
    if not result.ok:
        return MarketValueCheck(available=False, reason=f"http_{result.status}")

    payload = strip_sensitive(result.json)
    if payload.get("error"):
        message = payload.get("message") or payload["error"]
        return MarketValueCheck(available=False, reason=str(message))
    if not payload:
        return MarketValueCheck(available=False, reason="empty_response")
    return MarketValueCheck(available=True, data=payload)


def assemble_report(
    vin: str,
    decode: DecodeResult,
    stolen: DecodeResult | None,
    market_value: DecodeResult | None,
    day: date,
) -> VehicleReport | DecodeFailure:
    """Build the report from the three provider responses.

    Args:
        vin: Normalized VIN.
        decode: Mandatory decode response.
        stolen: Stolen-check response, or None when not requested.
        market_value: Market-value response, or None when not requested.
        day: Calendar day the report id is derived from.

    Returns:
        VehicleReport, or DecodeFailure when the decode response is unusable.
    """
    decode_items = decode.json.get("decode") if decode.ok else None
    if not isinstance(decode_items, list):
        return DecodeFailure(
            status=decode.status,
            body=strip_sensitive(decode.json),
            retryable=decode.status == 0 or decode.status >= 500,
        )

    return VehicleReport(
        vin=vin,
        report_id=derive_report_id(vin, day),
        generated_on=day,
        vehicle=map_vehicle(decode_items),
        checks=ReportChecks(
            stolen=summarize_stolen(stolen),
            market_value=summarize_market_value(market_value),
        ),
        raw_decode=strip_sensitive(decode_items),
    )
