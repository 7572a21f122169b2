"""HTML rendering for vehicle reports and buyer emails (Jinja2)."""

import os
from dataclasses import fields

from jinja2 import Environment, FileSystemLoader, select_autoescape

from vinreport.domain.report import VehicleAttributes, VehicleReport

_templates_dir = os.path.join(os.path.dirname(__file__), "templates")
_jinja_env = Environment(
    loader=FileSystemLoader(_templates_dir),
    autoescape=select_autoescape(["html", "xml"]),
)

APP_NAME = os.getenv("APP_NAME", "VIN Report")
BRAND_COLOR = os.getenv("REPORT_BRAND_COLOR", "#1f4e8c")

STOLEN_LABELS = {
    "stolen": "Reported stolen",
    "not-stolen": "No theft record",
    "unknown": "No data",
    "unavailable": "Check unavailable",
}


def _vehicle_label(attribute: str) -> str:
    label = attribute.replace("_", " ").replace(" kw", " kW").replace(" hp", " HP")
    return label[:1].upper() + label[1:]


def vehicle_rows(report: VehicleReport) -> list[tuple[str, str | None]]:
    """(label, value) pairs in declaration order of VehicleAttributes."""
    return [
        (_vehicle_label(f.name), getattr(report.vehicle, f.name))
        for f in fields(VehicleAttributes)
    ]


def render_report_html(report: VehicleReport) -> str:
    """Render the printable report body that the PDF is made from."""
    return _jinja_env.get_template("report.html").render(
        report=report,
        vehicle_rows=vehicle_rows(report),
        stolen_labels=STOLEN_LABELS,
        app_name=APP_NAME,
        brand_color=BRAND_COLOR,
    )


def render_buyer_email(report: VehicleReport, download_url: str | None = None) -> tuple[str, str]:
    """Render the buyer email as (html, text)."""
    html = _jinja_env.get_template("buyer_email.html").render(
        report=report,
        download_url=download_url,
        app_name=APP_NAME,
        brand_color=BRAND_COLOR,
    )
    title = " ".join(v for v in (report.vehicle.make, report.vehicle.model) if v) or "your vehicle"
    lines = [
        "Hello,",
        "",
        f"thank you for your order. Your vehicle report for {title} (VIN {report.vin}) is ready.",
    ]
    if download_url:
        lines.append(f"Download it here: {download_url}")
    else:
        lines.append("You will find it attached to this email as a PDF.")
    lines.extend(["", f"Report ID: {report.report_id}", "", APP_NAME])
    return html, "\n".join(lines)
