"""Tests for vehicle report assembly."""

from datetime import date

from helpers import DECODE_BODY, MARKET_VALUE_BODY, STOLEN_BODY, TEST_VIN
from vinreport.domain.report import (
    DecodeFailure,
    VehicleReport,
    assemble_report,
    map_vehicle,
    strip_sensitive,
    summarize_market_value,
    summarize_stolen,
)
from vinreport.infra.hashing import report_id
from vinreport.vindecoder.client import DecodeResult

DAY = date(2026, 3, 14)


def _ok(body: dict) -> DecodeResult:
    return DecodeResult(ok=True, status=200, json=body)


def _all_keys(value) -> set:
    keys = set()
    if isinstance(value, dict):
        for k, v in value.items():
            keys.add(k)
            keys |= _all_keys(v)
    elif isinstance(value, list):
        for item in value:
            keys |= _all_keys(item)
    return keys


class TestStripSensitive:
    def test_removes_account_fields_at_any_depth(self):
        payload = {
            "balance": 3,
            "price": 1.5,
            "nested": [{"price_currency": "EUR", "keep": 1}],
        }
        assert strip_sensitive(payload) == {"nested": [{"keep": 1}]}

    def test_does_not_mutate_input(self):
        payload = {"price": 1, "a": {"balance": 2}}
        strip_sensitive(payload)
        assert payload == {"price": 1, "a": {"balance": 2}}


class TestMapVehicle:
    def test_maps_labels_case_insensitively(self):
        vehicle = map_vehicle([{"label": "make", "value": "Audi"}, {"label": "MODEL", "value": "A4"}])
        assert vehicle.make == "Audi"
        assert vehicle.model == "A4"

    def test_alternative_labels_and_value_coercion(self):
        vehicle = map_vehicle(DECODE_BODY["decode"])
        assert vehicle.year == "2012"
        assert vehicle.fuel == "Gasoline"
        assert vehicle.engine_power_kw == "180"
        assert vehicle.seats == "5"
        assert vehicle.transmission is None

    def test_garbage_input_yields_empty_attributes(self):
        vehicle = map_vehicle("not a list")
        assert vehicle.make is None


class TestSummarizeStolen:
    def test_not_stolen(self):
        check = summarize_stolen(_ok(STOLEN_BODY))
        assert check.available is True
        assert check.status == "not-stolen"
        assert check.details == [{"code": "EUCARIS", "status": "not-stolen"}]

    def test_any_stolen_record_wins(self):
        body = {"stolen": [{"status": "not-stolen"}, {"status": "STOLEN"}]}
        assert summarize_stolen(_ok(body)).status == "stolen"

    def test_single_record_object(self):
        assert summarize_stolen(_ok({"stolen": {"status": "stolen"}})).status == "stolen"

    def test_empty_list_is_unknown(self):
        check = summarize_stolen(_ok({"stolen": []}))
        assert check.available is True
        assert check.status == "unknown"

    def test_failed_call_is_unavailable(self):
        check = summarize_stolen(DecodeResult.unavailable())
        assert check.available is False
        assert check.status == "unavailable"

    def test_missing_key_is_unavailable(self):
        assert summarize_stolen(_ok({"error": True})).status == "unavailable"


class TestSummarizeMarketValue:
    def test_passes_value_data_without_account_fields(self):
        check = summarize_market_value(_ok(MARKET_VALUE_BODY))
        assert check.available is True
        assert "price" not in check.data
        assert check.data["market_price"]["price_avg"] == 11500

    def test_http_error(self):
        check = summarize_market_value(DecodeResult(ok=False, status=404, json={}))
        assert check.to_dict() == {"available": False, "reason": "http_404"}

    def test_provider_error_message(self):
        body = {"error": True, "message": "No data for this VIN"}
        assert summarize_market_value(_ok(body)).reason == "No data for this VIN"

    def test_empty_response(self):
        assert summarize_market_value(_ok({"price": 1})).reason == "empty_response"

    def test_not_requested(self):
        assert summarize_market_value(None).reason == "not_requested"


class TestAssembleReport:
    def test_full_report(self):
        report = assemble_report(
            TEST_VIN, _ok(DECODE_BODY), _ok(STOLEN_BODY), _ok(MARKET_VALUE_BODY), DAY
        )
        assert isinstance(report, VehicleReport)
        assert report.report_id == report_id(TEST_VIN, DAY)
        assert report.vehicle.make == "BMW"
        assert report.checks.stolen.status == "not-stolen"
        assert report.checks.market_value.available is True

    def test_serialized_report_has_no_account_fields(self):
        report = assemble_report(
            TEST_VIN, _ok(DECODE_BODY), _ok(STOLEN_BODY), _ok(MARKET_VALUE_BODY), DAY
        )
        data = report.to_dict()
        assert data["generated_on"] == "2026-03-14"
        assert not _all_keys(data) & {"balance", "price", "price_currency"}

    def test_optional_checks_degrade(self):
        report = assemble_report(
            TEST_VIN, _ok(DECODE_BODY), DecodeResult.unavailable(), DecodeResult.unavailable(503), DAY
        )
        assert report.checks.stolen.status == "unavailable"
        assert report.checks.market_value.reason == "http_503"

    def test_summary_only_has_preview_fields(self):
        report = assemble_report(TEST_VIN, _ok(DECODE_BODY), None, None, DAY)
        summary = report.summary()
        assert summary["vin"] == TEST_VIN
        assert set(summary["vehicle"]) == {"make", "model", "year", "body", "fuel", "transmission"}
        assert "checks" not in summary

    def test_decode_network_error_is_retryable(self):
        result = assemble_report(TEST_VIN, DecodeResult.unavailable(), None, None, DAY)
        assert isinstance(result, DecodeFailure)
        assert result.retryable is True
        assert result.reason == "decode_failed"

    def test_decode_5xx_is_retryable(self):
        result = assemble_report(TEST_VIN, DecodeResult(ok=False, status=502, json={}), None, None, DAY)
        assert result.retryable is True

    def test_decode_4xx_is_not_retryable(self):
        body = {"error": True, "message": "Invalid control sum", "balance": 5}
        result = assemble_report(TEST_VIN, DecodeResult(ok=False, status=403, json=body), None, None, DAY)
        assert isinstance(result, DecodeFailure)
        assert result.retryable is False
        assert result.body == {"error": True, "message": "Invalid control sum"}

    def test_ok_response_without_decode_key_fails(self):
        result = assemble_report(TEST_VIN, _ok({"price": 1}), None, None, DAY)
        assert isinstance(result, DecodeFailure)
        assert result.status == 200
        assert result.retryable is False
