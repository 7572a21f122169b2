"""Tests for provider control sums and report ids."""

import hashlib
import re
from datetime import date

from vinreport.infra.hashing import control_sum, report_id

TEST_VIN = "WBA3A5C51CF256985"


class TestControlSum:
    def test_matches_provider_formula(self):
        expected = hashlib.sha1(b"WBA3A5C51CF256985|decode|key|secret").hexdigest()[:10]
        assert control_sum(TEST_VIN, "decode", "key", "secret") == expected

    def test_is_ten_lowercase_hex_chars(self):
        result = control_sum(TEST_VIN, "stolen-check", "key", "secret")
        assert re.fullmatch(r"[0-9a-f]{10}", result)

    def test_depends_on_action(self):
        assert control_sum(TEST_VIN, "decode", "k", "s") != control_sum(
            TEST_VIN, "stolen-check", "k", "s"
        )


class TestReportId:
    def test_format(self):
        result = report_id(TEST_VIN, date(2026, 1, 5))
        assert re.fullmatch(r"VR-20260105-[0-9A-F]{10}", result)

    def test_same_vin_same_day_is_stable(self):
        day = date(2026, 1, 5)
        assert report_id(TEST_VIN, day) == report_id(TEST_VIN, day)

    def test_changes_with_day_and_vin(self):
        day = date(2026, 1, 5)
        assert report_id(TEST_VIN, day) != report_id(TEST_VIN, date(2026, 1, 6))
        assert report_id(TEST_VIN, day) != report_id("1HGCM82633A004352", day)
