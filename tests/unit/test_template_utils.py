from datetime import datetime, timezone

import pytest

from compliance.utils import template_dates, template_version


class TestSemver:
    def test_valid_versions(self):
        assert template_version.is_valid_semver("1.2.3")
        assert template_version.is_valid_semver("v2.0.0-beta.1")
        assert not template_version.is_valid_semver("1.2")
        assert not template_version.is_valid_semver(None)

    def test_compare(self):
        assert template_version.compare_semver("1.2.3", "1.10.0") == -1
        assert template_version.compare_semver("2.0.0", "1.99.99") == 1
        assert template_version.compare_semver("1.0.0-rc1", "1.0.0") == 0
        with pytest.raises(ValueError):
            template_version.compare_semver("one", "1.0.0")

    def test_update_type(self):
        assert template_version.get_update_type("1.0.0", "2.0.0") == "major"
        assert template_version.get_update_type("1.0.0", "1.1.0") == "minor"
        assert template_version.get_update_type("1.0.0", "1.0.1") == "patch"
        assert template_version.get_update_type("1.1.0", "1.0.0") is None
        assert template_version.is_significant_update("1.0.0", "1.1.0")
        assert not template_version.is_significant_update("1.0.0", "1.0.5")


class TestTemplateDiff:
    OLD = [
        {"id": "a", "title": "Annual report", "importance": "high"},
        {"id": "b", "title": "Board minutes"},
    ]
    NEW = [
        {"id": "a", "title": "Annual report", "importance": "critical"},
        {"id": "c", "title": "Cyber audit"},
    ]

    def test_compare_template_versions(self):
        diff = template_version.compare_template_versions(self.OLD, self.NEW)
        assert [d["id"] for d in diff["added"]] == ["c"]
        assert [d["id"] for d in diff["removed"]] == ["b"]
        assert diff["modified"][0]["id"] == "a"
        assert diff["modified"][0]["changes"] == ["importance changed from 'high' to 'critical'"]

    def test_summaries(self):
        diff = template_version.compare_template_versions(self.OLD, self.NEW)
        assert template_version.summarize_changes(diff) == "1 new deadline(s), 1 removed, 1 modified"
        assert template_version.summarize_changes({}) == "No changes detected"
        assert template_version.describe_version_change("1.0.0", "1.0.0") == "No changes"
        assert template_version.describe_version_change("1.0.0", "1.1.0") == "Template updated from 1.0.0 to 1.1.0"
        assert template_version.describe_version_change("1.0.0", "1.1.0", diff).endswith(": 1 new deadline(s), 1 removed, 1 modified")


class TestTemplateDates:
    TAX_DAY = {"anchor_type": "fixed_date", "default_month": 4, "default_day": 15, "recurrence": {"type": "annual"}}

    def test_requires_custom_date(self):
        assert not template_dates.requires_custom_date(self.TAX_DAY)
        assert template_dates.requires_custom_date({"anchor_type": "anniversary"})
        assert template_dates.requires_custom_date({"anchor_type": "fixed_date", "default_month": 4})

    def test_default_due_date_this_year(self):
        ref = datetime(2025, 1, 10, tzinfo=timezone.utc)
        assert template_dates.calculate_default_due_date(self.TAX_DAY, ref) == datetime(
            2025, 4, 15, 23, 59, 59, tzinfo=timezone.utc
        )

    def test_default_due_date_rolls_to_next_year(self):
        ref = datetime(2025, 6, 1, tzinfo=timezone.utc)
        assert template_dates.calculate_default_due_date(self.TAX_DAY, ref).year == 2026

    def test_default_due_date_clamps_day(self):
        entry = {"anchor_type": "fixed_date", "default_month": 2, "default_day": 30}
        ref = datetime(2025, 1, 1, tzinfo=timezone.utc)
        assert template_dates.calculate_default_due_date(entry, ref).day == 28

    def test_no_default_for_custom_anchor(self):
        assert template_dates.calculate_default_due_date({"anchor_type": "custom"}, datetime.now(timezone.utc)) is None

    def test_next_occurrence_rolls_forward(self):
        start = datetime(2022, 4, 15, tzinfo=timezone.utc)
        ref = datetime(2025, 5, 1, tzinfo=timezone.utc)
        assert template_dates.calculate_next_occurrence(self.TAX_DAY, start, ref) == datetime(2026, 4, 15, tzinfo=timezone.utc)
        assert template_dates.calculate_next_occurrence({"recurrence": None}, start, ref) is None

    def test_describe_timing(self):
        assert template_dates.describe_deadline_timing(self.TAX_DAY) == "April 15, annually"
        assert template_dates.describe_deadline_timing(
            {"anchor_type": "anniversary", "recurrence": {"type": "semi_annual"}}
        ) == "Based on your anniversary date, every 6 months"
        assert template_dates.format_anchor_type("custom") == "Custom date"
