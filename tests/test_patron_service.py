# tests/test_patron_service.py
"""Unit tests for patron id generation."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from library_attendance.schemas.settings import IdConfig
from library_attendance.services.patron_service import category_prefix, demo_patrons, generate_patron_id
from library_attendance.services.records import (
    ACADEMIC_STAFF, EXTERNAL_VISITOR, NON_ACADEMIC_STAFF, PATRON_CATEGORIES, STUDENT,
)


class TestGeneratePatronId:
    def test_first_id_for_category(self):
        assert generate_patron_id(STUDENT, [], IdConfig()) == "ST-001"

    def test_next_after_highest(self):
        existing = ["ST-001", "ST-007", "ST-003", "AS-010"]
        assert generate_patron_id(STUDENT, existing, IdConfig()) == "ST-008"

    def test_prefixes_do_not_bleed(self):
        # NAS-004 must not count as an AS id
        assert generate_patron_id(ACADEMIC_STAFF, ["NAS-004"], IdConfig()) == "AS-001"
        assert generate_patron_id(NON_ACADEMIC_STAFF, ["NAS-004"], IdConfig()) == "NAS-005"

    def test_custom_prefix_and_padding(self):
        config = IdConfig(visitor_prefix="VIS", padding=5)
        assert generate_patron_id(EXTERNAL_VISITOR, ["VIS-00012"], config) == "VIS-00013"

    def test_number_wider_than_padding(self):
        assert generate_patron_id(STUDENT, ["ST-999"], IdConfig()) == "ST-1000"

    def test_unknown_category(self):
        with pytest.raises(ValueError):
            category_prefix("Alumni", IdConfig())


class TestDemoPatrons:
    def test_one_per_category_at_least(self):
        patrons = demo_patrons()
        assert len(patrons) == 5
        assert {p.category for p in patrons} == set(PATRON_CATEGORIES)
        assert len({p.id for p in patrons}) == 5
