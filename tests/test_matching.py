from __future__ import annotations

import math
import sys
import unittest
from datetime import datetime
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from voter_ingest.labels import NAME_GENERIC_LABELS, RELATIVE_NAME_LABELS, SERIAL_LABELS, VOTER_ID_LABELS
from voter_ingest.matching import cell_text, column_present, match_tier, normalize_key, resolve_field


class NormalizeKeyTests(unittest.TestCase):
    def test_case_fold_trim_and_collapse(self):
        self.assertEqual(normalize_key("  Voter   NAME  "), "voter name")

    def test_punctuation_and_underscores_become_separators(self):
        self.assertEqual(normalize_key("SR_NO"), "sr no")
        self.assertEqual(normalize_key("House Crimson."), "house crimson")
        self.assertEqual(normalize_key("Voter ID (EPIC)"), "voter id epic")
        self.assertEqual(normalize_key("D.O.B/Age:"), "d o b age")

    def test_punctuation_is_a_separator_not_removed(self):
        self.assertEqual(normalize_key("Sr.No"), "sr no")
        self.assertEqual(match_tier("Sr.No", ["Sr No"]), 3)

    def test_devanagari_danda_and_periods(self):
        self.assertEqual(normalize_key("अनु.क्र."), "अनु क्र")
        self.assertEqual(normalize_key("घर क्र।"), "घर क्र")

    def test_total_function(self):
        self.assertEqual(normalize_key(None), "")
        self.assertEqual(normalize_key(""), "")
        self.assertEqual(normalize_key("   "), "")
        self.assertEqual(normalize_key(12), "12")


class CellTextTests(unittest.TestCase):
    def test_blank_values(self):
        self.assertEqual(cell_text(None), "")
        self.assertEqual(cell_text(math.nan), "")
        self.assertEqual(cell_text("   "), "")

    def test_integral_floats_lose_their_fraction(self):
        self.assertEqual(cell_text(38.0), "38")
        self.assertEqual(cell_text(9876543210.0), "9876543210")
        self.assertEqual(cell_text(2.5), "2.5")

    def test_dates(self):
        self.assertEqual(cell_text(datetime(2024, 1, 5)), "2024-01-05")

    def test_strings_are_trimmed(self):
        self.assertEqual(cell_text("  Anil  "), "Anil")


class MatchTierTests(unittest.TestCase):
    def test_tiers(self):
        self.assertEqual(match_tier("sr no", ["Sr No"]), 1)
        self.assertEqual(match_tier("SR_NO", ["Sr No"]), 2)
        self.assertEqual(match_tier("Sr. No.", ["Sr No"]), 3)
        self.assertEqual(match_tier("EPIC Card Number (old)", ["EPIC"]), 4)
        self.assertIsNone(match_tier("Mobile", ["EPIC"]))

    def test_strongest_tier_over_all_candidates(self):
        self.assertEqual(match_tier("Voter ID", ["ID", "Voter ID"]), 1)


class ResolveFieldTests(unittest.TestCase):
    def test_exact_match_beats_substring_regardless_of_column_order(self):
        row = [("EPIC Card Number (old)", "OLD123"), ("EPIC", "NEW456")]
        self.assertEqual(resolve_field(row, VOTER_ID_LABELS), "NEW456")

    def test_underscore_tier_beats_substring(self):
        row = [("Serial Number Old", "9"), ("SR_NO", "4")]
        self.assertEqual(resolve_field(row, ["Sr No", "Serial Number"]), "4")

    def test_candidate_order_decides_within_a_tier(self):
        row = {"EPIC": "E1", "Voter ID": "V1"}
        self.assertEqual(resolve_field(row, ["Voter ID", "EPIC"]), "V1")

    def test_blank_cells_do_not_satisfy_a_tier(self):
        row = [("Sr No", ""), ("Serial Number", None), ("अनु क्र.", "17")]
        self.assertEqual(resolve_field(row, SERIAL_LABELS), "17")

    def test_value_is_trimmed_and_numbers_rendered(self):
        self.assertEqual(resolve_field({"Age": 45.0}, ["Age"]), "45")
        self.assertEqual(resolve_field({"Name": "  Anil  "}, ["Name"]), "Anil")

    def test_no_match_is_empty(self):
        self.assertEqual(resolve_field({"Mobile": "98"}, ["Age"]), "")
        self.assertEqual(resolve_field({}, ["Age"]), "")

    def test_duplicate_labels_keep_sheet_order(self):
        row = [("Name", ""), ("Name", "Second")]
        self.assertEqual(resolve_field(row, ["Name"]), "Second")

    def test_exclude_skips_columns_claimed_by_another_field(self):
        row = [("Father Name", "Ramesh"), ("Name", "Anil")]
        self.assertEqual(resolve_field(row, NAME_GENERIC_LABELS, RELATIVE_NAME_LABELS), "Anil")
        self.assertEqual(resolve_field(row[:1], NAME_GENERIC_LABELS, RELATIVE_NAME_LABELS), "")

    def test_accept_skips_rejected_values(self):
        row = [("Name", "अनिल"), ("Full Name", "Anil")]
        self.assertEqual(resolve_field(row, NAME_GENERIC_LABELS, accept=str.isascii), "Anil")
        self.assertEqual(resolve_field(row[:1], NAME_GENERIC_LABELS, accept=str.isascii), "")

    def test_exclude_keeps_columns_matching_own_labels_more_strongly(self):
        # "Voter Name" is an exact name label even though it contains "Name"
        row = [("Voter Name", "Anil")]
        self.assertEqual(resolve_field(row, NAME_GENERIC_LABELS, ("Voter",)), "Anil")


class ColumnPresentTests(unittest.TestCase):
    def test_blank_column_still_counts_as_present(self):
        self.assertTrue(column_present({"Name_En": ""}, ["Name_En"]))
        self.assertFalse(column_present({"Name_Mr": "अनिल"}, ["Name_En"]))


if __name__ == "__main__":
    unittest.main()
