#!/usr/bin/env python3
"""Unit tests for bar|beat and bar:beat conversion."""

from __future__ import annotations

import pathlib
import sys
import unittest
from fractions import Fraction

sys.path.append(str(pathlib.Path(__file__).resolve().parent))

from arrangement import barbeat
from arrangement.base import EditFormatError


class PositionTests(unittest.TestCase):
    def test_first_beat_is_zero(self) -> None:
        self.assertEqual(barbeat.position_to_beats("1|1", 4, 4), 0.0)
        self.assertEqual(barbeat.position_to_beats("2|1", 4, 4), 4.0)
        self.assertEqual(barbeat.position_to_beats("3|2.5", 4, 4), 9.5)

    def test_colon_separator_is_accepted(self) -> None:
        self.assertEqual(barbeat.position_to_beats("2:1", 4, 4), 4.0)

    def test_compound_meter_uses_denominator_beats(self) -> None:
        self.assertEqual(barbeat.beats_per_bar(6, 8), 3.0)
        self.assertEqual(barbeat.position_to_beats("2|1", 6, 8), 3.0)
        self.assertEqual(barbeat.position_to_beats("1|3", 6, 8), 1.0)

    def test_tuplet_positions(self) -> None:
        self.assertEqual(barbeat.position_to_fraction("1|4/3", 4, 4), Fraction(1, 3))
        self.assertEqual(barbeat.position_to_fraction("1|2+1/3", 4, 4), Fraction(4, 3))

    def test_position_round_trip(self) -> None:
        for text in ("1|1", "2|1", "3|2.5", "1|2+1/3", "5|4.25", "17|3"):
            beats = barbeat.position_to_beats(text, 4, 4)
            self.assertEqual(barbeat.beats_to_position(beats, 4, 4), text)
        for beats in (0.0, 1.0, 4.0 / 3.0, 7.5, 130.25):
            text = barbeat.beats_to_position(beats, 3, 4)
            self.assertAlmostEqual(barbeat.position_to_beats(text, 3, 4), beats, places=6)

    def test_invalid_positions(self) -> None:
        for text in ("", "abc", "0|1", "1|0", "1|1/0", "1|2|3", "1.5|1"):
            with self.subTest(text=text), self.assertRaises(EditFormatError):
                barbeat.position_to_beats(text, 4, 4)
        with self.assertRaises(EditFormatError):
            barbeat.beats_to_position(-1.0, 4, 4)

    def test_invalid_signature(self) -> None:
        with self.assertRaises(EditFormatError):
            barbeat.position_to_beats("1|1", 0, 4)
        with self.assertRaises(EditFormatError):
            barbeat.beats_to_duration(1.0, 4, 0)


class DurationTests(unittest.TestCase):
    def test_bar_beat_durations(self) -> None:
        self.assertEqual(barbeat.duration_to_beats("0:0", 4, 4), 0.0)
        self.assertEqual(barbeat.duration_to_beats("1:0", 4, 4), 4.0)
        self.assertEqual(barbeat.duration_to_beats("2:1.5", 4, 4), 9.5)
        self.assertEqual(barbeat.duration_to_beats("1:0", 6, 8), 3.0)

    def test_beat_count_durations(self) -> None:
        self.assertEqual(barbeat.duration_to_beats("2.5", 4, 4), 2.5)
        self.assertEqual(barbeat.duration_to_beats("3", 6, 8), 1.5)

    def test_duration_round_trip(self) -> None:
        for text in ("0:0", "1:0", "2:1.5", "0:1/3", "3:2+2/3"):
            beats = barbeat.duration_to_beats(text, 4, 4)
            self.assertEqual(barbeat.beats_to_duration(beats, 4, 4), text)

    def test_invalid_durations(self) -> None:
        for text in ("1|0", "-1:0", "0:-1", "x:1", "1:2:3"):
            with self.subTest(text=text), self.assertRaises(EditFormatError):
                barbeat.duration_to_beats(text, 4, 4)

    def test_pipe_gets_a_hint(self) -> None:
        with self.assertRaises(EditFormatError) as ctx:
            barbeat.duration_to_beats("1|0", 4, 4)
        self.assertIn('Use ":"', str(ctx.exception))


class ListAndCoercionTests(unittest.TestCase):
    def test_position_list_sorted_and_deduplicated(self) -> None:
        points = barbeat.parse_position_list("3|1, 2|1, 2|1,", 4, 4)
        self.assertEqual(points, [4.0, 8.0])
        self.assertEqual(barbeat.parse_position_list(["1|3", "1|2"], 4, 4), [1.0, 2.0])

    def test_position_list_rejects_bad_entry(self) -> None:
        with self.assertRaises(EditFormatError):
            barbeat.parse_position_list("2|1, nope", 4, 4)

    def test_coercion_passes_numbers_through(self) -> None:
        self.assertEqual(barbeat.coerce_duration(6, 4, 4), 6.0)
        self.assertEqual(barbeat.coerce_duration("1:2", 4, 4), 6.0)
        self.assertEqual(barbeat.coerce_position(8.5, 4, 4), 8.5)
        self.assertEqual(barbeat.coerce_position("3|1", 4, 4), 8.0)
        with self.assertRaises(EditFormatError):
            barbeat.coerce_duration(-1.0, 4, 4)
        with self.assertRaises(EditFormatError):
            barbeat.coerce_position(-0.5, 4, 4)


if __name__ == "__main__":
    unittest.main()
