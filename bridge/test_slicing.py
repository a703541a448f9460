#!/usr/bin/env python3
"""Unit tests for slicing arrangement clips."""

from __future__ import annotations

import pathlib
import sys
import unittest

sys.path.append(str(pathlib.Path(__file__).resolve().parent))

from arrangement.base import EditContext, EditFormatError, EditWarnings
from arrangement.sim_host import SimulatedTimelineHost
from arrangement.slicing import slice_clip, slice_clips, slice_count


CTX = EditContext(holding_area_start=1000.0, holding_gap=4.0, silence_wav_path="silence.wav")


def _spans(clips: list) -> list[tuple[float, float]]:
    return [(clip.start_time, clip.end_time) for clip in clips]


class SliceCountTests(unittest.TestCase):
    def test_slice_count(self) -> None:
        self.assertEqual(slice_count(8.0, 2.0), 4)
        self.assertEqual(slice_count(7.0, 2.0), 4)
        self.assertEqual(slice_count(8.0005, 2.0), 4)
        self.assertEqual(slice_count(1.0, 2.0), 1)


class SliceTests(unittest.TestCase):
    def test_unlooped_slices_walk_through_content(self) -> None:
        sim = SimulatedTimelineHost()
        clip = sim.add_clip(0, 0.0, 8.0)
        result = slice_clip(sim, clip, "0:2", CTX)
        self.assertEqual(_spans(result), [(0.0, 2.0), (2.0, 4.0), (4.0, 6.0), (6.0, 8.0)])
        self.assertEqual(
            [(piece.start_marker, piece.end_marker) for piece in result],
            [(0.0, 2.0), (2.0, 4.0), (4.0, 6.0), (6.0, 8.0)],
        )
        self.assertFalse(any(piece.looping for piece in result))
        self.assertEqual(sim.clips_from(500.0), [])

    def test_short_last_slice(self) -> None:
        sim = SimulatedTimelineHost()
        clip = sim.add_clip(0, 0.0, 7.0)
        result = slice_clip(sim, clip, 2.0, CTX)
        self.assertEqual(_spans(result), [(0.0, 2.0), (2.0, 4.0), (4.0, 6.0), (6.0, 7.0)])
        self.assertEqual((result[-1].start_marker, result[-1].end_marker), (6.0, 7.0))
        self.assertEqual(sim.clips_from(500.0), [])

    def test_looping_slices_keep_loop_phase(self) -> None:
        sim = SimulatedTimelineHost()
        clip = sim.add_clip(0, 0.0, 8.0, looping=True, loop_end=4.0)
        result = slice_clip(sim, clip, "0:2", CTX)
        self.assertEqual(_spans(result), [(0.0, 2.0), (2.0, 4.0), (4.0, 6.0), (6.0, 8.0)])
        self.assertEqual([piece.start_marker for piece in result], [0.0, 2.0, 0.0, 2.0])
        self.assertTrue(all(piece.looping for piece in result))

    def test_clip_not_longer_than_slice_is_unchanged(self) -> None:
        sim = SimulatedTimelineHost()
        clip = sim.add_clip(0, 0.0, 2.0)
        result = slice_clip(sim, clip, "0:2", CTX)
        self.assertEqual(_spans(result), [(0.0, 2.0)])
        self.assertEqual(result[0].handle, clip)
        self.assertEqual(sim.calls, [])

    def test_zero_duration_is_rejected(self) -> None:
        sim = SimulatedTimelineHost()
        clip = sim.add_clip(0, 0.0, 8.0)
        with self.assertRaises(EditFormatError):
            slice_clips(sim, [clip], "0:0", CTX)

    def test_over_limit_is_skipped(self) -> None:
        sim = SimulatedTimelineHost()
        clip = sim.add_clip(0, 0.0, 8.0)
        ctx = EditContext(holding_area_start=1000.0, max_slices=3)
        warnings = EditWarnings()
        self.assertEqual(slice_clip(sim, clip, "0:2", ctx, warnings), [])
        self.assertIn(f"slice-max-exceeded:{clip.clip_id}", warnings.keys())
        self.assertEqual(sim.calls, [])

    def test_limit_counts_across_batch(self) -> None:
        sim = SimulatedTimelineHost()
        first = sim.add_clip(0, 0.0, 4.0)
        second = sim.add_clip(1, 0.0, 4.0)
        ctx = EditContext(holding_area_start=1000.0, max_slices=3)
        result = slice_clips(sim, [first, second], "0:2", ctx)
        self.assertEqual(_spans(result.clips), [(0.0, 2.0), (2.0, 4.0)])
        self.assertEqual(len(result.warnings), 1)
        self.assertEqual(_spans(sim.snapshots(1)), [(0.0, 4.0)])

    def test_failed_staging_leaves_clip_alone(self) -> None:
        sim = SimulatedTimelineHost(fail_duplicates=[1])
        clip = sim.add_clip(0, 0.0, 8.0)
        warnings = EditWarnings()
        result = slice_clip(sim, clip, "0:2", CTX, warnings)
        self.assertEqual(_spans(result), [(0.0, 8.0)])
        self.assertIn(f"duplicate-failed:{clip.clip_id}", warnings.keys())
        self.assertEqual(_spans(sim.snapshots(0)), [(0.0, 8.0)])

    def test_duplicate_failure_puts_the_rest_back(self) -> None:
        # 1: first slice staged, 2: backup copy, 3: first slice lands, 4 and up: later slices.
        expected = {
            2: [(0.0, 8.0)],
            3: [(0.0, 8.0)],
            4: [(0.0, 2.0), (2.0, 8.0)],
            5: [(0.0, 2.0), (2.0, 4.0), (4.0, 8.0)],
        }
        for failing, spans in expected.items():
            with self.subTest(failing=failing):
                sim = SimulatedTimelineHost(fail_duplicates=[failing])
                clip = sim.add_clip(0, 0.0, 8.0)
                warnings = EditWarnings()
                result = slice_clip(sim, clip, "0:2", CTX, warnings)
                self.assertEqual(_spans(result), spans)
                self.assertEqual(_spans(sim.snapshots(0)), spans)
                for piece in result:
                    self.assertEqual((piece.start_marker, piece.end_marker), (piece.start_time, piece.end_time))
                self.assertIn(f"duplicate-failed:{clip.clip_id}", warnings.keys())
                self.assertEqual(sim.clips_from(500.0), [])

    def test_looping_failure_keeps_loop_phase(self) -> None:
        sim = SimulatedTimelineHost(fail_duplicates=[4])
        clip = sim.add_clip(0, 0.0, 8.0, looping=True, loop_end=4.0)
        result = slice_clip(sim, clip, "0:2", CTX)
        self.assertEqual(_spans(result), [(0.0, 2.0), (2.0, 8.0)])
        self.assertEqual([piece.start_marker for piece in result], [0.0, 2.0])
        self.assertTrue(all(piece.looping for piece in result))
        self.assertEqual(sim.clips_from(500.0), [])


if __name__ == "__main__":
    unittest.main()
