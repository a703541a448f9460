#!/usr/bin/env python3
"""Unit tests for lengthening arrangement clips."""

from __future__ import annotations

import pathlib
import sys
import unittest

sys.path.append(str(pathlib.Path(__file__).resolve().parent))

from arrangement.base import EditContext, EditFormatError, EditWarnings
from arrangement.host import ClipHandle
from arrangement.sim_host import SimulatedTimelineHost
from arrangement.tiling import lengthen_clip, lengthen_clips


CTX = EditContext(holding_area_start=1000.0, holding_gap=4.0, silence_wav_path="silence.wav")


def _spans(clips: list) -> list[tuple[float, float]]:
    return [(clip.start_time, clip.end_time) for clip in clips]


class LoopingLengthenTests(unittest.TestCase):
    def test_one_bar_loop_to_four_bars(self) -> None:
        sim = SimulatedTimelineHost()
        clip = sim.add_clip(0, 0.0, 4.0, looping=True)
        result = lengthen_clip(sim, clip, "4:0", CTX)
        self.assertEqual(_spans(result), [(0.0, 4.0), (4.0, 8.0), (8.0, 12.0), (12.0, 16.0)])
        self.assertEqual(result[0].handle, clip)
        self.assertTrue(all(piece.looping for piece in result))
        self.assertTrue(all(piece.start_marker == 0.0 for piece in result))
        self.assertEqual(sim.clips_from(500.0), [])

    def test_partial_last_tile(self) -> None:
        sim = SimulatedTimelineHost()
        clip = sim.add_clip(0, 0.0, 4.0, looping=True)
        result = lengthen_clip(sim, clip, 10.0, CTX)
        self.assertEqual(_spans(result), [(0.0, 4.0), (4.0, 8.0), (8.0, 10.0)])
        self.assertEqual(sim.clips_from(500.0), [])

    def test_tiles_continue_from_content_offset(self) -> None:
        sim = SimulatedTimelineHost()
        clip = sim.add_clip(0, 0.0, 3.0, looping=True, start_marker=1.0, loop_start=0.0, loop_end=4.0)
        result = lengthen_clip(sim, clip, 9.0, CTX)
        self.assertEqual(_spans(result), [(0.0, 3.0), (3.0, 6.0), (6.0, 9.0)])
        self.assertEqual([piece.start_marker for piece in result], [1.0, 0.0, 3.0])

    def test_clip_longer_than_loop_is_cut_to_one_cycle_first(self) -> None:
        sim = SimulatedTimelineHost()
        clip = sim.add_clip(0, 0.0, 6.0, looping=True, loop_end=4.0)
        result = lengthen_clip(sim, clip, 10.0, CTX)
        self.assertEqual(_spans(result), [(0.0, 4.0), (4.0, 8.0), (8.0, 10.0)])
        self.assertEqual(result[-1].end_time - result[0].start_time, 10.0)


class UnloopedLengthenTests(unittest.TestCase):
    def test_midi_reveals_hidden_content(self) -> None:
        sim = SimulatedTimelineHost()
        clip = sim.add_clip(0, 0.0, 4.0)
        result = lengthen_clip(sim, clip, 12.0, CTX)
        self.assertEqual(_spans(result), [(0.0, 4.0), (4.0, 8.0), (8.0, 12.0)])
        self.assertEqual(
            [(piece.start_marker, piece.end_marker) for piece in result],
            [(0.0, 4.0), (4.0, 8.0), (8.0, 12.0)],
        )
        self.assertFalse(any(piece.looping for piece in result))
        self.assertEqual(sim.clips_from(500.0), [])

    def test_audio_is_capped_at_file_boundary(self) -> None:
        sim = SimulatedTimelineHost()
        clip = sim.add_clip(0, 0.0, 4.0, is_midi=False, material_length=6.0)
        warnings = EditWarnings()
        result = lengthen_clip(sim, clip, 12.0, CTX, warnings)
        self.assertEqual(_spans(result), [(0.0, 4.0), (4.0, 6.0)])
        self.assertEqual((result[1].start_marker, result[1].end_marker), (4.0, 6.0))
        self.assertIn(f"content-capped:{clip.clip_id}", warnings.keys())
        self.assertEqual(sim.clips_from(500.0), [])

    def test_audio_without_hidden_content_is_left_alone(self) -> None:
        sim = SimulatedTimelineHost()
        clip = sim.add_clip(0, 0.0, 4.0, is_midi=False, material_length=4.0)
        warnings = EditWarnings()
        result = lengthen_clip(sim, clip, 8.0, CTX, warnings)
        self.assertEqual(_spans(result), [(0.0, 4.0)])
        self.assertIn(f"no-hidden-content:{clip.clip_id}", warnings.keys())


class LengthenEdgeCaseTests(unittest.TestCase):
    def test_shorter_target_is_a_no_op(self) -> None:
        sim = SimulatedTimelineHost()
        clip = sim.add_clip(0, 0.0, 8.0)
        result = lengthen_clip(sim, clip, "1:0", CTX)
        self.assertEqual(_spans(result), [(0.0, 8.0)])
        self.assertEqual(sim.calls, [])

    def test_lengthen_is_idempotent(self) -> None:
        sim = SimulatedTimelineHost()
        clip = sim.add_clip(0, 0.0, 4.0, looping=True)
        lengthen_clip(sim, clip, 8.0, CTX)
        before = sim.snapshots(0)
        calls = len(sim.calls)
        lengthen_clip(sim, clip, 4.0, CTX)
        self.assertEqual(sim.snapshots(0), before)
        self.assertEqual(len(sim.calls), calls)

    def test_bad_target_is_rejected_before_any_call(self) -> None:
        sim = SimulatedTimelineHost()
        clip = sim.add_clip(0, 0.0, 4.0)
        for target in ("abc", "0:0", "1|1"):
            with self.subTest(target=target), self.assertRaises(EditFormatError):
                lengthen_clips(sim, [clip], target, CTX)
        self.assertEqual(sim.calls, [])

    def test_unknown_clip_is_skipped_with_warning(self) -> None:
        sim = SimulatedTimelineHost()
        clip = sim.add_clip(0, 0.0, 4.0, looping=True)
        result = lengthen_clips(sim, [ClipHandle(99), clip], 8.0, CTX)
        self.assertEqual(_spans(result.clips), [(0.0, 4.0), (4.0, 8.0)])
        self.assertEqual(len(result.warnings), 1)
        self.assertIn("99", result.warnings[0])

    def test_duplicate_failure_becomes_warning(self) -> None:
        sim = SimulatedTimelineHost(fail_duplicates=[1])
        clip = sim.add_clip(0, 0.0, 4.0, looping=True)
        result = lengthen_clips(sim, [clip], 8.0, CTX)
        self.assertEqual(result.clips, ())
        self.assertEqual(len(result.warnings), 1)
        self.assertEqual(len(sim.snapshots(0)), 1)


if __name__ == "__main__":
    unittest.main()
