#!/usr/bin/env python3
"""Unit tests for moving clips onto a shared target position."""

from __future__ import annotations

import pathlib
import sys
import unittest

sys.path.append(str(pathlib.Path(__file__).resolve().parent))

from arrangement.base import EditContext, EditFormatError, EditWarnings
from arrangement.host import ClipHandle, read_clip
from arrangement.sim_host import SimulatedTimelineHost
from arrangement.survivors import compute_non_survivors, move_clips


CTX = EditContext(holding_area_start=1000.0, holding_gap=4.0)


def _spans(clips: list) -> list[tuple[float, float]]:
    return [(clip.start_time, clip.end_time) for clip in clips]


def _snapshots(sim: SimulatedTimelineHost, *handles: ClipHandle) -> list:
    return [read_clip(sim, handle) for handle in handles]


class NonSurvivorTests(unittest.TestCase):
    def test_longer_earlier_clip_survives(self) -> None:
        sim = SimulatedTimelineHost()
        a = sim.add_clip(0, 0.0, 4.0)
        b = sim.add_clip(0, 8.0, 2.0)
        self.assertIsNone(compute_non_survivors(_snapshots(sim, a, b), 20.0))

    def test_shorter_earlier_clip_is_doomed(self) -> None:
        sim = SimulatedTimelineHost()
        a = sim.add_clip(0, 0.0, 2.0)
        b = sim.add_clip(0, 8.0, 4.0)
        self.assertEqual(compute_non_survivors(_snapshots(sim, a, b), 20.0), frozenset({a}))

    def test_equal_length_earlier_clip_is_doomed(self) -> None:
        sim = SimulatedTimelineHost()
        a = sim.add_clip(0, 0.0, 4.0)
        b = sim.add_clip(0, 8.0, 4.0)
        c = sim.add_clip(0, 16.0, 1.0)
        self.assertEqual(compute_non_survivors(_snapshots(sim, a, b, c), 20.0), frozenset({a}))

    def test_only_strictly_longer_clips_survive(self) -> None:
        sim = SimulatedTimelineHost()
        a = sim.add_clip(0, 0.0, 4.0)
        b = sim.add_clip(0, 8.0, 8.0)
        c = sim.add_clip(0, 20.0, 2.0)
        self.assertEqual(compute_non_survivors(_snapshots(sim, a, b, c), 40.0), frozenset({a}))

        sim = SimulatedTimelineHost()
        same = [sim.add_clip(0, start, 4.0) for start in (0.0, 8.0, 16.0)]
        self.assertEqual(
            compute_non_survivors(_snapshots(sim, *same), 40.0),
            frozenset({same[0], same[1]}),
        )

        sim = SimulatedTimelineHost()
        falling = [sim.add_clip(0, start, length) for start, length in ((0.0, 8.0), (10.0, 4.0), (16.0, 2.0))]
        self.assertIsNone(compute_non_survivors(_snapshots(sim, *falling), 40.0))

    def test_no_shared_track_or_no_target(self) -> None:
        sim = SimulatedTimelineHost()
        a = sim.add_clip(0, 0.0, 2.0)
        b = sim.add_clip(1, 0.0, 4.0)
        clips = _snapshots(sim, a, b)
        self.assertIsNone(compute_non_survivors(clips, 20.0))
        self.assertIsNone(compute_non_survivors(clips, None))
        self.assertIsNone(compute_non_survivors(clips, 20.0, length_override=4.0))


class MoveTests(unittest.TestCase):
    def test_move_single_clip(self) -> None:
        sim = SimulatedTimelineHost()
        clip = sim.add_clip(0, 0.0, 4.0, start_marker=1.0)
        result = move_clips(sim, [clip], "9|1", CTX)
        self.assertEqual(_spans(result.clips), [(32.0, 36.0)])
        self.assertEqual(result.clips[0].start_marker, 1.0)
        self.assertIsNone(sim.clip_track(clip))
        self.assertEqual(sim.clips_from(500.0), [])

    def test_both_survivors_are_visible(self) -> None:
        sim = SimulatedTimelineHost()
        a = sim.add_clip(0, 0.0, 4.0)
        b = sim.add_clip(0, 8.0, 2.0)
        result = move_clips(sim, [a, b], 20.0, CTX)
        self.assertEqual(_spans(result.clips), [(20.0, 22.0), (22.0, 24.0)])
        self.assertEqual(result.clips[1].start_marker, 2.0)
        self.assertEqual(sim.clips_from(500.0), [])

    def test_doomed_clip_is_deleted_not_moved(self) -> None:
        sim = SimulatedTimelineHost()
        a = sim.add_clip(0, 0.0, 2.0)
        b = sim.add_clip(0, 8.0, 4.0)
        result = move_clips(sim, [a, b], 20.0, CTX)
        self.assertEqual(_spans(result.clips), [(20.0, 24.0)])
        self.assertEqual(_spans(sim.snapshots(0)), [(20.0, 24.0)])
        self.assertEqual(sim.call_count("duplicate_clip_to_position"), 2)

    def test_existing_material_around_target_is_kept(self) -> None:
        sim = SimulatedTimelineHost()
        clip = sim.add_clip(0, 0.0, 4.0)
        sim.add_clip(0, 18.0, 8.0)
        result = move_clips(sim, [clip], 20.0, CTX)
        self.assertEqual(_spans(result.clips), [(20.0, 24.0)])
        snaps = sim.snapshots(0)
        self.assertEqual(_spans(snaps), [(18.0, 20.0), (20.0, 24.0), (24.0, 26.0)])
        self.assertEqual(snaps[2].start_marker, 6.0)
        self.assertEqual(sim.clips_from(500.0), [])

    def test_clips_on_different_tracks(self) -> None:
        sim = SimulatedTimelineHost()
        a = sim.add_clip(1, 0.0, 4.0)
        b = sim.add_clip(0, 4.0, 2.0)
        result = move_clips(sim, [a, b], 8.0, CTX)
        self.assertEqual([(clip.track, clip.start_time) for clip in result.clips], [(0, 8.0), (1, 8.0)])

    def test_unknown_clip_and_bad_position(self) -> None:
        sim = SimulatedTimelineHost()
        clip = sim.add_clip(0, 0.0, 4.0)
        with self.assertRaises(EditFormatError):
            move_clips(sim, [clip], "nowhere", CTX)
        result = move_clips(sim, [ClipHandle(99), clip], 8.0, CTX)
        self.assertEqual(_spans(result.clips), [(8.0, 12.0)])
        self.assertEqual(len(result.warnings), 1)

    def test_failed_lift_leaves_clip_in_place(self) -> None:
        sim = SimulatedTimelineHost(fail_duplicates=[1])
        clip = sim.add_clip(0, 0.0, 4.0)
        result = move_clips(sim, [clip], 8.0, CTX)
        self.assertEqual(result.clips, ())
        self.assertEqual(_spans(sim.snapshots(0)), [(0.0, 4.0)])
        self.assertEqual(len(result.warnings), 1)

    def test_failed_landing_puts_clip_back(self) -> None:
        sim = SimulatedTimelineHost(fail_duplicates=[2])
        clip = sim.add_clip(0, 0.0, 4.0, start_marker=1.0)
        result = move_clips(sim, [clip], 8.0, CTX)
        self.assertEqual(result.clips, ())
        snaps = sim.snapshots(0)
        self.assertEqual(_spans(snaps), [(0.0, 4.0)])
        self.assertEqual((snaps[0].start_marker, snaps[0].end_marker), (1.0, 5.0))
        self.assertEqual(len(result.warnings), 1)
        self.assertEqual(sim.clips_from(500.0), [])

    def test_failed_landing_leaves_other_moves_alone(self) -> None:
        sim = SimulatedTimelineHost(fail_duplicates=[3])
        a = sim.add_clip(0, 0.0, 4.0)
        b = sim.add_clip(0, 8.0, 2.0)
        result = move_clips(sim, [a, b], 20.0, CTX)
        self.assertEqual(_spans(result.clips), [(20.0, 22.0)])
        self.assertEqual(_spans(sim.snapshots(0)), [(0.0, 4.0), (20.0, 22.0)])
        self.assertEqual(sim.clips_from(500.0), [])

    def test_taken_place_leaves_clip_in_holding_area(self) -> None:
        # b's landing fails after a has already landed over b's old place.
        sim = SimulatedTimelineHost(fail_duplicates=[6])
        a = sim.add_clip(0, 10.0, 4.0)
        b = sim.add_clip(0, 2.0, 2.0)
        warnings = EditWarnings()
        result = move_clips(sim, [a, b], 0.0, CTX, warnings)
        self.assertEqual(_spans(sim.snapshots(0)), [(2.0, 4.0), (1008.0, 1010.0)])
        self.assertEqual(_spans(result.clips), [(2.0, 4.0)])
        self.assertIn(f"restore-failed:{b.clip_id}", warnings.keys())
        self.assertEqual(len(result.warnings), 2)
        self.assertTrue(any("1008" in message for message in result.warnings))


if __name__ == "__main__":
    unittest.main()
