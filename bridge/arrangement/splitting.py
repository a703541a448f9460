from __future__ import annotations

from typing import Iterable, List, Sequence

from arrangement.barbeat import parse_position_list
from arrangement.base import (
    EPSILON,
    ClipDuplicationError,
    EditContext,
    EditFormatError,
    EditWarnings,
)
from arrangement.clip_ops import (
    align_loop_end_marker,
    discard_clips,
    holding_slot,
    loop_start_marker,
    move_from_holding,
    overlay_trim,
    plan_window_steps,
    rescan_track,
    restore_from_backup,
    set_markers_with_looping_workaround,
    stage_clip,
    trim_tail,
)
from arrangement.host import (
    ClipHandle,
    ClipSnapshot,
    EditResult,
    TimelineHost,
    read_clip,
    resolve_handles,
)


def parse_split_points(positions: str | Iterable[str], context: EditContext) -> List[float]:
    points = parse_position_list(positions, context.sig_num, context.sig_den)
    if not points:
        raise EditFormatError(
            f'Invalid split format: "{positions}". Expected comma-separated bar|beat positions like "2|1, 3|1"'
        )
    if len(points) > context.max_split_points:
        raise EditFormatError(
            f"Too many split points ({len(points)}), max is {context.max_split_points}"
        )
    return points


def segment_boundaries(points: Sequence[float], length: float) -> List[float]:
    """``[0, *points inside (0, length), length]``."""
    inside = [float(p) for p in points if EPSILON < float(p) < float(length) - EPSILON]
    return [0.0, *inside, float(length)]


def _fix_segment_window(
    host: TimelineHost,
    segment: ClipHandle,
    original: ClipSnapshot,
    seg_start: float,
    seg_end: float,
) -> None:
    if original.looping:
        marker = loop_start_marker(
            original.loop_start,
            original.loop_length,
            original.content_offset + seg_start,
        )
        host.set_clip_property(segment, "start_marker", marker)
        return

    target = (original.start_marker + seg_start, original.start_marker + seg_end)
    current = read_clip(host, segment, original.track)
    if plan_window_steps((current.start_marker, current.end_marker), target):
        set_markers_with_looping_workaround(host, segment, *target)


def _split_one(
    host: TimelineHost,
    original: ClipSnapshot,
    boundaries: Sequence[float],
    context: EditContext,
    warnings: EditWarnings,
) -> None:
    handle = original.handle
    length = original.length
    track = original.track
    source_slot = holding_slot(context, 0, length)
    piece_slot = holding_slot(context, 1, length)

    # The source copy keeps every segment not yet placed.
    try:
        source = stage_clip(host, handle, source_slot)
    except ClipDuplicationError as exc:
        warnings.warn(
            f"duplicate-failed:{handle.clip_id}",
            f"split of clip {handle} skipped: {exc}",
        )
        return

    pending: List[ClipHandle] = []
    try:
        # Segment 0 stays in the original clip.
        trim_tail(host, original, boundaries[1], context)

        for index in range(1, len(boundaries) - 2):
            seg_start, seg_end = boundaries[index], boundaries[index + 1]
            piece = stage_clip(host, source, piece_slot)
            pending.append(piece)
            overlay_trim(host, track, piece_slot + seg_end, length - seg_end, original.is_midi, context)
            overlay_trim(host, track, piece_slot, seg_start, original.is_midi, context)
            moved = move_from_holding(host, piece, original.start_time + seg_start)
            pending.remove(piece)
            _fix_segment_window(host, moved, original, seg_start, seg_end)

        last_start = boundaries[-2]
        overlay_trim(host, track, source_slot, last_start, original.is_midi, context)
        moved = move_from_holding(host, source, original.start_time + last_start)
        _fix_segment_window(host, moved, original, last_start, boundaries[-1])
    except ClipDuplicationError as exc:
        warnings.warn(
            f"duplicate-failed:{handle.clip_id}",
            f"split of clip {handle} stopped part way, the rest is put back unsplit: {exc}",
        )
        discard_clips(host, pending)
        restore_from_backup(host, source, source_slot, original, context, warnings)


def split_clip(
    host: TimelineHost,
    clip: ClipHandle | str | int,
    positions: str | Iterable[str] | Sequence[float],
    context: EditContext,
    warnings: EditWarnings | None = None,
) -> List[ClipSnapshot]:
    """Cut one clip at clip-local positions; returns the segments in order.

    ``positions`` are bar|beat strings, or already decoded beat offsets.
    """
    if warnings is None:
        warnings = EditWarnings()
    if isinstance(positions, str) or not all(isinstance(p, (int, float)) for p in positions):
        points = parse_split_points(positions, context)  # type: ignore[arg-type]
    else:
        points = sorted({float(p) for p in positions})  # type: ignore[union-attr]

    handle = ClipHandle.parse(clip)
    track = host.clip_track(handle)
    if track is None:
        warnings.warn(
            f"track-unresolved:{handle.clip_id}",
            f"could not resolve the track of clip {handle}, skipping",
        )
        return []

    original = read_clip(host, handle, track)
    boundaries = segment_boundaries(points, original.length)
    if len(boundaries) <= 2:
        return [original]
    if original.looping:
        original = align_loop_end_marker(host, original)

    _split_one(host, original, boundaries, context, warnings)
    return rescan_track(host, track, original.start_time, original.end_time)


def split_clips(
    host: TimelineHost,
    clips: Sequence[ClipHandle | str | int],
    positions: str | Iterable[str],
    context: EditContext,
    warnings: EditWarnings | None = None,
) -> EditResult:
    if warnings is None:
        warnings = EditWarnings()
    points = parse_split_points(positions, context)
    handles = resolve_handles(clips)

    results: List[ClipSnapshot] = []
    for handle in handles:
        results.extend(split_clip(host, handle, points, context, warnings))
    return EditResult.build(results, warnings)
