from __future__ import annotations

import math
from typing import List, Sequence

from arrangement.barbeat import coerce_duration
from arrangement.base import (
    EPSILON,
    ClipDuplicationError,
    EditContext,
    EditFormatError,
    EditWarnings,
)
from arrangement.clip_ops import (
    align_loop_end_marker,
    create_shortened_in_holding,
    holding_slot,
    land_copy,
    rescan_track,
    restore_from_backup,
    set_markers_with_looping_workaround,
    stage_clip,
)
from arrangement.host import (
    ClipHandle,
    ClipSnapshot,
    EditResult,
    TimelineHost,
    read_clip,
    resolve_handles,
)
from arrangement.tiling import place_loop_tiles


def slice_length(duration: str | float, context: EditContext) -> float:
    size = coerce_duration(duration, context.sig_num, context.sig_den)
    if size <= EPSILON:
        raise EditFormatError(f"slice duration must be > 0, got: {duration!r}")
    return size


def slice_count(length: float, size: float) -> int:
    return max(1, math.ceil((float(length) - EPSILON) / float(size)))


def _fill_unlooped_slices(
    host: TimelineHost,
    first: ClipSnapshot,
    original: ClipSnapshot,
    size: float,
    context: EditContext,
) -> None:
    slot = holding_slot(context, 0, size)
    index = 1
    position = original.start_time + size
    while position < original.end_time - EPSILON:
        remaining = min(size, original.end_time - position)
        if remaining < size - EPSILON:
            staged = create_shortened_in_holding(host, first, remaining, slot, context)
            piece = land_copy(host, staged, position)
        else:
            piece = host.duplicate_clip_to_position(first.handle, position)
        content = original.start_marker + index * size
        set_markers_with_looping_workaround(host, piece, content, content + remaining)
        index += 1
        position += remaining


def _resolve(
    host: TimelineHost,
    handle: ClipHandle,
    warnings: EditWarnings,
) -> ClipSnapshot | None:
    track = host.clip_track(handle)
    if track is None:
        warnings.warn(
            f"track-unresolved:{handle.clip_id}",
            f"could not resolve the track of clip {handle}, skipping",
        )
        return None
    return read_clip(host, handle, track)


def _slice_one(
    host: TimelineHost,
    original: ClipSnapshot,
    size: float,
    context: EditContext,
    warnings: EditWarnings,
) -> List[ClipSnapshot]:
    handle = original.handle
    if original.looping:
        original = align_loop_end_marker(host, original)

    backup_slot = holding_slot(context, 1, original.length)
    try:
        staged = create_shortened_in_holding(
            host, original, size, holding_slot(context, 0, original.length), context
        )
    except ClipDuplicationError as exc:
        warnings.warn(
            f"duplicate-failed:{handle.clip_id}",
            f"slicing clip {handle} skipped: {exc}",
        )
        return [original]
    try:
        backup = stage_clip(host, handle, backup_slot)
    except ClipDuplicationError as exc:
        host.delete_clip(staged)
        warnings.warn(
            f"duplicate-failed:{handle.clip_id}",
            f"slicing clip {handle} skipped: {exc}",
        )
        return [original]

    host.delete_clip(handle)
    try:
        first_handle = land_copy(host, staged, original.start_time)
        first = read_clip(host, first_handle, original.track)
        if original.looping:
            place_loop_tiles(host, first, original.end_time, context, original.content_offset)
        else:
            _fill_unlooped_slices(host, first, original, size, context)
    except ClipDuplicationError as exc:
        warnings.warn(
            f"duplicate-failed:{handle.clip_id}",
            f"slicing clip {handle} stopped part way, the rest is put back unsliced: {exc}",
        )
        restore_from_backup(host, backup, backup_slot, original, context, warnings)
    else:
        host.delete_clip(backup)
    return rescan_track(host, original.track, original.start_time, original.end_time)


def _over_limit(
    clip: ClipSnapshot,
    count: int,
    already: int,
    context: EditContext,
    warnings: EditWarnings,
) -> bool:
    if already + count <= context.max_slices:
        return False
    warnings.warn(
        f"slice-max-exceeded:{clip.handle.clip_id}",
        f"slicing clip {clip.handle} would make {count} slices, over the limit of "
        f"{context.max_slices} for this request; skipping",
    )
    return True


def slice_clip(
    host: TimelineHost,
    clip: ClipHandle | str | int,
    duration: str | float,
    context: EditContext,
    warnings: EditWarnings | None = None,
) -> List[ClipSnapshot]:
    """Re-cut one clip into back-to-back slices of ``duration``."""
    if warnings is None:
        warnings = EditWarnings()
    size = slice_length(duration, context)
    original = _resolve(host, ClipHandle.parse(clip), warnings)
    if original is None:
        return []
    if original.length <= size + EPSILON:
        return [original]
    if _over_limit(original, slice_count(original.length, size), 0, context, warnings):
        return []
    return _slice_one(host, original, size, context, warnings)


def slice_clips(
    host: TimelineHost,
    clips: Sequence[ClipHandle | str | int],
    duration: str | float,
    context: EditContext,
    warnings: EditWarnings | None = None,
) -> EditResult:
    if warnings is None:
        warnings = EditWarnings()
    size = slice_length(duration, context)
    handles = resolve_handles(clips)

    total = 0
    results: List[ClipSnapshot] = []
    for handle in handles:
        original = _resolve(host, handle, warnings)
        if original is None:
            continue
        if original.length <= size + EPSILON:
            results.append(original)
            continue
        count = slice_count(original.length, size)
        if _over_limit(original, count, total, context, warnings):
            continue
        total += count
        results.extend(_slice_one(host, original, size, context, warnings))
    return EditResult.build(results, warnings)
