from __future__ import annotations

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
    content_reach,
    create_shortened_in_holding,
    holding_slot,
    land_copy,
    loop_start_marker,
    overlay_trim,
    rescan_track,
    set_markers_with_looping_workaround,
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


def _target_length(value: str | float, context: EditContext) -> float:
    target = coerce_duration(value, context.sig_num, context.sig_den)
    if target <= EPSILON:
        raise EditFormatError(f"target length must be > 0, got: {value!r}")
    return target


def place_loop_tiles(
    host: TimelineHost,
    source: ClipSnapshot,
    end_time: float,
    context: EditContext,
    content_offset: float | None = None,
) -> List[ClipHandle]:
    """Fill ``[source.end_time, end_time)`` with copies of a looping ``source``.

    Tiles are as long as ``source``; a shorter last tile is cut in the
    holding area first. Each tile's start_marker continues the loop from
    where the previous tile stopped, counted from ``content_offset``.
    """
    tile = source.length
    offset = source.content_offset if content_offset is None else float(content_offset)
    slot = holding_slot(context, 0, tile)
    placed: List[ClipHandle] = []
    position = source.end_time
    while position < end_time - EPSILON:
        remaining = end_time - position
        if remaining >= tile - EPSILON:
            tile_clip = host.duplicate_clip_to_position(source.handle, position)
            step = tile
        else:
            staged = create_shortened_in_holding(host, source, remaining, slot, context)
            tile_clip = land_copy(host, staged, position)
            step = remaining
        marker = loop_start_marker(
            source.loop_start,
            source.loop_length,
            offset + (position - source.start_time),
        )
        host.set_clip_property(tile_clip, "start_marker", marker)
        placed.append(tile_clip)
        position += step
    return placed


def _lengthen_looping(
    host: TimelineHost,
    clip: ClipSnapshot,
    target: float,
    context: EditContext,
    warnings: EditWarnings,
) -> List[ClipSnapshot]:
    clip = align_loop_end_marker(host, clip)
    loop_length = clip.loop_length
    if loop_length <= EPSILON:
        warnings.warn(
            f"empty-loop:{clip.handle.clip_id}",
            f"clip {clip.handle} has an empty loop, not lengthened",
        )
        return [clip]

    offset = clip.content_offset
    if clip.length > loop_length + EPSILON:
        trim_tail(host, clip, loop_length, context)
        clip = read_clip(host, clip.handle, clip.track)

    place_loop_tiles(host, clip, clip.start_time + target, context, offset)
    return rescan_track(host, clip.track, clip.start_time, clip.start_time + target)


def _lengthen_unlooped(
    host: TimelineHost,
    clip: ClipSnapshot,
    target: float,
    context: EditContext,
    warnings: EditWarnings,
) -> List[ClipSnapshot]:
    tile = clip.length
    reach = content_reach(host, clip, clip.start_marker + target) - clip.start_marker
    if reach <= tile + EPSILON:
        warnings.warn(
            f"no-hidden-content:{clip.handle.clip_id}",
            f"clip {clip.handle} has no content past its end marker, left at {tile:g} beats",
        )
        return [clip]

    capped = reach < target - EPSILON
    effective = min(target, reach)
    if capped:
        warnings.warn(
            f"content-capped:{clip.handle.clip_id}",
            f"clip {clip.handle} capped at its content boundary "
            f"({reach:g} beats available, {target:g} requested)",
        )

    end_time = clip.start_time + effective
    slot = holding_slot(context, 0, tile)
    position = clip.end_time
    content = clip.start_marker + tile
    while position < end_time - EPSILON:
        size = min(tile, end_time - position)
        staged = create_shortened_in_holding(host, clip, size, slot, context)
        got_start, got_end = set_markers_with_looping_workaround(host, staged, content, content + size)
        revealed = got_end - got_start
        if revealed <= EPSILON:
            host.delete_clip(staged)
            warnings.warn(
                f"content-capped:{clip.handle.clip_id}",
                f"clip {clip.handle} ran out of content at {position - clip.start_time:g} beats",
            )
            break
        short = revealed < size - EPSILON
        if short:
            overlay_trim(host, clip.track, slot + revealed, size - revealed, clip.is_midi, context)
            warnings.warn(
                f"content-capped:{clip.handle.clip_id}",
                f"clip {clip.handle} ran out of content at {position + revealed - clip.start_time:g} beats",
            )
            size = revealed
        land_copy(host, staged, position)
        position += size
        content += size
        if short:
            break

    return rescan_track(host, clip.track, clip.start_time, position)


def lengthen_clip(
    host: TimelineHost,
    clip: ClipHandle | str | int,
    target_length: str | float,
    context: EditContext,
    warnings: EditWarnings | None = None,
) -> List[ClipSnapshot]:
    """Extend one clip to ``target_length``; returns the resulting clips in order."""
    if warnings is None:
        warnings = EditWarnings()
    target = _target_length(target_length, context)
    handle = ClipHandle.parse(clip)
    track = host.clip_track(handle)
    if track is None:
        warnings.warn(
            f"track-unresolved:{handle.clip_id}",
            f"could not resolve the track of clip {handle}, skipping",
        )
        return []

    snapshot = read_clip(host, handle, track)
    if target <= snapshot.length + EPSILON:
        return [snapshot]
    if snapshot.looping:
        return _lengthen_looping(host, snapshot, target, context, warnings)
    return _lengthen_unlooped(host, snapshot, target, context, warnings)


def lengthen_clips(
    host: TimelineHost,
    clips: Sequence[ClipHandle | str | int],
    target_length: str | float,
    context: EditContext,
    warnings: EditWarnings | None = None,
) -> EditResult:
    if warnings is None:
        warnings = EditWarnings()
    target = _target_length(target_length, context)
    handles = resolve_handles(clips)

    results: List[ClipSnapshot] = []
    for handle in handles:
        try:
            results.extend(lengthen_clip(host, handle, target, context, warnings))
        except ClipDuplicationError as exc:
            warnings.warn(
                f"duplicate-failed:{handle.clip_id}",
                f"lengthening clip {handle} stopped: {exc}",
            )
    return EditResult.build(results, warnings)
