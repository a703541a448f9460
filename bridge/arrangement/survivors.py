"""Bulk moves onto a shared target, skipping clips that would be overwritten.

When several clips on one track are moved to the same position, each move
overwrites the head of the ones before it. A clip only shows anything
afterwards if it is longer than every clip moved after it on that track;
the rest are deleted instead of moved.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, List, Sequence, Tuple

from arrangement.barbeat import coerce_position
from arrangement.base import (
    EPSILON,
    ClipDuplicationError,
    EditContext,
    EditWarnings,
)
from arrangement.clip_ops import (
    clear_range,
    holding_slot,
    move_from_holding,
    range_is_free,
    rescan_track,
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


def compute_non_survivors(
    clips: Sequence[ClipSnapshot],
    target_position: float | None,
    length_override: float | None = None,
) -> FrozenSet[ClipHandle] | None:
    if target_position is None or length_override is not None:
        return None

    by_track: Dict[int, List[ClipSnapshot]] = {}
    for clip in clips:
        by_track.setdefault(clip.track, []).append(clip)
    if not any(len(group) >= 2 for group in by_track.values()):
        return None

    doomed = set()
    for group in by_track.values():
        longest_after = float("-inf")
        for clip in reversed(group):
            if clip.length > longest_after + EPSILON:
                longest_after = clip.length
            else:
                doomed.add(clip.handle)
    if not doomed:
        return None
    return frozenset(doomed)


def move_clips(
    host: TimelineHost,
    clips: Sequence[ClipHandle | str | int],
    target_position: str | float,
    context: EditContext,
    warnings: EditWarnings | None = None,
) -> EditResult:
    """Move every clip so it starts at ``target_position`` on its own track."""
    if warnings is None:
        warnings = EditWarnings()
    target = coerce_position(target_position, context.sig_num, context.sig_den)
    handles = resolve_handles(clips)

    snapshots: List[ClipSnapshot] = []
    for handle in handles:
        track = host.clip_track(handle)
        if track is None:
            warnings.warn(
                f"track-unresolved:{handle.clip_id}",
                f"could not resolve the track of clip {handle}, skipping",
            )
            continue
        snapshots.append(read_clip(host, handle, track))

    doomed = compute_non_survivors(snapshots, target) or frozenset()
    for clip in snapshots:
        if clip.handle in doomed:
            host.delete_clip(clip.handle)
    survivors = [clip for clip in snapshots if clip.handle not in doomed]
    if not survivors:
        return EditResult.build([], warnings)

    # Every survivor is lifted out before any lands, so a landing clip never
    # overwrites one that has not moved yet.
    span = max(clip.length for clip in survivors)
    staged: List[Tuple[ClipSnapshot, ClipHandle, float]] = []
    for index, clip in enumerate(survivors):
        slot = holding_slot(context, index, span)
        try:
            copy = stage_clip(host, clip.handle, slot)
        except ClipDuplicationError as exc:
            warnings.warn(
                f"duplicate-failed:{clip.handle.clip_id}",
                f"moving clip {clip.handle} skipped: {exc}",
            )
            continue
        host.delete_clip(clip.handle)
        staged.append((clip, copy, slot))

    scratch = holding_slot(context, len(survivors), span)
    scratch_in_use = False
    reach: Dict[int, float] = {}
    for clip, copy, slot in staged:
        if scratch_in_use:
            _put_back(host, clip, copy, slot, warnings)
            continue
        try:
            clear_range(host, clip.track, target, target + clip.length, context, holding_start=scratch)
        except ClipDuplicationError as exc:
            # A tail that could not be landed may still sit in the scratch slot.
            scratch_in_use = True
            warnings.warn(
                f"clear-failed:{clip.track}",
                f"clearing beats {target:g}-{target + clip.length:g} on track {clip.track} failed, "
                f"anything left over is in the holding area at beat {scratch:g}: {exc}",
            )
            _put_back(host, clip, copy, slot, warnings)
            continue
        try:
            move_from_holding(host, copy, target)
        except ClipDuplicationError as exc:
            warnings.warn(
                f"duplicate-failed:{clip.handle.clip_id}",
                f"moving clip {clip.handle} failed after it was lifted: {exc}",
            )
            _put_back(host, clip, copy, slot, warnings)
            continue
        reach[clip.track] = max(reach.get(clip.track, target), target + clip.length)

    results: List[ClipSnapshot] = []
    for track in sorted(reach):
        results.extend(rescan_track(host, track, target, reach[track]))
    return EditResult.build(results, warnings)


def _put_back(
    host: TimelineHost,
    clip: ClipSnapshot,
    copy: ClipHandle,
    slot: float,
    warnings: EditWarnings,
) -> None:
    """Return a lifted clip to where it started, unless something has landed there."""
    if range_is_free(host, clip.track, clip.start_time, clip.end_time):
        try:
            move_from_holding(host, copy, clip.start_time)
            return
        except ClipDuplicationError as exc:
            reason = str(exc)
    else:
        reason = "its old place is taken"
    warnings.warn(
        f"restore-failed:{clip.handle.clip_id}",
        f"clip {clip.handle} could not be put back ({reason}); it is left in the holding area at beat {slot:g}",
    )
