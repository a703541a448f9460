"""Shorten arrangement clips by laying a throwaway clip over their tail."""

from __future__ import annotations

from typing import List, Sequence

from arrangement.base import EPSILON, EditContext, EditWarnings
from arrangement.clip_ops import trim_tail
from arrangement.host import (
    ClipHandle,
    ClipSnapshot,
    EditResult,
    TimelineHost,
    read_clip,
    resolve_handles,
)
from arrangement.tiling import _target_length


def shorten_clip(
    host: TimelineHost,
    clip: ClipHandle | str | int,
    target_length: str | float,
    context: EditContext,
    warnings: EditWarnings | None = None,
) -> List[ClipSnapshot]:
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
    if target >= snapshot.length - EPSILON:
        return [snapshot]
    trim_tail(host, snapshot, target, context)
    return [read_clip(host, handle, track)]


def shorten_clips(
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
        results.extend(shorten_clip(host, handle, target, context, warnings))
    return EditResult.build(results, warnings)
