from __future__ import annotations

from dataclasses import dataclass
from typing import Collection, List, Sequence, Tuple

from arrangement.base import (
    EPSILON,
    ClipDuplicationError,
    EditContext,
    EditWarnings,
    HostCallError,
    _nearly_equal,
    _overlaps,
)
from arrangement.host import (
    ClipHandle,
    ClipSnapshot,
    TimelineHost,
    _as_bool,
    _as_float,
    read_clip,
)


_START_PROPS = ("start_marker", "loop_start")


@dataclass(frozen=True)
class MarkerStep:
    prop: str
    value: float
    # The opposite edge this write must stay clear of when it is issued.
    precondition: str


def holding_slot(context: EditContext, index: int, span: float = 0.0) -> float:
    """Start beat of scratch slot ``index``; slots are ``span + gap`` wide."""
    width = max(float(span), 0.0) + float(context.holding_gap)
    return float(context.holding_area_start) + int(index) * width

def stage_clip(host: TimelineHost, clip: ClipHandle, position: float) -> ClipHandle:
    return host.duplicate_clip_to_position(clip, float(position))

def move_from_holding(host: TimelineHost, staged: ClipHandle, target: float) -> ClipHandle:
    """Land ``staged`` at ``target`` and delete it from the holding area.

    If the duplicate fails the staged clip is left where it is; it may be
    the only copy of its content.
    """
    moved = host.duplicate_clip_to_position(staged, float(target))
    host.delete_clip(staged)
    return moved

def land_copy(host: TimelineHost, staged: ClipHandle, target: float) -> ClipHandle:
    """``move_from_holding`` for a throwaway copy, deleted if the duplicate fails."""
    try:
        return move_from_holding(host, staged, target)
    except ClipDuplicationError:
        host.delete_clip(staged)
        raise

def discard_clips(host: TimelineHost, clips: Sequence[ClipHandle]) -> None:
    """Delete whichever of ``clips`` still exist."""
    for clip in clips:
        if host.clip_track(clip) is not None:
            host.delete_clip(clip)

def loop_start_marker(loop_start: float, loop_length: float, offset: float) -> float:
    """start_marker that shows the loop from ``offset`` beats in, wrapped to the loop."""
    if loop_length <= EPSILON:
        return float(loop_start)
    wrapped = float(offset) % loop_length
    if loop_length - wrapped <= EPSILON:
        wrapped = 0.0
    return float(loop_start) + wrapped

def overlay_trim(
    host: TimelineHost,
    track: int,
    start: float,
    length: float,
    is_midi: bool,
    context: EditContext,
) -> None:
    """Cut ``[start, start + length)`` out of whatever sits there on ``track``."""
    if length <= EPSILON:
        return
    if not is_midi and not context.silence_wav_path:
        raise HostCallError(
            "audio clip edits need a silence WAV for temp clips (set --silence-wav)"
        )
    temp = host.create_clip(int(track), float(start), float(length), bool(is_midi))
    host.delete_clip(temp)

def trim_tail(
    host: TimelineHost,
    clip: ClipSnapshot,
    new_length: float,
    context: EditContext,
) -> None:
    cut_start = clip.start_time + float(new_length)
    overlay_trim(host, clip.track, cut_start, clip.end_time - cut_start, clip.is_midi, context)

def trim_head(
    host: TimelineHost,
    clip: ClipSnapshot,
    cut: float,
    context: EditContext,
) -> None:
    overlay_trim(host, clip.track, clip.start_time, float(cut), clip.is_midi, context)

def create_shortened_in_holding(
    host: TimelineHost,
    clip: ClipSnapshot,
    length: float,
    position: float,
    context: EditContext,
) -> ClipHandle:
    staged = stage_clip(host, clip.handle, position)
    tail = clip.length - float(length)
    if tail > EPSILON:
        overlay_trim(host, clip.track, float(position) + float(length), tail, clip.is_midi, context)
    return staged

def plan_window_steps(
    current: Tuple[float, float],
    target: Tuple[float, float],
    start_prop: str = "start_marker",
    end_prop: str = "end_marker",
) -> List[MarkerStep]:
    """Order the writes that move a ``[start, end]`` window without inverting it.

    Moving forward writes the end first; moving backward writes the start
    first. Unchanged edges are left out.
    """
    current_start, current_end = (float(v) for v in current)
    target_start, target_end = (float(v) for v in target)
    if target_end - target_start <= EPSILON:
        raise HostCallError(f"empty window requested: [{target_start:g}, {target_end:g}]")

    start_step = None
    if not _nearly_equal(target_start, current_start, 1e-9):
        start_step = MarkerStep(start_prop, target_start, end_prop)
    end_step = None
    if not _nearly_equal(target_end, current_end, 1e-9):
        end_step = MarkerStep(end_prop, target_end, start_prop)

    if target_start >= current_start:
        ordered = [end_step, start_step]
    else:
        ordered = [start_step, end_step]
    return [step for step in ordered if step is not None]

def apply_marker_steps(host: TimelineHost, clip: ClipHandle, steps: Sequence[MarkerStep]) -> None:
    for step in steps:
        bound = _as_float(host.get_clip_property(clip, step.precondition))
        if bound is not None:
            if step.prop in _START_PROPS and step.value >= bound:
                raise HostCallError(
                    f"refusing {step.prop}={step.value:g} on {clip}: not below {step.precondition}={bound:g}"
                )
            if step.prop not in _START_PROPS and step.value <= bound:
                raise HostCallError(
                    f"refusing {step.prop}={step.value:g} on {clip}: not above {step.precondition}={bound:g}"
                )
        host.set_clip_property(clip, step.prop, step.value)

def _read_window(host: TimelineHost, clip: ClipHandle, start_prop: str, end_prop: str) -> Tuple[float, float]:
    start = _as_float(host.get_clip_property(clip, start_prop))
    end = _as_float(host.get_clip_property(clip, end_prop))
    if start is None or end is None:
        raise HostCallError(f"clip {clip} returned no {start_prop}/{end_prop}")
    return start, end

def set_markers_with_looping_workaround(
    host: TimelineHost,
    clip: ClipHandle,
    start_marker: float,
    end_marker: float,
) -> Tuple[float, float]:
    """Point a clip at ``[start_marker, end_marker]`` and return what stuck.

    Unlooped clips cannot move their markers past the loop brace, so looping
    is switched on while the brace and markers move and switched off again.
    """
    target = (float(start_marker), float(end_marker))
    looping = _as_bool(host.get_clip_property(clip, "looping"))
    if looping:
        current = _read_window(host, clip, "start_marker", "end_marker")
        apply_marker_steps(host, clip, plan_window_steps(current, target))
    else:
        host.set_clip_property(clip, "looping", 1)
        brace = _read_window(host, clip, "loop_start", "loop_end")
        apply_marker_steps(host, clip, plan_window_steps(brace, target, "loop_start", "loop_end"))
        current = _read_window(host, clip, "start_marker", "end_marker")
        apply_marker_steps(host, clip, plan_window_steps(current, target))
        host.set_clip_property(clip, "looping", 0)
    return _read_window(host, clip, "start_marker", "end_marker")

def content_reach(host: TimelineHost, clip: ClipSnapshot, wanted_end: float) -> float:
    """How far past its start marker an unlooped clip's content reaches, up to ``wanted_end``.

    MIDI content is unbounded. Audio content stops at the sample boundary,
    which Live reports by clamping a loop_end written past it.
    """
    if clip.is_midi or clip.looping:
        return float(wanted_end)
    if float(wanted_end) <= clip.loop_end + EPSILON:
        return float(wanted_end)
    host.set_clip_property(clip.handle, "looping", 1)
    host.set_clip_property(clip.handle, "loop_end", float(wanted_end))
    reached = _as_float(host.get_clip_property(clip.handle, "loop_end"))
    host.set_clip_property(clip.handle, "loop_end", clip.loop_end)
    host.set_clip_property(clip.handle, "looping", 0)
    if reached is None:
        raise HostCallError(f"clip {clip.handle} returned no loop_end")
    return min(float(wanted_end), reached)

def align_loop_end_marker(host: TimelineHost, clip: ClipSnapshot) -> ClipSnapshot:
    """Pull a looping clip's end_marker up to loop_end so start_marker writes inside the loop stay legal."""
    if not clip.looping or clip.end_marker >= clip.loop_end - EPSILON:
        return clip
    host.set_clip_property(clip.handle, "end_marker", clip.loop_end)
    return read_clip(host, clip.handle, clip.track)

def clear_range(
    host: TimelineHost,
    track: int,
    start: float,
    end: float,
    context: EditContext,
    keep: Collection[ClipHandle] | None = None,
    holding_start: float | None = None,
) -> int:
    """Empty ``[start, end)`` on ``track`` while keeping whatever sticks out of it.

    Tails that stick out past ``end`` are rebuilt from a copy staged at
    ``holding_start`` (the first holding slot by default). Returns the
    number of clips touched.
    """
    slot = holding_slot(context, 0) if holding_start is None else float(holding_start)
    keep_ids = {ClipHandle.parse(h).clip_id for h in keep or ()}
    touched = 0
    for handle in host.enumerate_clips_on_track(track):
        if handle.clip_id in keep_ids:
            continue
        clip = read_clip(host, handle, track)
        if not _overlaps(clip.start_time, clip.end_time, start + EPSILON, end - EPSILON):
            continue
        touched += 1
        has_before = clip.start_time < start - EPSILON
        has_after = clip.end_time > end + EPSILON

        if not has_after:
            if has_before:
                overlay_trim(host, track, start, clip.end_time - start, clip.is_midi, context)
            else:
                host.delete_clip(handle)
            continue

        staged = stage_clip(host, handle, slot)
        if has_before:
            overlay_trim(host, track, start, clip.end_time - start, clip.is_midi, context)
        else:
            host.delete_clip(handle)
        overlay_trim(host, track, slot, end - clip.start_time, clip.is_midi, context)
        move_from_holding(host, staged, end)
    return touched

def rescan_track(host: TimelineHost, track: int, start: float, end: float) -> List[ClipSnapshot]:
    """Fresh snapshots of the clips starting inside ``[start, end)``."""
    found: List[ClipSnapshot] = []
    for handle in host.enumerate_clips_on_track(track):
        clip = read_clip(host, handle, track)
        if clip.start_time >= start - EPSILON and clip.start_time < end - EPSILON:
            found.append(clip)
    found.sort(key=lambda clip: (clip.start_time, clip.handle.clip_id))
    return found

def covered_until(host: TimelineHost, track: int, start: float, end: float) -> float:
    """End of the gap-free run of clips that begins at ``start``, capped at ``end``."""
    reach = float(start)
    for clip in rescan_track(host, track, start, end):
        if clip.start_time > reach + EPSILON:
            break
        reach = max(reach, clip.end_time)
    return min(reach, float(end))

def range_is_free(host: TimelineHost, track: int, start: float, end: float) -> bool:
    for handle in host.enumerate_clips_on_track(track):
        clip = read_clip(host, handle, track)
        if _overlaps(clip.start_time, clip.end_time, float(start) + EPSILON, float(end) - EPSILON):
            return False
    return True

def restore_from_backup(
    host: TimelineHost,
    backup: ClipHandle,
    origin: float,
    original: ClipSnapshot,
    context: EditContext,
    warnings: EditWarnings,
) -> ClipHandle | None:
    """Fill whatever part of ``original``'s span is left uncovered from ``backup``.

    ``backup`` is a full copy of ``original`` staged at ``origin`` in the
    holding area; its head may have been trimmed since. The pieces already
    placed are kept, the backup's lead is cut up to the first uncovered
    beat and the rest lands there. If that duplicate fails too the backup
    stays in the holding area and a warning says where.
    """
    gap_start = covered_until(host, original.track, original.start_time, original.end_time)
    if gap_start >= original.end_time - EPSILON:
        host.delete_clip(backup)
        return None

    copy = read_clip(host, backup, original.track)
    mapped_start = original.start_time + (copy.start_time - float(origin))
    lead = gap_start - mapped_start
    if lead > EPSILON:
        overlay_trim(host, original.track, copy.start_time, lead, original.is_midi, context)
    try:
        return move_from_holding(host, backup, max(gap_start, mapped_start))
    except ClipDuplicationError as exc:
        warnings.warn(
            f"restore-failed:{original.handle.clip_id}",
            f"could not put back beats {gap_start - original.start_time:g}-{original.length:g} "
            f"of clip {original.handle} ({exc}); they are left in the holding area at beat "
            f"{copy.start_time + max(lead, 0.0):g}",
        )
        return None
