"""In-memory arrangement timeline that follows Live's clip editing rules.

Only the behaviours the editing engines lean on are modelled:

* a new or duplicated clip overwrites whatever it lands on (full covers are
  deleted, partial covers are truncated, a cover in the middle splits the
  clip in two)
* clip spans never change except through such overwrites
* unlooped clips keep their markers inside the loop brace, and the brace can
  only be moved while looping is on
* audio content ends at the sample boundary, writes past it are clamped
"""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Iterable, List, Tuple

from arrangement.base import (
    CLIP_PROPERTIES,
    EPSILON,
    READ_ONLY_CLIP_PROPERTIES,
    ClipDuplicationError,
    HostCallError,
)
from arrangement.host import ClipHandle, ClipSnapshot, _as_bool, _as_float, read_clip


@dataclass
class SimClip:
    clip_id: int
    track: int
    start_time: float
    end_time: float
    is_midi: bool
    looping: bool
    start_marker: float
    end_marker: float
    loop_start: float
    loop_end: float
    material_length: float | None = None

    @property
    def length(self) -> float:
        return self.end_time - self.start_time


class SimulatedTimelineHost:
    def __init__(
        self,
        strict_positions: bool = False,
        fail_duplicates: Iterable[int] = (),
    ) -> None:
        self.strict_positions = bool(strict_positions)
        # 1-based ordinals of duplicate_clip_to_position calls that fail.
        self._fail_duplicates = {int(n) for n in fail_duplicates}
        self._duplicate_count = 0
        self._clips: Dict[int, SimClip] = {}
        self._next_id = 1
        self.calls: List[Tuple[object, ...]] = []

    @classmethod
    def from_fixture(cls, data: object, **kwargs: object) -> "SimulatedTimelineHost":
        entries = data.get("clips", []) if isinstance(data, dict) else data
        if not isinstance(entries, list):
            raise ValueError("fixture must be a list of clips or an object with a 'clips' list")
        sim = cls(**kwargs)  # type: ignore[arg-type]
        for entry in entries:
            if not isinstance(entry, dict):
                raise ValueError(f"fixture clip must be an object, got: {entry!r}")
            sim.add_clip(
                int(entry.get("track", 0)),
                float(entry["start"]),
                float(entry["length"]),
                is_midi=bool(entry.get("is_midi", True)),
                looping=bool(entry.get("looping", False)),
                start_marker=float(entry.get("start_marker", 0.0)),
                end_marker=_optional_float(entry.get("end_marker")),
                loop_start=_optional_float(entry.get("loop_start")),
                loop_end=_optional_float(entry.get("loop_end")),
                material_length=_optional_float(entry.get("material_length")),
                clip_id=entry.get("id"),
            )
        return sim

    @classmethod
    def from_fixture_file(cls, path: str | Path, **kwargs: object) -> "SimulatedTimelineHost":
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls.from_fixture(raw, **kwargs)

    def add_clip(
        self,
        track: int,
        start: float,
        length: float,
        *,
        is_midi: bool = True,
        looping: bool = False,
        start_marker: float = 0.0,
        end_marker: float | None = None,
        loop_start: float | None = None,
        loop_end: float | None = None,
        material_length: float | None = None,
        clip_id: object = None,
    ) -> ClipHandle:
        """Seed a clip without going through Live's overwrite rules."""
        if length <= EPSILON:
            raise ValueError(f"clip length must be > 0, got {length}")
        end = float(start) + float(length)
        for other in self._clips.values():
            if other.track == int(track) and _covers(other.start_time, other.end_time, start, end):
                raise ValueError(f"seeded clip overlaps clip {other.clip_id} on track {track}")

        if loop_start is None:
            loop_start = start_marker
        if looping:
            if loop_end is None:
                loop_end = loop_start + float(length)
            if end_marker is None:
                end_marker = loop_end
        else:
            if end_marker is None:
                end_marker = start_marker + float(length)
            if loop_end is None:
                loop_end = end_marker

        if clip_id is None:
            new_id = self._new_id()
        else:
            new_id = ClipHandle.parse(clip_id).clip_id
            if new_id in self._clips:
                raise ValueError(f"duplicate clip id in fixture: {new_id}")
            self._next_id = max(self._next_id, new_id + 1)

        self._clips[new_id] = SimClip(
            clip_id=new_id,
            track=int(track),
            start_time=float(start),
            end_time=end,
            is_midi=bool(is_midi),
            looping=bool(looping),
            start_marker=float(start_marker),
            end_marker=float(end_marker),
            loop_start=float(loop_start),
            loop_end=float(loop_end),
            material_length=None if material_length is None else float(material_length),
        )
        return ClipHandle(new_id)

    def _new_id(self) -> int:
        new_id = self._next_id
        self._next_id += 1
        return new_id

    def _clip(self, handle: ClipHandle) -> SimClip:
        clip = self._clips.get(ClipHandle.parse(handle).clip_id)
        if clip is None:
            raise HostCallError(f"no such clip: {handle}")
        return clip

    # -- host protocol -----------------------------------------------------

    def create_clip(self, track: int, start: float, length: float, is_midi: bool) -> ClipHandle:
        self.calls.append(("create_clip", int(track), float(start), float(length), bool(is_midi)))
        if length <= EPSILON:
            raise HostCallError(f"cannot create a clip of length {length}")
        new_id = self._new_id()
        clip = SimClip(
            clip_id=new_id,
            track=int(track),
            start_time=float(start),
            end_time=float(start) + float(length),
            is_midi=bool(is_midi),
            looping=False,
            start_marker=0.0,
            end_marker=float(length),
            loop_start=0.0,
            loop_end=float(length),
        )
        self._clips[new_id] = clip
        self._overwrite(clip)
        return ClipHandle(new_id)

    def duplicate_clip_to_position(self, clip: ClipHandle, start: float) -> ClipHandle:
        self.calls.append(("duplicate_clip_to_position", ClipHandle.parse(clip).clip_id, float(start)))
        source = self._clip(clip)
        self._duplicate_count += 1
        if self._duplicate_count in self._fail_duplicates:
            raise ClipDuplicationError(f"duplicate of {clip} to {start:g} failed")
        if self.strict_positions:
            for other in self._clips.values():
                if other.track == source.track and abs(other.start_time - float(start)) <= EPSILON:
                    raise ClipDuplicationError(
                        f"duplicate of {clip} onto the start of clip {other.clip_id} at {start:g}"
                    )

        new_id = self._new_id()
        copy = replace(
            source,
            clip_id=new_id,
            start_time=float(start),
            end_time=float(start) + source.length,
        )
        self._clips[new_id] = copy
        self._overwrite(copy)
        return ClipHandle(new_id)

    def delete_clip(self, clip: ClipHandle) -> None:
        self.calls.append(("delete_clip", ClipHandle.parse(clip).clip_id))
        target = self._clip(clip)
        del self._clips[target.clip_id]

    def get_clip_property(self, clip: ClipHandle, name: str) -> object:
        target = self._clip(clip)
        if name not in CLIP_PROPERTIES:
            raise HostCallError(f"unknown clip property: {name}")
        if name == "length":
            return target.length
        if name == "is_midi_clip":
            return int(target.is_midi)
        if name == "looping":
            return int(target.looping)
        return float(getattr(target, name))

    def set_clip_property(self, clip: ClipHandle, name: str, value: object) -> None:
        self.calls.append(("set_clip_property", ClipHandle.parse(clip).clip_id, name, value))
        target = self._clip(clip)
        if name in READ_ONLY_CLIP_PROPERTIES:
            raise HostCallError(f"clip property {name} is read-only")
        if name == "looping":
            target.looping = _as_bool(value)
            return

        number = _as_float(value)
        if number is None:
            raise HostCallError(f"clip property {name} needs a number, got {value!r}")
        if not target.is_midi and target.material_length is not None:
            number = min(max(number, 0.0), target.material_length)

        if name == "start_marker":
            if number >= target.end_marker - EPSILON:
                raise HostCallError(f"start_marker {number:g} must stay below end_marker {target.end_marker:g}")
            if not target.looping and number < target.loop_start - EPSILON:
                raise HostCallError(f"start_marker {number:g} is outside the loop brace of an unlooped clip")
            target.start_marker = number
        elif name == "end_marker":
            if number <= target.start_marker + EPSILON:
                raise HostCallError(f"end_marker {number:g} must stay above start_marker {target.start_marker:g}")
            if not target.looping and number > target.loop_end + EPSILON:
                raise HostCallError(f"end_marker {number:g} is outside the loop brace of an unlooped clip")
            target.end_marker = number
        elif name in ("loop_start", "loop_end"):
            if not target.looping:
                raise HostCallError(f"{name} cannot move while looping is off")
            if name == "loop_start":
                if number >= target.loop_end - EPSILON:
                    raise HostCallError(f"loop_start {number:g} must stay below loop_end {target.loop_end:g}")
                target.loop_start = number
            else:
                if number <= target.loop_start + EPSILON:
                    raise HostCallError(f"loop_end {number:g} must stay above loop_start {target.loop_start:g}")
                target.loop_end = number
        else:
            raise HostCallError(f"unknown clip property: {name}")

    def enumerate_clips_on_track(self, track: int) -> List[ClipHandle]:
        clips = [clip for clip in self._clips.values() if clip.track == int(track)]
        clips.sort(key=lambda clip: (clip.start_time, clip.clip_id))
        return [ClipHandle(clip.clip_id) for clip in clips]

    def clip_track(self, clip: ClipHandle) -> int | None:
        target = self._clips.get(ClipHandle.parse(clip).clip_id)
        return None if target is None else target.track

    # -- inspection helpers ------------------------------------------------

    def snapshots(self, track: int | None = None) -> List[ClipSnapshot]:
        tracks = sorted({clip.track for clip in self._clips.values()}) if track is None else [track]
        out: List[ClipSnapshot] = []
        for track_index in tracks:
            for handle in self.enumerate_clips_on_track(track_index):
                out.append(read_clip(self, handle, track_index))
        return out

    def clips_from(self, position: float) -> List[ClipSnapshot]:
        return [snap for snap in self.snapshots() if snap.end_time > float(position) + EPSILON]

    def call_count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    # -- overwrite rules ---------------------------------------------------

    def _overwrite(self, placed: SimClip) -> None:
        start, end = placed.start_time, placed.end_time
        for other in list(self._clips.values()):
            if other.clip_id == placed.clip_id or other.track != placed.track:
                continue
            if not _covers(other.start_time, other.end_time, start, end):
                continue
            if other.start_time >= start - EPSILON and other.end_time <= end + EPSILON:
                del self._clips[other.clip_id]
            elif other.start_time < start and other.end_time > end:
                tail = replace(other, clip_id=self._new_id())
                _trim_head(tail, end - other.start_time)
                self._clips[tail.clip_id] = tail
                _trim_tail(other, other.end_time - start)
            elif other.start_time < start:
                _trim_tail(other, other.end_time - start)
            else:
                _trim_head(other, end - other.start_time)


def _optional_float(value: object) -> float | None:
    return None if value is None else float(value)  # type: ignore[arg-type]


def _covers(start_a: float, end_a: float, start_b: float, end_b: float) -> bool:
    return start_a < end_b - EPSILON and end_a > start_b + EPSILON


def _trim_tail(clip: SimClip, cut: float) -> None:
    clip.end_time -= cut
    if not clip.looping:
        clip.end_marker -= cut
        clip.loop_start = clip.start_marker
        clip.loop_end = clip.end_marker


def _trim_head(clip: SimClip, cut: float) -> None:
    clip.start_time += cut
    if clip.looping:
        loop_length = clip.loop_end - clip.loop_start
        if loop_length > EPSILON:
            offset = (clip.start_marker - clip.loop_start + cut) % loop_length
            clip.start_marker = clip.loop_start + offset
        if clip.start_marker >= clip.end_marker - EPSILON:
            clip.end_marker = max(clip.loop_end, clip.start_marker + loop_length)
        return
    clip.start_marker += cut
    clip.loop_start = clip.start_marker
    clip.loop_end = clip.end_marker
