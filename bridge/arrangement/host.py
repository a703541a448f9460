from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Protocol, Sequence, Tuple

from arrangement.barbeat import beats_to_duration, beats_to_position
from arrangement.base import EPSILON, EditWarnings, HostCallError


_ID_TEXT_RE = re.compile(r"^(?:id\s+)?(\d+)$")


def _scalar(value: object | None) -> object | None:
    """Extract a scalar value from LiveAPI-style responses."""
    if isinstance(value, (list, tuple)):
        if not value:
            return None
        return value[-1]
    return value

def _as_float(value: object | None) -> float | None:
    scalar = _scalar(value)
    if scalar is None:
        return None
    try:
        return float(scalar)
    except (TypeError, ValueError):
        return None

def _as_int(value: object | None) -> int | None:
    scalar = _scalar(value)
    if scalar is None:
        return None
    try:
        return int(float(scalar))
    except (TypeError, ValueError):
        return None

def _as_bool(value: object | None) -> bool:
    scalar = _scalar(value)
    if isinstance(scalar, str):
        return scalar.strip().lower() in ("1", "true", "yes", "on")
    parsed = _as_int(scalar)
    return bool(parsed)


@dataclass(frozen=True, order=True)
class ClipHandle:
    """Opaque reference to one host clip.

    The only place Live's ``id N`` spelling is parsed or produced.
    """

    clip_id: int

    @classmethod
    def parse(cls, raw: object) -> "ClipHandle":
        if isinstance(raw, ClipHandle):
            return raw
        value: int | None = None
        if isinstance(raw, bool):
            value = None
        elif isinstance(raw, int):
            value = raw
        elif isinstance(raw, float) and raw.is_integer():
            value = int(raw)
        elif isinstance(raw, str):
            match = _ID_TEXT_RE.match(raw.replace('"', "").strip())
            if match:
                value = int(match.group(1))
        elif isinstance(raw, (list, tuple)):
            for idx, item in enumerate(raw):
                if str(item) == "id" and idx + 1 < len(raw):
                    value = _as_int(raw[idx + 1])
                    break
            else:
                if len(raw) == 1:
                    return cls.parse(raw[0])
        elif isinstance(raw, dict):
            value = _as_int(raw.get("id"))

        if value is None or value <= 0:
            raise HostCallError(f"not a clip id: {raw!r}")
        return cls(int(value))

    @property
    def live_path(self) -> str:
        return f"id {self.clip_id}"

    def __str__(self) -> str:
        return self.live_path


class TimelineHost(Protocol):
    def create_clip(self, track: int, start: float, length: float, is_midi: bool) -> ClipHandle:
        ...

    def duplicate_clip_to_position(self, clip: ClipHandle, start: float) -> ClipHandle:
        ...

    def delete_clip(self, clip: ClipHandle) -> None:
        ...

    def get_clip_property(self, clip: ClipHandle, name: str) -> object:
        ...

    def set_clip_property(self, clip: ClipHandle, name: str, value: object) -> None:
        ...

    def enumerate_clips_on_track(self, track: int) -> List[ClipHandle]:
        ...

    def clip_track(self, clip: ClipHandle) -> int | None:
        ...


@dataclass(frozen=True)
class ClipSnapshot:
    handle: ClipHandle
    track: int
    start_time: float
    end_time: float
    is_midi: bool
    looping: bool
    start_marker: float
    end_marker: float
    loop_start: float
    loop_end: float

    @property
    def length(self) -> float:
        return self.end_time - self.start_time

    @property
    def loop_length(self) -> float:
        return self.loop_end - self.loop_start

    @property
    def content_length(self) -> float:
        if self.looping:
            return self.loop_length
        return self.end_marker - self.start_marker

    @property
    def content_offset(self) -> float:
        """Start marker position inside the loop, in ``[0, loop_length)``."""
        loop_length = self.loop_length
        if loop_length <= EPSILON:
            return 0.0
        offset = (self.start_marker - self.loop_start) % loop_length
        if loop_length - offset <= EPSILON:
            return 0.0
        return offset

    def to_payload(self, sig_num: int, sig_den: int) -> dict:
        return {
            "id": self.handle.clip_id,
            "track": self.track,
            "position": beats_to_position(max(self.start_time, 0.0), sig_num, sig_den),
            "length": beats_to_duration(max(self.length, 0.0), sig_num, sig_den),
            "start_time": round(self.start_time, 6),
            "end_time": round(self.end_time, 6),
            "looping": self.looping,
            "is_midi": self.is_midi,
        }


def read_clip(host: TimelineHost, clip: ClipHandle, track: int | None = None) -> ClipSnapshot:
    if track is None:
        track = host.clip_track(clip)
    if track is None:
        raise HostCallError(f"could not resolve track for clip {clip}")

    def _number(name: str) -> float:
        value = _as_float(host.get_clip_property(clip, name))
        if value is None:
            raise HostCallError(f"clip {clip} returned no {name}")
        return value

    return ClipSnapshot(
        handle=clip,
        track=int(track),
        start_time=_number("start_time"),
        end_time=_number("end_time"),
        is_midi=_as_bool(host.get_clip_property(clip, "is_midi_clip")),
        looping=_as_bool(host.get_clip_property(clip, "looping")),
        start_marker=_number("start_marker"),
        end_marker=_number("end_marker"),
        loop_start=_number("loop_start"),
        loop_end=_number("loop_end"),
    )


def resolve_handles(clips: Sequence[object]) -> List[ClipHandle]:
    return [ClipHandle.parse(clip) for clip in clips]


@dataclass(frozen=True)
class EditResult:
    clips: Tuple[ClipSnapshot, ...]
    warnings: Tuple[str, ...]

    @classmethod
    def build(cls, clips: Sequence[ClipSnapshot], warnings: EditWarnings) -> "EditResult":
        return cls(clips=tuple(clips), warnings=tuple(warnings.messages()))

    def to_payload(self, sig_num: int, sig_den: int) -> dict:
        payload: dict = {"clips": [clip.to_payload(sig_num, sig_den) for clip in self.clips]}
        if self.warnings:
            payload["warnings"] = list(self.warnings)
        return payload
