from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple


DEFAULT_SIG_NUM = 4

DEFAULT_SIG_DEN = 4

# Far enough past any real material that staged clips never touch it.
DEFAULT_HOLDING_AREA_START = 40000.0

DEFAULT_HOLDING_GAP = 4.0

DEFAULT_MAX_SPLIT_POINTS = 32

DEFAULT_MAX_SLICES = 64

EPSILON = 1e-3

CLIP_PROPERTIES = (
    "start_time",
    "end_time",
    "start_marker",
    "end_marker",
    "loop_start",
    "loop_end",
    "looping",
    "length",
    "is_midi_clip",
)

READ_ONLY_CLIP_PROPERTIES = frozenset({"start_time", "end_time", "length", "is_midi_clip"})


class EditError(Exception):
    """Base class for arrangement edit failures."""


class EditFormatError(EditError, ValueError):
    """Malformed notation or an over-limit request; raised before any host call."""


class HostCallError(EditError, RuntimeError):
    """A host primitive failed or returned something unusable."""


class ClipDuplicationError(HostCallError):
    """duplicate_clip_to_position could not produce a new clip."""


def _req_id(*parts: object) -> str:
    raw = "-".join(str(p) for p in parts if p is not None)
    return raw.replace(" ", "_")

def _repo_root() -> Path:
    # base.py lives at bridge/arrangement/base.py; repo root is two levels up.
    return Path(__file__).resolve().parents[2]

def _overlaps(start_a: float, end_a: float, start_b: float, end_b: float) -> bool:
    return start_a < end_b and end_a > start_b

def _nearly_equal(a: float, b: float, epsilon: float = EPSILON) -> bool:
    return abs(float(a) - float(b)) <= epsilon

def _track_path(track: int) -> str:
    return f"live_set tracks {int(track)}"


@dataclass(frozen=True)
class EditContext:
    sig_num: int = DEFAULT_SIG_NUM
    sig_den: int = DEFAULT_SIG_DEN
    holding_area_start: float = DEFAULT_HOLDING_AREA_START
    holding_gap: float = DEFAULT_HOLDING_GAP
    max_split_points: int = DEFAULT_MAX_SPLIT_POINTS
    max_slices: int = DEFAULT_MAX_SLICES
    silence_wav_path: str | None = None

    def __post_init__(self) -> None:
        if self.sig_num <= 0 or self.sig_den <= 0:
            raise EditFormatError(
                f"time signature must be positive, got {self.sig_num}/{self.sig_den}"
            )
        if self.holding_gap < 0:
            raise EditFormatError("holding_gap must be >= 0")


class EditWarnings:
    """Warning collector passed by reference through a batch operation.

    Every warning is recorded with a stable key; :meth:`messages` collapses
    repeats so a batch reports each problem once, in first-seen order.
    """

    def __init__(self) -> None:
        self._entries: List[Tuple[str, str]] = []

    def warn(self, key: str, message: str) -> None:
        self._entries.append((str(key), str(message)))

    def keys(self) -> set[str]:
        return {key for key, _message in self._entries}

    def messages(self) -> List[str]:
        seen: set[str] = set()
        out: List[str] = []
        for key, message in self._entries:
            if key in seen:
                continue
            seen.add(key)
            out.append(message)
        return out

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)
