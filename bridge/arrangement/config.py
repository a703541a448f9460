"""Edit arrangement clips through the Live UDP bridge."""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Tuple

import ableton_udp_bridge as bridge
from arrangement.base import (
    DEFAULT_HOLDING_AREA_START,
    DEFAULT_HOLDING_GAP,
    DEFAULT_MAX_SLICES,
    DEFAULT_MAX_SPLIT_POINTS,
    DEFAULT_SIG_DEN,
    DEFAULT_SIG_NUM,
    EditContext,
    _repo_root,
)

DEFAULT_ACK_TIMEOUT_S = 1.75


def _resolve_repo_path(raw_path: str | None) -> str | None:
    if raw_path in (None, ""):
        return None
    path = Path(str(raw_path)).expanduser()
    if path.is_absolute():
        return str(path)
    return str(_repo_root() / path)


@dataclass(frozen=True)
class EditConfig:
    host: str
    port: int
    ack_port: int
    ack_timeout_s: float
    clip_ids: Tuple[int, ...]
    lengthen: str | None
    shorten: str | None
    split: str | None
    slice_duration: str | None
    move_to: str | None
    sig_num: int | None
    sig_den: int | None
    holding_area_start: float
    holding_gap: float
    max_split_points: int
    max_slices: int
    silence_wav_path: str | None
    simulate_path: str | None
    strict_positions: bool
    json_output: bool
    verbose: bool

    @property
    def operation(self) -> Tuple[str, str]:
        for name, value in (
            ("lengthen", self.lengthen),
            ("shorten", self.shorten),
            ("split", self.split),
            ("slice", self.slice_duration),
            ("move_to", self.move_to),
        ):
            if value is not None:
                return name, value
        raise ValueError("no operation configured")

    def context(self, sig_num: int | None = None, sig_den: int | None = None) -> EditContext:
        """Engine settings; an explicit --sig-num/--sig-den wins over the song's signature."""
        num = self.sig_num if self.sig_num is not None else sig_num
        den = self.sig_den if self.sig_den is not None else sig_den
        return EditContext(
            sig_num=int(num if num is not None else DEFAULT_SIG_NUM),
            sig_den=int(den if den is not None else DEFAULT_SIG_DEN),
            holding_area_start=self.holding_area_start,
            holding_gap=self.holding_gap,
            max_split_points=self.max_split_points,
            max_slices=self.max_slices,
            silence_wav_path=self.silence_wav_path,
        )


def parse_args(argv: Iterable[str]) -> EditConfig:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--host", default=bridge.DEFAULT_HOST, help="UDP host")
    parser.add_argument("--port", type=int, default=bridge.DEFAULT_PORT, help="UDP port")
    parser.add_argument(
        "--ack-port",
        type=int,
        default=bridge.DEFAULT_ACK_PORT,
        help=f"UDP port to listen on for acks (default: {bridge.DEFAULT_ACK_PORT})",
    )
    parser.add_argument(
        "--ack-timeout",
        type=float,
        default=DEFAULT_ACK_TIMEOUT_S,
        help=f"Ack wait timeout in seconds (default: {DEFAULT_ACK_TIMEOUT_S})",
    )
    parser.add_argument(
        "--clip-id",
        dest="clip_ids",
        action="append",
        type=bridge.positive_int,
        default=[],
        help="Arrangement clip id to edit (repeatable; processed in the given order)",
    )

    ops = parser.add_mutually_exclusive_group()
    ops.add_argument(
        "--lengthen",
        default=None,
        help='Target arrangement length as bar:beat, for example "4:0" or "2:1.5"',
    )
    ops.add_argument(
        "--shorten",
        default=None,
        help='Cut clips down to this arrangement length as bar:beat, for example "1:2"',
    )
    ops.add_argument(
        "--split",
        default=None,
        help='Comma-separated clip-local bar|beat positions, for example "2|1, 3|1"',
    )
    ops.add_argument(
        "--slice",
        dest="slice_duration",
        default=None,
        help='Slice length as bar:beat, for example "1:0" or "0:2"',
    )
    ops.add_argument(
        "--move-to",
        default=None,
        help='Absolute bar|beat position every clip moves to, for example "9|1"',
    )

    parser.add_argument("--sig-num", type=int, default=None, help="Time signature numerator (default: read from live_set)")
    parser.add_argument("--sig-den", type=int, default=None, help="Time signature denominator (default: read from live_set)")
    parser.add_argument(
        "--holding-area-start",
        type=float,
        default=DEFAULT_HOLDING_AREA_START,
        help=f"Beat where scratch clips are staged (default: {DEFAULT_HOLDING_AREA_START:g})",
    )
    parser.add_argument(
        "--holding-gap",
        type=float,
        default=DEFAULT_HOLDING_GAP,
        help=f"Beats between holding slots (default: {DEFAULT_HOLDING_GAP:g})",
    )
    parser.add_argument(
        "--max-split-points",
        type=int,
        default=DEFAULT_MAX_SPLIT_POINTS,
        help=f"Most split positions accepted per request (default: {DEFAULT_MAX_SPLIT_POINTS})",
    )
    parser.add_argument(
        "--max-slices",
        type=int,
        default=DEFAULT_MAX_SLICES,
        help=f"Most slices created per request (default: {DEFAULT_MAX_SLICES})",
    )
    parser.add_argument(
        "--silence-wav",
        default=None,
        help="Silent WAV used for temporary audio clips; relative paths resolve from the repo root",
    )
    parser.add_argument(
        "--simulate",
        dest="simulate_path",
        default=None,
        help="Run against an in-memory timeline loaded from this JSON fixture instead of Live",
    )
    parser.add_argument(
        "--strict-positions",
        action="store_true",
        help="With --simulate, fail duplicates that land on an existing clip start",
    )
    parser.add_argument("--json", dest="json_output", action="store_true", help="Print the result as JSON")
    parser.add_argument("--quiet", action="store_true", help="Do not print sent/ack traffic")

    ns = parser.parse_args(list(argv))

    if not ns.clip_ids:
        parser.error("at least one --clip-id is required")
    if all(value is None for value in (ns.lengthen, ns.shorten, ns.split, ns.slice_duration, ns.move_to)):
        parser.error("one of --lengthen, --shorten, --split, --slice or --move-to is required")
    if ns.sig_num is not None and ns.sig_num <= 0:
        parser.error("--sig-num must be > 0")
    if ns.sig_den is not None and ns.sig_den <= 0:
        parser.error("--sig-den must be > 0")
    if ns.ack_timeout <= 0:
        parser.error("--ack-timeout must be > 0")
    if ns.holding_area_start <= 0:
        parser.error("--holding-area-start must be > 0")
    if ns.holding_gap < 0:
        parser.error("--holding-gap must be >= 0")
    if ns.max_split_points <= 0:
        parser.error("--max-split-points must be > 0")
    if ns.max_slices <= 0:
        parser.error("--max-slices must be > 0")
    if ns.strict_positions and ns.simulate_path is None:
        parser.error("--strict-positions only applies with --simulate")

    return EditConfig(
        host=str(ns.host),
        port=int(ns.port),
        ack_port=int(ns.ack_port),
        ack_timeout_s=float(ns.ack_timeout),
        clip_ids=tuple(int(clip_id) for clip_id in ns.clip_ids),
        lengthen=ns.lengthen,
        shorten=ns.shorten,
        split=ns.split,
        slice_duration=ns.slice_duration,
        move_to=ns.move_to,
        sig_num=None if ns.sig_num is None else int(ns.sig_num),
        sig_den=None if ns.sig_den is None else int(ns.sig_den),
        holding_area_start=float(ns.holding_area_start),
        holding_gap=float(ns.holding_gap),
        max_split_points=int(ns.max_split_points),
        max_slices=int(ns.max_slices),
        silence_wav_path=_resolve_repo_path(ns.silence_wav),
        simulate_path=None if ns.simulate_path in (None, "") else str(ns.simulate_path),
        strict_positions=bool(ns.strict_positions),
        json_output=bool(ns.json_output),
        verbose=not bool(ns.quiet),
    )
