#!/usr/bin/env python3
"""
Lengthen, shorten, split, slice or move arrangement clips in Ableton Live.

Talks to the Live UDP bridge (see ableton_udp_bridge.py), or with
--simulate to an in-memory timeline seeded from a JSON fixture.

Examples:
  python3 bridge/edit_arrangement_clips.py --clip-id 12 --lengthen 4:0
  python3 bridge/edit_arrangement_clips.py --clip-id 12 --shorten 1:2 --silence-wav assets/silence.wav
  python3 bridge/edit_arrangement_clips.py --clip-id 12 --split "2|1, 3|1"
  python3 bridge/edit_arrangement_clips.py --clip-id 12 --clip-id 14 --move-to "9|1"
  python3 bridge/edit_arrangement_clips.py --simulate timeline.json --clip-id 1 --slice 1:0 --json
"""

from __future__ import annotations

import json
import sys
from typing import Iterable, Tuple

from arrangement.base import EditContext, EditError, EditFormatError, EditWarnings, HostCallError
from arrangement.config import EditConfig, parse_args
from arrangement.host import EditResult, TimelineHost
from arrangement.shortening import shorten_clips
from arrangement.sim_host import SimulatedTimelineHost
from arrangement.slicing import slice_clips
from arrangement.splitting import split_clips
from arrangement.survivors import move_clips
from arrangement.tiling import lengthen_clips
from live_host import LiveBridgeHost


OPERATIONS = {
    "lengthen": lengthen_clips,
    "shorten": shorten_clips,
    "split": split_clips,
    "slice": slice_clips,
    "move_to": move_clips,
}


def apply_operation(
    host: TimelineHost,
    cfg: EditConfig,
    context: EditContext,
    warnings: EditWarnings | None = None,
) -> EditResult:
    name, value = cfg.operation
    return OPERATIONS[name](host, list(cfg.clip_ids), value, context, warnings)


def print_result(result: EditResult, context: EditContext, json_output: bool) -> None:
    if json_output:
        print(json.dumps(result.to_payload(context.sig_num, context.sig_den), indent=2))
    else:
        print(f"info: {len(result.clips)} clip(s) after edit")
        for clip in result.clips:
            payload = clip.to_payload(context.sig_num, context.sig_den)
            kind = "midi" if clip.is_midi else "audio"
            loop = " looping" if clip.looping else ""
            print(
                f"- id {payload['id']} track={payload['track']} "
                f"position={payload['position']} length={payload['length']} ({kind}{loop})"
            )
    for message in result.warnings:
        print(f"warning: {message}", file=sys.stderr)


def _load_simulator(cfg: EditConfig) -> SimulatedTimelineHost:
    try:
        return SimulatedTimelineHost.from_fixture_file(
            cfg.simulate_path, strict_positions=cfg.strict_positions
        )
    except (OSError, ValueError, KeyError, TypeError) as exc:
        raise EditFormatError(f"could not load timeline fixture {cfg.simulate_path}: {exc}") from exc


def _run_on(host: TimelineHost, cfg: EditConfig, signature: Tuple[int | None, int | None]) -> int:
    context = cfg.context(*signature)
    result = apply_operation(host, cfg, context)
    print_result(result, context, cfg.json_output)
    return 0


def run(cfg: EditConfig) -> int:
    try:
        if cfg.simulate_path is not None:
            return _run_on(_load_simulator(cfg), cfg, (None, None))

        verbose = cfg.verbose and not cfg.json_output
        with LiveBridgeHost(
            host=cfg.host,
            port=cfg.port,
            ack_port=cfg.ack_port,
            ack_timeout_s=cfg.ack_timeout_s,
            silence_wav_path=cfg.silence_wav_path,
            verbose=verbose,
        ) as live:
            if verbose:
                print(f"Target: udp://{cfg.host}:{cfg.port}")
                print(f"Ack:    udp://{cfg.host}:{cfg.ack_port} (timeout {cfg.ack_timeout_s:.2f}s)")
            signature: Tuple[int | None, int | None] = (None, None)
            if cfg.sig_num is None or cfg.sig_den is None:
                try:
                    signature = live.song_time_signature()
                except HostCallError as exc:
                    print(f"warning: {exc}; assuming 4/4", file=sys.stderr)
            return _run_on(live, cfg, signature)
    except EditFormatError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    except EditError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


def main(argv: Iterable[str]) -> int:
    cfg = parse_args(argv)
    try:
        return run(cfg)
    except KeyboardInterrupt:
        print("Interrupted.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
