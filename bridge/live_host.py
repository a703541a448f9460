#!/usr/bin/env python3
"""Arrangement clip host backed by the Live UDP bridge's ``/api/*`` surface."""

from __future__ import annotations

import json
import re
import socket
import sys
from typing import List

import ableton_udp_bridge as bridge
from arrangement.base import (
    ClipDuplicationError,
    HostCallError,
    _req_id,
    _track_path,
)
from arrangement.host import ClipHandle, _as_bool, _as_int, _scalar


_TRACK_PATH_RE = re.compile(r"live_set\s+tracks\s+(\d+)")


def _sanitize_live_path(path: str) -> str:
    """Remove quoting artifacts that can appear in LiveAPI path strings."""
    return str(path).replace('"', "").strip()


def _json_value(value: object) -> object:
    if isinstance(value, bool):
        return int(value)
    return value


class LiveBridgeHost:
    def __init__(
        self,
        host: str = bridge.DEFAULT_HOST,
        port: int = bridge.DEFAULT_PORT,
        ack_port: int = bridge.DEFAULT_ACK_PORT,
        ack_timeout_s: float = 1.75,
        silence_wav_path: str | None = None,
        verbose: bool = True,
        sock: socket.socket | None = None,
        ack_sock: socket.socket | None = None,
    ) -> None:
        self.host = host
        self.port = int(port)
        self.ack_port = int(ack_port)
        self.ack_timeout_s = float(ack_timeout_s)
        self.silence_wav_path = silence_wav_path
        self.verbose = bool(verbose)
        self._sock = sock
        self._ack_sock = ack_sock
        self._owns_sockets = sock is None and ack_sock is None
        self._seq = 0

    # -- transport -----------------------------------------------------------

    def open(self) -> "LiveBridgeHost":
        if self._sock is None:
            self._sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        if self._ack_sock is None:
            try:
                self._ack_sock = bridge.open_ack_socket(self.host, self.ack_port)
            except OSError as exc:
                raise HostCallError(
                    f"could not bind ack socket on {self.host}:{self.ack_port}: {exc}"
                ) from exc
        return self

    def close(self) -> None:
        if not self._owns_sockets:
            return
        for sock in (self._sock, self._ack_sock):
            if sock is not None:
                sock.close()
        self._sock = None
        self._ack_sock = None

    def __enter__(self) -> "LiveBridgeHost":
        return self.open()

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _next_request_id(self, *parts: object) -> str:
        self._seq += 1
        return _req_id("arr-edit", self._seq, *parts)

    def _request(self, command: bridge.OscCommand, request_id: str) -> List[bridge.OscAck]:
        if self._sock is None or self._ack_sock is None:
            self.open()
        sock, ack_sock = self._sock, self._ack_sock
        if sock is None or ack_sock is None:
            raise HostCallError(f"bridge sockets for {self.host}:{self.port} are not open")

        bridge.drain_acks(ack_sock)
        payload = bridge.encode_osc_message(command.address, command.args)
        sock.sendto(payload, (self.host, self.port))
        if self.verbose:
            print(f"sent: {bridge.describe_command(command)}")

        acks = bridge.wait_for_acks(ack_sock, self.ack_timeout_s)
        if self.verbose:
            if not acks:
                print("ack:  (none received; bridge may not be loaded yet)")
            for address, args in acks:
                for line in bridge.summarize_ack(address, args):
                    print(line)

        error = bridge.find_ack_error(acks, request_id)
        if error is not None:
            raise HostCallError(f"{command.address} failed: {error}")
        return acks

    def _expect(self, acks: List[bridge.OscAck], event: str, request_id: str, what: str) -> object | None:
        found, payload = bridge.find_ack_payload(acks, event, request_id)
        if not found:
            raise HostCallError(f"no {event} ack for {what} (req={request_id})")
        return payload

    def _call(self, path: str, method: str, args: object) -> object | None:
        request_id = self._next_request_id(method)
        cmd = bridge.api_command("call", path, method, json.dumps(args), request_id=request_id)
        return self._expect(self._request(cmd, request_id), "api_call", request_id, f"{path} {method}")

    def _get(self, path: str, prop: str) -> object | None:
        request_id = self._next_request_id("get", prop)
        cmd = bridge.api_command("get", path, prop, request_id=request_id)
        return self._expect(self._request(cmd, request_id), "api_get", request_id, f"{path} {prop}")

    def _set(self, path: str, prop: str, value: object) -> None:
        request_id = self._next_request_id("set", prop)
        cmd = bridge.api_command("set", path, prop, json.dumps(_json_value(value)), request_id=request_id)
        self._expect(self._request(cmd, request_id), "api_set", request_id, f"{path} {prop}")

    def _children(self, path: str, child: str) -> List[dict]:
        request_id = self._next_request_id("children", child)
        cmd = bridge.api_command("children", path, child, request_id=request_id)
        payload = self._expect(self._request(cmd, request_id), "api_children", request_id, f"{path} {child}")
        if not isinstance(payload, list):
            return []
        return [item for item in payload if isinstance(item, dict)]

    def _describe(self, path: str) -> dict | None:
        request_id = self._next_request_id("describe")
        cmd = bridge.api_command("describe", path, request_id=request_id)
        payload = self._expect(self._request(cmd, request_id), "api_describe", request_id, path)
        return payload if isinstance(payload, dict) else None

    # -- live set ------------------------------------------------------------

    def song_time_signature(self) -> tuple[int, int]:
        num = _as_int(self._get("live_set", "signature_numerator"))
        den = _as_int(self._get("live_set", "signature_denominator"))
        if num is None or den is None or num <= 0 or den <= 0:
            raise HostCallError(f"live_set returned an unusable time signature: {num}/{den}")
        return num, den

    # -- host protocol -------------------------------------------------------

    def clip_track(self, clip: ClipHandle) -> int | None:
        described = self._describe(ClipHandle.parse(clip).live_path)
        if not described:
            return None
        match = _TRACK_PATH_RE.search(_sanitize_live_path(str(described.get("path", ""))))
        if not match:
            return None
        return int(match.group(1))

    def _require_track(self, clip: ClipHandle) -> int:
        track = self.clip_track(clip)
        if track is None:
            raise HostCallError(f"could not resolve track for clip {clip}")
        return track

    def create_clip(self, track: int, start: float, length: float, is_midi: bool) -> ClipHandle:
        if not is_midi:
            return self._create_audio_clip(track, start, length)
        result = self._call(_track_path(track), "create_midi_clip", [float(start), float(length)])
        return ClipHandle.parse(result)

    def _empty_clip_slot(self, track: int) -> str:
        track_path = _track_path(track)
        for index, item in enumerate(self._children(track_path, "clip_slots")):
            slot_path = _sanitize_live_path(str(item.get("path") or f"{track_path} clip_slots {index}"))
            if not _as_bool(self._get(slot_path, "has_clip")):
                return slot_path
        raise HostCallError(f"no empty session clip slot on track {track} for an audio temp clip")

    def _create_audio_clip(self, track: int, start: float, length: float) -> ClipHandle:
        # Arrangement audio clips take the length of their file, so the temp
        # clip is cut to size in a session slot and then copied across.
        if not self.silence_wav_path:
            raise HostCallError("audio temp clips need a silence WAV path")
        slot_path = self._empty_clip_slot(track)
        self._call(slot_path, "create_audio_clip", [self.silence_wav_path])
        session_clip_path = f"{slot_path} clip"
        session_clip = ClipHandle.parse(self._describe(session_clip_path))
        self._set(session_clip.live_path, "looping", 1)
        self._set(session_clip.live_path, "loop_start", 0.0)
        self._set(session_clip.live_path, "loop_end", float(length))
        try:
            result = self._call(
                _track_path(track),
                "duplicate_clip_to_arrangement",
                [session_clip.live_path, float(start)],
            )
        finally:
            self._call(slot_path, "delete_clip", [])
        return ClipHandle.parse(result)

    def duplicate_clip_to_position(self, clip: ClipHandle, start: float) -> ClipHandle:
        handle = ClipHandle.parse(clip)
        track = self._require_track(handle)
        try:
            result = self._call(
                _track_path(track),
                "duplicate_clip_to_arrangement",
                [handle.live_path, float(start)],
            )
            return ClipHandle.parse(result)
        except ClipDuplicationError:
            raise
        except HostCallError as exc:
            raise ClipDuplicationError(f"duplicate of {handle} to {start:g} failed: {exc}") from exc

    def delete_clip(self, clip: ClipHandle) -> None:
        handle = ClipHandle.parse(clip)
        track = self._require_track(handle)
        self._call(_track_path(track), "delete_clip", [handle.live_path])

    def get_clip_property(self, clip: ClipHandle, name: str) -> object:
        value = _scalar(self._get(ClipHandle.parse(clip).live_path, name))
        if value is None:
            raise HostCallError(f"clip {clip} returned no {name}")
        return value

    def set_clip_property(self, clip: ClipHandle, name: str, value: object) -> None:
        self._set(ClipHandle.parse(clip).live_path, name, value)

    def enumerate_clips_on_track(self, track: int) -> List[ClipHandle]:
        handles: List[ClipHandle] = []
        for item in self._children(_track_path(track), "arrangement_clips"):
            clip_id = _as_int(item.get("id"))
            if clip_id is None or clip_id <= 0:
                raw_path = item.get("path")
                if not raw_path:
                    continue
                described = self._describe(_sanitize_live_path(str(raw_path)))
                clip_id = _as_int(described.get("id")) if described else None
            if clip_id is None or clip_id <= 0:
                print(f"warning: skipping arrangement clip without an id on track {track}", file=sys.stderr)
                continue
            handles.append(ClipHandle(clip_id))
        return handles
