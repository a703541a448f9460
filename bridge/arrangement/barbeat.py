"""Bar|beat positions and bar:beat durations <-> Live beats (quarter notes).

A musical beat is one denominator unit of the time signature, so a 6/8 bar
holds six eighth-note beats (three Live beats). Positions are 1-indexed
(``1|1`` is beat 0); durations are 0-indexed (``0:0`` is nothing).

Beat values accept integers, decimals, ``n/d`` and ``whole+n/d`` so tuplet
grids survive a round trip. Arithmetic is done in exact fractions; only the
public ``*_to_beats`` helpers hand floats back to the host layer.
"""

from __future__ import annotations

import re
from fractions import Fraction
from typing import Iterable, List

from arrangement.base import EditFormatError


_BEAT_VALUE = r"-?\d+(?:\+\d+/\d+|\.\d+|/\d+)?"

_POSITION_RE = re.compile(rf"^(-?\d+)[|:]({_BEAT_VALUE})$")

_DURATION_RE = re.compile(rf"^(-?\d+):({_BEAT_VALUE})$")

_BEATS_ONLY_RE = re.compile(rf"^({_BEAT_VALUE})$")

# Host floats are snapped back to rationals no finer than this.
_RATIONAL_LIMIT = 1_000_000

# Remainders with a denominator up to this print as whole+n/d.
MAX_FORMAT_DENOMINATOR = 64


def _check_signature(sig_num: int, sig_den: int) -> None:
    if int(sig_num) <= 0:
        raise EditFormatError(f"time signature numerator must be > 0, got: {sig_num}")
    if int(sig_den) <= 0:
        raise EditFormatError(f"time signature denominator must be > 0, got: {sig_den}")


def _to_fraction(value: float | int | Fraction) -> Fraction:
    if isinstance(value, Fraction):
        return value
    if isinstance(value, int):
        return Fraction(value)
    return Fraction(float(value)).limit_denominator(_RATIONAL_LIMIT)


def _parse_beat_value(text: str, context: str, kind: str) -> Fraction:
    try:
        if "+" in text:
            whole_text, frac_text = text.split("+", 1)
            frac_num, frac_den = frac_text.split("/", 1)
            if int(frac_den) == 0:
                raise EditFormatError(f'Invalid {kind} format: division by zero in "{context}"')
            return int(whole_text) + Fraction(int(frac_num), int(frac_den))
        if "/" in text:
            num_text, den_text = text.split("/", 1)
            if int(den_text) == 0:
                raise EditFormatError(f'Invalid {kind} format: division by zero in "{context}"')
            return Fraction(int(num_text), int(den_text))
        return Fraction(text)
    except (TypeError, ValueError, ZeroDivisionError) as exc:
        if isinstance(exc, EditFormatError):
            raise
        raise EditFormatError(f'Invalid {kind} format: "{context}"') from exc


def _format_beat_value(value: Fraction) -> str:
    if value.denominator == 1:
        return str(value.numerator)
    if (value * 1000).denominator == 1 or value.denominator > MAX_FORMAT_DENOMINATOR:
        text = f"{float(value):.3f}".rstrip("0").rstrip(".")
        return text or "0"
    whole = value.numerator // value.denominator
    frac = value - whole
    if whole == 0:
        return f"{frac.numerator}/{frac.denominator}"
    return f"{whole}+{frac.numerator}/{frac.denominator}"


def beats_per_bar(sig_num: int, sig_den: int) -> float:
    """Live beats (quarter notes) in one bar."""
    _check_signature(sig_num, sig_den)
    return float(Fraction(int(sig_num) * 4, int(sig_den)))


def position_to_fraction(text: str, sig_num: int, sig_den: int) -> Fraction:
    _check_signature(sig_num, sig_den)
    raw = str(text).strip()
    match = _POSITION_RE.match(raw)
    if not match:
        raise EditFormatError(
            f'Invalid bar|beat format: "{text}". Expected "{{int}}|{{float}}" like "1|2" or '
            '"2|3.5" or "{int}|{int}/{int}" like "1|4/3" or "{int}|{int}+{int}/{int}" like "1|2+1/3"'
        )
    bar = int(match.group(1))
    beat = _parse_beat_value(match.group(2), raw, "bar|beat")
    if bar < 1:
        raise EditFormatError(f"Bar number must be 1 or greater, got: {bar}")
    if beat < 1:
        raise EditFormatError(f"Beat must be 1 or greater, got: {_format_beat_value(beat)}")
    musical_beats = (bar - 1) * int(sig_num) + (beat - 1)
    return musical_beats * Fraction(4, int(sig_den))


def position_to_beats(text: str, sig_num: int, sig_den: int) -> float:
    return float(position_to_fraction(text, sig_num, sig_den))


def beats_to_position(beats: float | Fraction, sig_num: int, sig_den: int) -> str:
    _check_signature(sig_num, sig_den)
    value = _to_fraction(beats)
    if value < 0:
        raise EditFormatError(f"Position cannot be negative, got: {float(value):g}")
    musical_beats = value * Fraction(int(sig_den), 4)
    bar_index, remainder = divmod(musical_beats, int(sig_num))
    return f"{int(bar_index) + 1}|{_format_beat_value(remainder + 1)}"


def duration_to_fraction(text: str, sig_num: int, sig_den: int) -> Fraction:
    _check_signature(sig_num, sig_den)
    raw = str(text).strip()
    if "|" in raw:
        raise EditFormatError(
            f'Invalid duration format: "{text}". Use ":" for bar:beat format, not "|"'
        )

    match = _DURATION_RE.match(raw)
    if match:
        bars = int(match.group(1))
        beats = _parse_beat_value(match.group(2), raw, "duration")
        if bars < 0:
            raise EditFormatError(f"Bars in duration must be 0 or greater, got: {bars}")
        musical_beats = bars * int(sig_num) + beats
    else:
        beats_match = _BEATS_ONLY_RE.match(raw)
        if not beats_match:
            raise EditFormatError(
                f'Invalid bar:beat duration format: "{text}". Expected "{{int}}:{{float}}" like '
                '"1:2" or "2:1.5" or "{int}:{int}/{int}" like "0:4/3" or a beat count like "2.5"'
            )
        beats = _parse_beat_value(beats_match.group(1), raw, "duration")
        musical_beats = beats
    if beats < 0:
        raise EditFormatError(f"Beats in duration must be 0 or greater, got: {_format_beat_value(beats)}")
    return musical_beats * Fraction(4, int(sig_den))


def duration_to_beats(text: str, sig_num: int, sig_den: int) -> float:
    return float(duration_to_fraction(text, sig_num, sig_den))


def beats_to_duration(beats: float | Fraction, sig_num: int, sig_den: int) -> str:
    _check_signature(sig_num, sig_den)
    value = _to_fraction(beats)
    if value < 0:
        raise EditFormatError(f"Duration cannot be negative, got: {float(value):g}")
    musical_beats = value * Fraction(int(sig_den), 4)
    bars, remainder = divmod(musical_beats, int(sig_num))
    return f"{int(bars)}:{_format_beat_value(remainder)}"


def parse_position_list(
    positions: str | Iterable[str],
    sig_num: int,
    sig_den: int,
) -> List[float]:
    """Decode clip-local positions, sorted and deduplicated."""
    if isinstance(positions, str):
        parts = [part.strip() for part in positions.split(",")]
    else:
        parts = [str(part).strip() for part in positions]
    decoded = {position_to_fraction(part, sig_num, sig_den) for part in parts if part}
    return [float(value) for value in sorted(decoded)]


def coerce_duration(value: str | float | int, sig_num: int, sig_den: int) -> float:
    """Accept a bar:beat duration string or a beat count already in Live beats."""
    if isinstance(value, str):
        return duration_to_beats(value, sig_num, sig_den)
    beats = float(value)
    if beats < 0:
        raise EditFormatError(f"Duration cannot be negative, got: {beats:g}")
    return beats


def coerce_position(value: str | float | int, sig_num: int, sig_den: int) -> float:
    """Accept a bar|beat position string or an absolute position in Live beats."""
    if isinstance(value, str):
        return position_to_beats(value, sig_num, sig_den)
    beats = float(value)
    if beats < 0:
        raise EditFormatError(f"Position cannot be negative, got: {beats:g}")
    return beats
