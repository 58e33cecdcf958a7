"""Masking rules for e-mail addresses and phone numbers, and the mask cache."""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Sequence

from .config import MaskType, PathLike, Settings

_DIGIT_RE = re.compile(r"[0-9]")
_INTEGER_RE = re.compile(r"[+-]?[0-9]+")


def _atoi(text: str) -> int:
    """Parse a decimal integer; anything unparsable counts as zero."""
    if _INTEGER_RE.fullmatch(text):
        return int(text)
    return 0


def _to_bytes(value: str) -> bytes:
    return value.encode("utf-8", "surrogateescape")


def _byte_len(value: str) -> int:
    return len(_to_bytes(value))


@dataclass
class Cache:
    """Already masked values, keyed by their originals."""

    emails: dict[str, str] = field(default_factory=dict)
    phones: dict[str, str] = field(default_factory=dict)

    def clear(self) -> None:
        """Forget every cached value."""
        self.emails = {}
        self.phones = {}


def _string_map(data: dict[str, Any], key: str) -> dict[str, str]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in value.items()
    ):
        raise ValueError(f"invalid cache file: {key!r} must map strings to strings")
    return dict(value)


def load_cache(path: PathLike) -> Cache:
    """Read a cache file; a file that cannot be read gives an empty cache.

    Raises ValueError when the file exists but does not hold a valid cache.
    """
    cache = Cache()
    if not path:
        return cache
    try:
        data = Path(path).read_bytes()
    except OSError:
        return cache
    try:
        parsed = json.loads(data)
    except ValueError as exc:
        raise ValueError(f"invalid cache file: {exc}") from exc
    if parsed is None:
        return cache
    if not isinstance(parsed, dict):
        raise ValueError("invalid cache file: top level must be an object")
    cache.emails = _string_map(parsed, "emails")
    cache.phones = _string_map(parsed, "phones")
    return cache


def save_cache(cache: Cache, path: PathLike) -> None:
    """Write the cache to a JSON file."""
    if not path:
        raise ValueError("no cache path given")
    text = json.dumps(
        {"emails": cache.emails, "phones": cache.phones},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    Path(path).write_text(text, encoding="utf-8", errors="surrogateescape")


def parse_target_positions(target: str, length: int) -> list[int]:
    """Turn a target rule into 0-based positions within a value of ``length``.

    Rules are ranges (``2-5``, ``2-``, ``-3``), keep rules (``2~1``: keep two
    leading and one trailing character) or lists of 1-based positions
    (``1,3,5``). A ``part:`` prefix is ignored.
    """
    parts = target.split(":")
    if len(parts) > 1:
        target = parts[1]

    if "-" in target:
        start_text, end_text = target.split("-")[:2]
        start = _atoi(start_text) if start_text else 1
        end = _atoi(end_text) if end_text else length
        return [i - 1 for i in range(start, min(end, length) + 1)]

    if "~" in target:
        keep_start_text, keep_end_text = target.split("~")[:2]
        keep_start = _atoi(keep_start_text)
        keep_end = _atoi(keep_end_text)
        return [
            i - 1
            for i in range(1, length + 1)
            if not (
                (keep_start > 0 and i <= keep_start)
                or (keep_end > 0 and i > length - keep_end)
            )
        ]

    positions = []
    for item in target.split(","):
        pos = _atoi(item)
        if 0 < pos <= length:
            positions.append(pos - 1)
    return positions


def _mask_hash(value: str, mask_value: str, mask_type: MaskType) -> str:
    if mask_value.startswith("hash:"):
        length_text = mask_value.split(":")[1]
        length = _atoi(length_text)
        digest = hashlib.md5(_to_bytes(value)).hexdigest()
        if not 0 <= length <= len(digest):
            raise ValueError(f"hash length out of range: {length_text}")
        return digest[:length]
    if mask_type is MaskType.EMAIL and value:
        return hashlib.md5(_to_bytes(value)).hexdigest()[: len(value)]
    if mask_type is MaskType.PHONE:
        digest = hashlib.sha256(_to_bytes(value)).hexdigest()
        return "".join(_DIGIT_RE.findall(digest))
    return ""


def apply_masking(
    value: str, positions: Sequence[int], mask_value: str, mask_type: MaskType
) -> str:
    """Mask the characters of ``value`` at ``positions``.

    ``mask_value`` is ``*``, ``hash`` or ``hash:N``. For e-mails, ``hash:N``
    over a continuous run of positions replaces the whole run with the first
    N hex digits of the value's MD5.
    """
    chars = list(value)
    hash_text = ""
    mask_chars = ""
    if mask_value == "*":
        mask_chars = "*" * len(positions)
    elif mask_value.startswith("hash"):
        hash_text = _mask_hash(value, mask_value, mask_type)
        mask_chars = hash_text

    if (
        is_continuous_sequence(positions)
        and mask_type is MaskType.EMAIL
        and mask_value.startswith("hash:")
    ):
        return replace_positions(value, positions, hash_text)

    for mask_char, pos in zip(mask_chars, positions):
        if 0 <= pos < len(chars):
            chars[pos] = mask_char
    return "".join(chars)


def is_continuous_sequence(positions: Sequence[int]) -> bool:
    """True if each position is one more than the one before it."""
    return all(b == a + 1 for a, b in zip(positions, positions[1:]))


def replace_positions(value: str, positions: Sequence[int], replacement: str) -> str:
    """Remove the characters at ``positions`` and insert ``replacement`` at the first."""
    if not positions:
        return value
    chars = list(value)
    kept: list[str] = []
    prev = 0
    for pos in positions:
        if pos < 0 or pos >= len(chars):
            continue
        kept.extend(chars[prev:pos])
        prev = pos + 1
    kept.extend(chars[prev:])

    insert_at = min(max(positions[0], 0), len(chars))
    return "".join(kept[:insert_at]) + replacement + "".join(kept[insert_at:])


class Masker:
    """Masks e-mails and phones by the configured rules, with optional caching."""

    def __init__(self, settings: Settings, cache: Optional[Cache] = None) -> None:
        self.settings = settings
        self.cache = cache

    def mask_email(self, email: str) -> str:
        """Return the masked form of one e-mail address."""
        if email in self.settings.email_white_list:
            return email
        if self.cache is not None and email in self.cache.emails:
            return self.cache.emails[email]

        parts = email.split("@")
        if len(parts) != 2:
            return email
        local_part, domain_part = parts

        rule = self.settings.config.masking.email
        target, value = rule.target, rule.value
        if "username:" in target:
            positions = parse_target_positions(
                target.removeprefix("username:"), _byte_len(local_part)
            )
            local_part = apply_masking(local_part, positions, value, MaskType.EMAIL)
        elif "domain:" in target:
            positions = parse_target_positions(
                target.removeprefix("domain:"), _byte_len(domain_part)
            )
            domain_part = apply_masking(domain_part, positions, value, MaskType.EMAIL)
        else:
            positions = parse_target_positions(target, _byte_len(email))
            return apply_masking(email, positions, value, MaskType.EMAIL)

        masked = f"{local_part}@{domain_part}"
        if self.cache is not None:
            self.cache.emails[email] = masked
        return masked

    def mask_phone(self, phone: str) -> str:
        """Return the masked form of one phone number, keeping its formatting."""
        if phone in self.settings.phone_white_list:
            return phone
        if self.cache is not None and phone in self.cache.phones:
            return self.cache.phones[phone]

        rule = self.settings.config.masking.phone
        digits = "".join(_DIGIT_RE.findall(phone))
        positions = parse_target_positions(rule.target, len(digits))
        masked_digits = iter(apply_masking(digits, positions, rule.value, MaskType.PHONE))

        out = []
        for char in phone:
            if "0" <= char <= "9":
                replacement = next(masked_digits, None)
                if replacement is not None:
                    out.append(replacement)
            else:
                out.append(char)
        masked = "".join(out)

        if self.cache is not None:
            self.cache.phones[phone] = masked
        return masked