"""Configuration loading, defaults and run options for dump masking."""

from __future__ import annotations

import enum
import json
import os
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Pattern, Union

DEFAULT_CACHE_FILE_NAME = ".maskdump_cache.json"
DEFAULT_CONFIG_FILE_NAME = "maskdump.conf"
DEFAULT_EMAIL_REGEX = r"\b[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,6}\b"
DEFAULT_PHONE_REGEX = (
    r"\b(?:\+7|7|8)(?:[\s-]?\(?\d{3}\)?[\s-]?\d{3}[\s-]?\d{2}[\s-]?\d{2}|\d{10})\b"
)
DEFAULT_MEMORY_LIMIT_MB = 1024 * 4
DEFAULT_CACHE_FLUSH_COUNT = 10000

EMAIL_ALGORITHM = "light-hash"
PHONE_ALGORITHM = "light-mask"

INSERT_RE = re.compile(r"INSERT INTO `(.+?)` VALUES (.+)")
TUPLE_RE = re.compile(
    r"""\((?:[^()'"\\]|'(?:\\.|[^'\\])*'|"(?:\\.|[^"\\])*"|\\.|\([^()]*\))*\)"""
)

PathLike = Union[str, "os.PathLike[str]", None]


class ConfigError(ValueError):
    """Raised when configuration or options are invalid or cannot be loaded."""


class MaskType(enum.Enum):
    """Kind of value being masked."""

    EMAIL = 1
    PHONE = 2

    def __str__(self) -> str:
        return self.name.capitalize()

    @property
    def index(self) -> int:
        return self.value


@dataclass
class MaskingRule:
    target: str
    value: str


def _default_masking_email() -> MaskingRule:
    return MaskingRule(target="username:2-", value="hash:6")


def _default_masking_phone() -> MaskingRule:
    return MaskingRule(target="2,3,5,6,8,10", value="hash")


@dataclass
class MaskingConfig:
    email: MaskingRule = field(default_factory=_default_masking_email)
    phone: MaskingRule = field(default_factory=_default_masking_phone)


@dataclass
class TableConfig:
    """Column names of one table that hold e-mails and phones."""

    email: list[str] = field(default_factory=list)
    phone: list[str] = field(default_factory=list)


def _default_cache_path() -> str:
    return os.path.join(os.environ.get("HOME", ""), DEFAULT_CACHE_FILE_NAME)


@dataclass
class Config:
    """Raw configuration values, as read from the config file over the defaults."""

    cache_path: str = field(default_factory=_default_cache_path)
    email_regex: str = DEFAULT_EMAIL_REGEX
    phone_regex: str = DEFAULT_PHONE_REGEX
    email_white_list: str = ""
    phone_white_list: str = ""
    memory_limit_mb: int = DEFAULT_MEMORY_LIMIT_MB
    cache_flush_count: int = DEFAULT_CACHE_FLUSH_COUNT
    skip_insert_into_table_list: str = ""
    masking: MaskingConfig = field(default_factory=MaskingConfig)
    processing_tables: dict[str, TableConfig] = field(default_factory=dict)


@dataclass
class Settings:
    """A loaded configuration with its regexes compiled and lists read."""

    config: Config
    email_regex: Pattern[str]
    phone_regex: Pattern[str]
    email_white_list: set[str] = field(default_factory=set)
    phone_white_list: set[str] = field(default_factory=set)
    skip_tables: set[str] = field(default_factory=set)

    @property
    def processing_tables(self) -> dict[str, TableConfig]:
        return self.config.processing_tables

    @property
    def has_processing_tables(self) -> bool:
        return bool(self.config.processing_tables)


@dataclass
class MaskOptions:
    """Options chosen on the command line."""

    email_algorithm: str = ""
    phone_algorithm: str = ""
    cache_enabled: bool = True
    config_file: str = ""


def _read_line_set(path: PathLike) -> set[str]:
    if not path:
        return set()
    with open(path, encoding="utf-8") as handle:
        return {stripped for stripped in (line.strip() for line in handle) if stripped}


def load_white_list(path: PathLike) -> set[str]:
    """Read non-empty, stripped lines of a file; an empty path gives an empty set."""
    return _read_line_set(path)


def load_skip_list(path: PathLike) -> set[str]:
    """Read table names to skip, one per line; an empty path gives an empty set."""
    return _read_line_set(path)


def _get_str(obj: dict[str, Any], key: str) -> str:
    value = obj.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ConfigError(f"invalid config file: {key!r} must be a string")
    return value


def _get_int(obj: dict[str, Any], key: str) -> int:
    value = obj.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"invalid config file: {key!r} must be an integer")
    return value


def _get_obj(obj: dict[str, Any], key: str) -> dict[str, Any]:
    value = obj.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"invalid config file: {key!r} must be an object")
    return value


def _get_str_list(obj: dict[str, Any], key: str) -> list[str]:
    value = obj.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"invalid config file: {key!r} must be a list of strings")
    return list(value)


def _merge_file(config: Config, data: Any) -> None:
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("invalid config file: top level must be an object")

    for attr in (
        "cache_path",
        "email_regex",
        "phone_regex",
        "email_white_list",
        "phone_white_list",
        "skip_insert_into_table_list",
    ):
        value = _get_str(data, attr)
        if value:
            setattr(config, attr, value)
    for attr in ("memory_limit_mb", "cache_flush_count"):
        value = _get_int(data, attr)
        if value:
            setattr(config, attr, value)

    masking = _get_obj(data, "masking")
    for kind in ("email", "phone"):
        rule_data = _get_obj(masking, kind)
        rule: MaskingRule = getattr(config.masking, kind)
        target = _get_str(rule_data, "target")
        value = _get_str(rule_data, "value")
        if target:
            rule.target = target
        if value:
            rule.value = value

    tables = {}
    for name, table_data in _get_obj(data, "processing_tables").items():
        if table_data is None:
            table_data = {}
        if not isinstance(table_data, dict):
            raise ConfigError(f"invalid config file: table {name!r} must be an object")
        tables[name] = TableConfig(
            email=_get_str_list(table_data, "email"),
            phone=_get_str_list(table_data, "phone"),
        )
    config.processing_tables = tables


def _compile(pattern: str, kind: str) -> Pattern[str]:
    try:
        return re.compile(pattern, re.ASCII)
    except re.error as exc:
        raise ConfigError(f"invalid {kind} regex: {exc}") from exc


def _build_settings(config: Config) -> Settings:
    try:
        email_white = load_white_list(config.email_white_list)
    except OSError as exc:
        raise ConfigError(f"failed to load email white list: {exc}") from exc
    try:
        phone_white = load_white_list(config.phone_white_list)
    except OSError as exc:
        raise ConfigError(f"failed to load phone white list: {exc}") from exc
    email_regex = _compile(config.email_regex, "email")
    phone_regex = _compile(config.phone_regex, "phone")
    try:
        skip = load_skip_list(config.skip_insert_into_table_list)
    except OSError as exc:
        raise ConfigError(f"failed to load skip table list: {exc}") from exc
    return Settings(
        config=config,
        email_regex=email_regex,
        phone_regex=phone_regex,
        email_white_list=email_white,
        phone_white_list=phone_white,
        skip_tables=skip,
    )


def _default_config_path() -> Optional[Path]:
    program = sys.argv[0] if sys.argv else ""
    if not program:
        return None
    return Path(program).resolve().parent / DEFAULT_CONFIG_FILE_NAME


def load_config(config_path: PathLike = None) -> Settings:
    """Load settings from a JSON config file over the defaults.

    Without a path, the file named ``maskdump.conf`` next to the running
    program is tried. A file that cannot be read leaves the defaults in place.
    """
    config = Config()
    path = Path(config_path) if config_path else _default_config_path()

    data: Optional[bytes] = None
    if path is not None:
        try:
            data = path.read_bytes()
        except OSError:
            data = None

    if data is not None:
        try:
            parsed = json.loads(data)
        except (ValueError, UnicodeDecodeError) as exc:
            raise ConfigError(f"invalid config file: {exc}") from exc
        _merge_file(config, parsed)

    return _build_settings(config)


def validate_algorithms(options: MaskOptions) -> None:
    """Raise ConfigError if an unsupported masking algorithm was chosen."""
    if options.email_algorithm and options.email_algorithm != EMAIL_ALGORITHM:
        raise ConfigError(f"unsupported email algorithm: {options.email_algorithm}")
    if options.phone_algorithm and options.phone_algorithm != PHONE_ALGORITHM:
        raise ConfigError(f"unsupported phone algorithm: {options.phone_algorithm}")