"""
Config File Formats.

This module maps config file extensions to the codec used for them.

Key features:
- JSON files are written tab-indented and read with json5, so comments and
  trailing commas are accepted
- TOML files are read with tomllib and written with tomlkit
- YAML files are read and written with PyYAML's safe loader/dumper
"""

import json
import tomllib
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import PurePath
from typing import Any

import json5
import tomlkit
import yaml

from saddle.plugin.errors import ConfigFormatError


@dataclass(frozen=True)
class Format:
    """
    A config file format.

    Attributes:
        name: Display name of the format
        extensions: Lower-case file extensions (with leading dot) of the format
        encode: Turns a plain document (dicts, lists, scalars) into file text
        decode: Turns file text back into a plain document
    """

    name: str
    extensions: tuple[str, ...]
    encode: Callable[[Any], str]
    decode: Callable[[str], Any]

    def __str__(self) -> str:
        return self.name


def _encode_json(document: Any) -> str:
    return json.dumps(document, indent="\t", ensure_ascii=False) + "\n"


def _strip_none(value: Any) -> Any:
    # TOML has no null value, so unset entries are left out of the file.
    if isinstance(value, Mapping):
        return {k: _strip_none(v) for k, v in value.items() if v is not None}
    if isinstance(value, list | tuple):
        return [_strip_none(v) for v in value if v is not None]
    return value


def _encode_toml(document: Any) -> str:
    if not isinstance(document, Mapping):
        raise TypeError(
            f"TOML documents must be tables, got {type(document).__name__}"
        )
    return tomlkit.dumps(_strip_none(document))


def _encode_yaml(document: Any) -> str:
    return yaml.safe_dump(document, sort_keys=False, allow_unicode=True)


def _decode_yaml(text: str) -> Any:
    document = yaml.safe_load(text)
    # An empty YAML file holds no document at all.
    return {} if document is None else document


JSON = Format("JSON", (".json",), _encode_json, json5.loads)
TOML = Format("TOML", (".toml",), _encode_toml, tomllib.loads)
YAML = Format("YAML", (".yml", ".yaml"), _encode_yaml, _decode_yaml)

FORMATS: tuple[Format, ...] = (JSON, TOML, YAML)

_by_extension: dict[str, Format] = {
    extension: fmt for fmt in FORMATS for extension in fmt.extensions
}


def for_path(path: str | PurePath) -> Format:
    """
    Find the format of a config file from its extension.

    Args:
        path: Path of the config file, extension matched case-insensitively

    Returns:
        The matching Format

    Raises:
        ConfigFormatError: If the extension is not a known config extension
    """
    extension = PurePath(path).suffix
    try:
        return _by_extension[extension.lower()]
    except KeyError:
        raise ConfigFormatError(
            f"unknown config file extension '{extension}'"
        ) from None
