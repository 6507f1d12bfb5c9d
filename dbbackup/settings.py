"""
Setting resolution.

Setting values may reference other settings with $name placeholders:

    [Global]
    backuppath = /var/backups/$database
    command = mysqldump $database > $backup_file_path

Resolving a key substitutes every placeholder with the resolved value of the
setting it names, recursively. A placeholder naming an undefined setting, or
a chain of placeholders that leads back to a setting still being expanded,
is an error.
"""

import math
import re
from typing import Dict, List, Mapping, Optional, Union


PLACEHOLDER_PATTERN = re.compile(r'\$([a-zA-Z]+[a-zA-Z0-9_\-]*)')

WILDCARD = '*'

# Decimal integers, fractions and exponents; no nan, inf or underscores
NUMBER_PATTERN = re.compile(r'^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$')


class SettingError(Exception):
    """Raised when a setting cannot be resolved."""
    pass


class UnresolvedReferenceError(SettingError):
    """Raised when a placeholder names a setting that is not defined."""

    def __init__(self, name: str, key: str):
        self.name = name
        self.key = key
        super().__init__(f"Unable to lookup value for ${name} (referenced by '{key}')")


class CyclicReferenceError(SettingError):
    """Raised when resolving a setting requires resolving itself."""

    def __init__(self, chain: List[str]):
        self.chain = chain
        super().__init__(f"Cyclic setting reference: {' -> '.join(chain)}")


class SettingResolver:
    """
    Resolves placeholders against one flat settings mapping.

    Resolved values are memoized for the duration of a single resolve()
    call only.
    """

    def __init__(self, settings: Mapping[str, str]):
        self.settings = settings

    def resolve(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self.settings.get(key)
        if value is None:
            if default is None:
                return None
            return self._expand(key, str(default), [], {})

        return self._expand(key, str(value), [key], {})

    def _expand(self, key: str, value: str, chain: List[str], memo: Dict[str, str]) -> str:
        def substitute(match):
            name = match.group(1)

            if name in memo:
                return memo[name]
            if name in chain:
                raise CyclicReferenceError(chain[chain.index(name):] + [name])

            raw = self.settings.get(name)
            if raw is None:
                raise UnresolvedReferenceError(name, key)

            chain.append(name)
            try:
                resolved = self._expand(name, str(raw), chain, memo)
            finally:
                chain.pop()

            memo[name] = resolved
            return resolved

        return PLACEHOLDER_PATTERN.sub(substitute, value)


def resolve(settings: Mapping[str, str], key: str, default: Optional[str] = None) -> Optional[str]:
    """
    Resolve a setting.

    Args:
        settings: Flat key -> raw value mapping
        key: Setting to resolve
        default: Value used when the key is not defined (placeholders in it
            are resolved too)

    Returns:
        Fully resolved value, or None if the key is undefined and no default
        was given

    Raises:
        UnresolvedReferenceError: If a placeholder names an undefined setting
        CyclicReferenceError: If the placeholders form a cycle
    """
    return SettingResolver(settings).resolve(key, default)


def parse_number(value) -> Optional[Union[int, float]]:
    """
    Parse a plain decimal number such as 7, -2, 1.5, .5 or 1e3.

    Returns None for anything else, including nan, inf, digits separated by
    underscores and values that overflow to infinity.
    """
    if value is None:
        return None
    text = str(value).strip()
    if not NUMBER_PATTERN.match(text):
        return None
    if text.lstrip('+-').isdigit():
        return int(text)
    number = float(text)
    return number if math.isfinite(number) else None


def resolve_numeric(settings: Mapping[str, str], key: str, default=None):
    """Resolve a setting as a number, falling back to default if it is not numeric."""
    number = parse_number(resolve(settings, key))
    return default if number is None else number


def resolve_wildcard_numeric(settings: Mapping[str, str], key: str, default=None):
    """Like resolve_numeric, but the wildcard '*' is passed through unparsed."""
    value = resolve(settings, key)
    if value is not None and value.strip() == WILDCARD:
        return WILDCARD
    number = parse_number(value)
    return default if number is None else number


def resolve_all(settings: Mapping[str, str]) -> Dict[str, str]:
    """Resolve every setting in the mapping."""
    resolver = SettingResolver(settings)
    return {key: resolver.resolve(key) for key in settings}
