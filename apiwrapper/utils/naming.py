"""Entity naming: plural resource names and case conversions.

Remote routes are named after plural entities (``/categories/get``). The
pluralization first asks ``inflect``; when the result does not look like a
regular English plural of the word (e.g. ``child`` -> ``children``), a plain
suffix rule is used instead, because the remote routes are built with that
rule and must be matched exactly.
"""

import re
from functools import cache

import inflect

_engine = inflect.engine()

_CLASS_SUFFIXES = ("Proxy",)


def strip_class_suffix(name: str) -> str:
    """Remove one trailing class-name suffix such as ``Proxy``."""
    for suffix in _CLASS_SUFFIXES:
        if name.endswith(suffix) and len(name) > len(suffix):
            return name[: -len(suffix)]
    return name


def validate_pluralization(word: str) -> tuple[bool, bool]:
    """Return ``(can_be_pluralized, is_plural_correct)`` for word."""
    word = strip_class_suffix(word)
    if not word or not word.isascii() or not word.isalpha():
        return False, False
    plural = _engine.plural_noun(word)
    if not plural:
        return True, False
    is_plural_correct = plural.startswith(word[:-1]) and plural.endswith("s")
    return True, is_plural_correct


def fallback_plural(word: str) -> str:
    """Suffix rule: trailing ``y`` becomes ``ies``, otherwise ensure one trailing ``s``."""
    if word.endswith("y"):
        return word.rstrip("y") + "ies"
    return word.rstrip("s") + "s"


@cache
def pluralize(word: str) -> str:
    """Return the plural remote-resource name for a singular entity name."""
    can_be_pluralized, is_plural_correct = validate_pluralization(word)
    if not can_be_pluralized or not is_plural_correct:
        return fallback_plural(word)
    return _engine.plural_noun(strip_class_suffix(word)).rstrip()


def snake(name: str) -> str:
    """``UserProfile`` -> ``user_profile``; already snake_case names are kept."""
    name = re.sub(r"(.)([A-Z][a-z]+)", r"\1_\2", name)
    name = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", name)
    return name.replace("-", "_").lower()


def studly(name: str) -> str:
    """``user_profile`` / ``user-profile`` -> ``UserProfile``."""
    return "".join(part[:1].upper() + part[1:] for part in re.split(r"[-_\s]+", name) if part)
