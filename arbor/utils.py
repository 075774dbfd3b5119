"""
Arbor utilities (internal helpers, carefully exposed)

Scope
- Small building blocks shared by the definition, loader and help layers.

Overview
- UnsetType / Unset
  • Singleton sentinel to represent “value not provided” without conflating with None.
  • Falsey (bool(Unset) is False), printable as "Unset", and non-subclassable.

- coalesce(value, default=None)
  • Replace Unset with a concrete default, but preserve legitimate falsey values like None/0/""/[].

- @rename("name")
  • Assign stable __name__/__qualname__ to generated callables for clean tracebacks.

- mirror("attr")
  • Read-only property factory exposing a private backing field (self._attr) through
    fresh container copies, so definition state can only change through its methods.

- ordinal(number)
  • Human-friendly ordinal labels ("first", "12th") for position-first error messages.

- mglob(pattern)
  • Module globbing: expands "pkg.**.tools" style patterns into importable module names.
"""
import fnmatch
import functools
import importlib
import itertools
import pkgutil
import re
from collections.abc import Sequence, Mapping, Set
from typing import final


@final
class UnsetType:
    """
    Internal sentinel type representing a value that was not provided.

    Used where None is a legitimate user value (a flag default of None, for
    instance) and the API still needs to tell “not provided” apart.

    Characteristics
    - Boolean-false: bool(Unset) is False, but it is distinct from None and 0.
    - Printable: repr(Unset) -> "Unset".
    - Non-subclassable and a singleton per process.
    """

    def __or__(self, other, /):
        try:
            return other | type(self)
        except TypeError:
            return NotImplemented

    def __ror__(self, other, /):
        try:
            return other | type(self)
        except TypeError:
            return NotImplemented

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __bool__(self):
        return False

    def __repr__(self):
        return "Unset"

    def __init_subclass__(cls, **options):
        raise TypeError("type 'UnsetType' is not an acceptable base type")


def coalesce(object, default=None, /):
    """
    Resolve the Unset sentinel to a concrete default.

    Falsey values like None, 0, "" or [] are preserved as-is; only Unset is replaced.

    Examples
    - coalesce("name", "fallback") -> "name"
    - coalesce(Unset, "fallback")  -> "fallback"
    - coalesce(None, "fallback")   -> None
    """
    return object if object is not Unset else default


def rename(name, /):
    """
    Decorator giving the decorated callable a stable __name__/__qualname__.
    """
    if not isinstance(name, str):
        raise TypeError("rename() argument must be a string")

    def decorator(callable):
        callable.__name__ = callable.__qualname__ = name
        return callable

    return decorator


def _detach(object):
    """
    Recursively copy container values.

    Tuples stay tuples (tool names are tuples of words and are used as keys),
    other sequences become lists, mappings become dicts and sets become sets.
    Anything else is returned as-is.
    """
    if isinstance(object, tuple):
        return tuple(map(_detach, object))
    elif isinstance(object, Sequence) and not isinstance(object, str):
        return list(map(_detach, object))
    elif isinstance(object, Mapping):
        return dict(zip(object.keys(), map(_detach, object.values())))
    elif isinstance(object, Set):
        return set(map(_detach, object))
    return object


def mirror(name, /):
    """
    Define a read-only property that mirrors a private backing attribute.

    The property reads "_{name}" from the instance and hands out a detached
    copy for container values.
    """
    if not isinstance(name, str):
        raise TypeError("mirror() argument must be a string")

    @rename(name)
    def getter(self):
        return _detach(getattr(self, "_" + name))

    return property(getter)


@functools.cache
def ordinal(number, /):
    """
    Return a human-friendly ordinal label for a 1-based position.

    - 1..10 are rendered as words ("first"…"tenth").
    - Other numbers use numeric ordinals with correct English suffixes.
    """
    try:
        return {
            1: "first",
            2: "second",
            3: "third",
            4: "fourth",
            5: "fifth",
            6: "sixth",
            7: "seventh",
            8: "eighth",
            9: "ninth",
            10: "tenth",
        }[number]
    except KeyError:
        pass

    # 11th, 12th, 13th (and 111th, 112th, 113th, …)
    if 10 < number % 100 < 20:
        return f"{number}th"

    return f'{number}%s' % {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")




def _match_words(pattern, words):
    if not pattern:
        return not words
    head, *rest = pattern
    if head == "**":
        return any(_match_words(rest, words[index:]) for index in range(len(words) + 1))
    return bool(words) and fnmatch.fnmatchcase(words[0], head) and _match_words(rest, words[1:])


def mglob(source, /):
    """
    Expand a dot-separated module glob into fully-qualified module names.

    Patterns
    - segments are separated by '.'; inside a segment: *, ?, [...] / [!...]
    - the segment '**' stands for zero or more whole segments

    Rules
    - the pattern must start with at least one concrete package segment
    - matches are case-sensitive and returned in sorted order
    - without wildcards, [source] is returned as-is

    Examples
    - "project.tools.*"   → direct children of project.tools
    - "project.**.tools"  → every tools module below project
    """
    if not isinstance(source, str):
        raise TypeError("mglob() argument must be a string")
    elif not (source := source.strip()):
        raise ValueError("mglob() argument must be a non-empty string")

    if re.fullmatch(r"(?!\d)\w+(\.(?!\d)\w+)*", source):
        return [source]

    pattern = source.split(".")
    prefixes = list(itertools.takewhile(lambda segment: re.fullmatch(r"(?!\d)\w+", segment), pattern))
    if not prefixes:
        raise ValueError("mglob() pattern must start with a concrete package segment")

    try:
        package = importlib.import_module(prefix := ".".join(prefixes))
    except ImportError:
        return []

    names = [prefix]
    if hasattr(package, "__path__"):
        names.extend(metadata.name for metadata in pkgutil.walk_packages(package.__path__, prefix + "."))
    return sorted(name for name in set(names) if _match_words(pattern, name.split(".")))


Unset = UnsetType()
"""
Internal sentinel for “not provided”.

Typical pattern: value = coalesce(user_value, default) to materialize a fallback
only when user_value is Unset (None and other falsey values are preserved).
"""


__all__ = (
    # Functions
    "coalesce",
    "rename",
    "mirror",
    "ordinal",
    "mglob",

    # Types
    "UnsetType",

    # Constants
    "Unset",
)
