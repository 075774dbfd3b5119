"""
Arbor acceptors: validate a raw argument string and convert it to a value.

Kinds
- Acceptor: no validation; the converter (identity by default) produces the value.
- PatternAcceptor: the input must fully match a regular expression; the whole
  match followed by every captured group is passed positionally to the converter.
- EnumAcceptor: the input must equal the string form of one of a finite set of
  values; the matching original value is produced and no converter is involved.

Factory
- acceptor(name, validator=None, converter=None) picks the kind from the validator.
- coerce(accept) turns the loose forms accepted by directives (Unset, an Acceptor,
  a plain callable such as int, a compiled pattern, a list of literals) into an
  Acceptor. Names (strings) are resolved by the definition, not here.

Errors
- AcceptanceError when the validator rejects the input or the converter fails.
- IllegalAcceptorError when a validator of an unsupported kind is declared.
"""
import re
from collections.abc import Iterable

from .faults import AcceptanceError, IllegalAcceptorError
from .utils import Unset


def _identity(value):
    return value


class Acceptor:
    """
    Identity-validating acceptor: every string is accepted and handed to the converter.
    """

    def __init__(self, name, converter=Unset, /):
        if not isinstance(name, str) or not name:
            raise IllegalAcceptorError("acceptor name must be a non-empty string")
        if converter is not Unset and not callable(converter):
            raise IllegalAcceptorError("acceptor %r converter must be callable" % name)
        self.name = name
        self.converter = _identity if converter is Unset else converter

    def __repr__(self):
        return f"{type(self).__name__}({self.name!r})"

    def match(self, input, /):
        """
        Return the validation result for input, or None when input is rejected.
        """
        return (input,)

    def convert(self, *captures):
        return self.converter(*captures)

    def validate_and_convert(self, input, /):
        if (captures := self.match(input)) is None:
            raise AcceptanceError(
                "%r is not a valid %s" % (input, self.name),
                acceptor=self,
                input=input,
            )
        try:
            return self.convert(*captures)
        except (ValueError, TypeError) as exception:
            raise AcceptanceError(
                "%r could not be converted by %s: %s" % (input, self.name, exception),
                acceptor=self,
                input=input,
            ) from exception


class PatternAcceptor(Acceptor):
    """
    Acceptor whose validator is a regular expression matched against the whole input.
    """

    def __init__(self, name, pattern, converter=Unset, /):
        super().__init__(name, converter)
        try:
            self.pattern = re.compile(pattern)
        except (TypeError, re.error) as exception:
            raise IllegalAcceptorError("acceptor %r has an illegal pattern: %s" % (name, exception)) from None

    def match(self, input, /):
        if (match := self.pattern.fullmatch(input)) is None:
            return None
        return (match[0], *match.groups())

    def convert(self, *captures):
        # The identity converter only cares about the whole match.
        if self.converter is _identity:
            return captures[0]
        return self.converter(*captures)


class EnumAcceptor(Acceptor):
    """
    Acceptor whose validator is a finite set of literal values.
    """

    def __init__(self, name, values, /):
        super().__init__(name)
        self.values = tuple(values)
        if not self.values:
            raise IllegalAcceptorError("acceptor %r must list at least one value" % name)
        self._forms = {}
        for value in self.values:
            if self._forms.setdefault(str(value), value) is not value:
                raise IllegalAcceptorError("acceptor %r lists %r more than once" % (name, str(value)))

    def match(self, input, /):
        try:
            return (self._forms[input],)
        except KeyError:
            return None

    def convert(self, *captures):
        return captures[0]


def acceptor(name, validator=None, converter=None, /):
    """
    Build an acceptor from a validator spec.

    - None: identity validation (converter optional).
    - str or compiled pattern: PatternAcceptor.
    - any other iterable: EnumAcceptor (converter must be omitted).
    """
    converter = Unset if converter is None else converter
    if validator is None:
        return Acceptor(name, converter)
    if isinstance(validator, str | re.Pattern):
        return PatternAcceptor(name, validator, converter)
    if isinstance(validator, Iterable):
        if converter is not Unset:
            raise IllegalAcceptorError("acceptor %r cannot combine a value list with a converter" % name)
        return EnumAcceptor(name, validator)
    raise IllegalAcceptorError("acceptor %r has an illegal validator: %r" % (name, validator))


def coerce(accept, /):
    """
    Normalize an inline acceptor spec into an Acceptor (names are not handled here).
    """
    if accept is Unset or accept is None:
        return DEFAULT
    if isinstance(accept, Acceptor):
        return accept
    if isinstance(accept, re.Pattern):
        return PatternAcceptor(accept.pattern, accept)
    if isinstance(accept, list | tuple | set | frozenset):
        return EnumAcceptor("one of " + ", ".join(map(str, accept)), accept)
    if callable(accept):
        return Acceptor(getattr(accept, "__name__", repr(accept)), accept)
    raise IllegalAcceptorError("illegal acceptor: %r" % (accept,))


DEFAULT = Acceptor("string")
"""The identity acceptor used when a flag or argument declares none."""


__all__ = (
    "Acceptor",
    "PatternAcceptor",
    "EnumAcceptor",
    "acceptor",
    "coerce",
    "DEFAULT",
)
