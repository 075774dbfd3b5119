"""
Arbor matcher: parse an argument vector against a tool definition.

Rules (GNU style)
- Flags may appear anywhere among positionals; "--" ends flag processing and a
  lone "-" is a positional.
- Short switches cluster ("-abc"); a value switch inside a cluster takes the rest
  of the cluster, or the next token when the cluster ends with it.
- Long switches take "--name=value" or "--name value" and may be abbreviated to
  any unique prefix.
- Optional-value switches only take attached values ("-lVALUE", "--level=VALUE");
  alone they produce True.
- Every value goes through the flag's or argument's acceptor, then the flag's
  handler combines it with the previous value.
- Positionals fill required slots first, then optional slots, then the
  remaining slot; anything left over is an error (or leftover, when not strict).

ArgParser records every violation and keeps going, so that a later --help is
still seen; match() is the raising front end.
"""
import difflib
import logging

from .faults import (
    AcceptanceError,
    AmbiguousFlagError,
    ExcessArgumentsError,
    FlagAssignmentError,
    FlagValueRequiredError,
    MissingArgumentError,
    UnknownFlagError,
)
from .utils import ordinal

logger = logging.getLogger(__name__)


class ArgParser:
    """
    Stateful parser for one definition.

    After parse(argv)
    - data: flag and argument values (defaults for everything not given).
    - leftover: excess positionals (only populated when there is no remaining slot).
    - errors: every argument error, in the order found; error is the first one or None.
    """

    def __init__(self, definition, /, *, strict=True):
        self._definition = definition
        self._strict = strict
        self._switches = definition.used_switches
        self._data = definition.default_data
        self._positionals = []
        self._leftover = []
        self._errors = []

    def __repr__(self):
        return f"ArgParser({self._definition.display_name!r}, errors={len(self._errors)})"

    @property
    def data(self):
        return dict(self._data)

    @property
    def leftover(self):
        return list(self._leftover)

    @property
    def errors(self):
        return list(self._errors)

    @property
    def error(self):
        return self._errors[0] if self._errors else None

    def trigger(self, fault, /):
        logger.debug("argument error: %s", fault.message)
        self._errors.append(fault)

    def parse(self, argv, /):
        argv = list(argv)
        if self._definition.argument_parsing_disabled:
            self._data = {"args": argv}
            return self

        index = 0
        while index < len(argv):
            token = argv[index]
            index += 1
            if token == "--":
                self._positionals.extend((position, token) for position, token in enumerate(argv[index:], index + 1))
                break
            if token.startswith("--"):
                index = self._long(token, argv, index)
            elif token.startswith("-") and token != "-":
                index = self._short(token, argv, index)
            else:
                self._positionals.append((index, token))

        self._assign()
        return self

    # ── Flags ───────────────────────────────────────────────────────────────

    def _unknown(self, switch, position):
        suggestions = difflib.get_close_matches(switch, self._switches.keys(), 3)
        try:
            hint = "did you mean %r?" % suggestions[0]
        except IndexError:
            hint = "run with --help to see the available flags"
        self.trigger(UnknownFlagError(
            "unknown flag %r at %s position" % (switch, ordinal(position)),
            flag=switch,
            index=position,
            suggestions=suggestions,
            hint=hint,
        ))

    def _find_long(self, name, position):
        if name in self._switches:
            return name
        # a bare "--" (from "--=VALUE") abbreviates nothing
        candidates = sorted(
            switch for switch in self._switches if len(name) > 2 and switch.startswith("--") and switch.startswith(name)
        )
        if len(candidates) == 1:
            return candidates[0]
        if candidates:
            self.trigger(AmbiguousFlagError(
                "flag %r at %s position is ambiguous" % (name, ordinal(position)),
                flag=name,
                index=position,
                candidates=candidates,
                hint="it could be any of %s" % ", ".join(candidates),
            ))
        else:
            self._unknown(name, position)
        return None

    def _long(self, token, argv, index):
        position = index
        name, delimiter, value = token.partition("=")
        if (switch := self._find_long(name, position)) is None:
            return index

        flag = self._switches[switch]
        syntax = flag.syntax_for(switch)
        if flag.boolean:
            if delimiter:
                self.trigger(FlagAssignmentError(
                    "flag %r at %s position cannot have a value" % (switch, ordinal(position)),
                    flag=flag.key,
                    index=position,
                    hint="remove everything from '=' (for example: %s)" % switch,
                ))
                return index
            self._apply(flag, switch, not (syntax.negatable and switch == syntax.switches[1]), position)
            return index

        if delimiter:
            self._apply(flag, switch, value, position)
        elif syntax.value_type == "optional":
            self._apply(flag, switch, True, position)
        elif index < len(argv):
            self._apply(flag, switch, argv[index], position)
            index += 1
        else:
            self._missing_value(switch, position)
        return index

    def _short(self, token, argv, index):
        position = index
        offset = 1
        while offset < len(token):
            switch = "-" + token[offset]
            offset += 1
            if (flag := self._switches.get(switch)) is None:
                self._unknown(switch, position)
                return index
            if flag.boolean:
                self._apply(flag, switch, True, position)
                continue

            if rest := token[offset:]:
                self._apply(flag, switch, rest, position)
            elif flag.syntax_for(switch).value_type == "optional":
                self._apply(flag, switch, True, position)
            elif index < len(argv):
                self._apply(flag, switch, argv[index], position)
                index += 1
            else:
                self._missing_value(switch, position)
            break
        return index

    def _missing_value(self, switch, position):
        self.trigger(FlagValueRequiredError(
            "flag %r at %s position requires a value" % (switch, ordinal(position)),
            flag=self._switches[switch].key,
            index=position,
            hint="pass it after a space (for example: %s VALUE)" % switch,
        ))

    def _apply(self, flag, switch, value, position):
        if isinstance(value, str):
            try:
                value = flag.accept.validate_and_convert(value)
            except AcceptanceError as fault:
                return self.trigger(fault.replace(
                    message="unacceptable value %r for flag %r at %s position" % (value, switch, ordinal(position)),
                    flag=flag.key,
                    index=position,
                    hint="%s expects %s" % (switch, fault.options["acceptor"].name),
                ))
        self._data[flag.key] = flag.handler(value, self._data.get(flag.key))

    # ── Positionals ─────────────────────────────────────────────────────────

    def _accept(self, arg, position, token):
        try:
            return arg.accept.validate_and_convert(token)
        except AcceptanceError as fault:
            self.trigger(fault.replace(
                message="unacceptable value %r for argument %s at %s position"
                        % (token, arg.display_name, ordinal(position)),
                argument=arg.key,
                index=position,
                hint="%s expects %s" % (arg.display_name, fault.options["acceptor"].name),
            ))
            return arg.default

    def _assign(self):
        definition = self._definition
        positionals = self._positionals

        for number, arg in enumerate(definition.required_args, 1):
            if not positionals:
                self.trigger(MissingArgumentError(
                    "missing required argument %s (the %s positional argument)" % (arg.display_name, ordinal(number)),
                    argument=arg.key,
                ))
                continue
            self._data[arg.key] = self._accept(arg, *positionals.pop(0))

        for arg in definition.optional_args:
            if not positionals:
                break
            self._data[arg.key] = self._accept(arg, *positionals.pop(0))

        if (arg := definition.remaining_arg) is not None:
            self._data[arg.key] = [self._accept(arg, *item) for item in positionals]
        elif positionals:
            self._leftover = [token for _, token in positionals]
            if self._strict:
                position, token = positionals[0]
                self.trigger(ExcessArgumentsError(
                    "extra argument %r at %s position" % (token, ordinal(position))
                    if len(positionals) == 1 else
                    "extra arguments %s starting at %s position" % (" ".join(self._leftover), ordinal(position)),
                    index=position,
                    leftover=self.leftover,
                ))


def match(argv, definition, /, *, strict=True):
    """
    Parse argv against definition and return (data, leftover).

    Raises the first ArgParsingError found. With strict=False, excess positionals
    are returned as leftover instead of raising.
    """
    parser = ArgParser(definition, strict=strict).parse(argv)
    if (error := parser.error) is not None:
        raise error
    return parser.data, parser.leftover


__all__ = (
    "ArgParser",
    "match",
)
