"""
Argotree faults (failures, errors and warnings) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for every user-facing issue.
- Failure and its subclasses: the classified outcome of an unsuccessful match.
  Failures are *values*: the engine returns them, it never raises them, so a
  speculative branch that fails is simply dropped.
- GrammarError: construction-time programming errors in a grammar.
- ParseExit: the process-boundary exit carrying a failure (a SystemExit).
- DeprecatedArgumentWarning: emitted after a successful parse that used a
  deprecated item.
- trigger(): central entry point to surface any fault (respecting shell mode).

UX goals
- Exactly one line naming the offending token or the expected item, followed by
  a single hint line for top-level failures.
- Soft but technical, lowercased tone with readable styling (see Appearance).
"""
import inspect
import sys
import warnings
from enum import IntEnum
from types import MappingProxyType

from rich.console import Group
from rich.panel import Panel
from rich.text import Text

from .appearance import Appearance
from .utils import *


class FaultCode(IntEnum):
    """
    canonical fault codes used across the matcher (stable identifiers).

    grouping (by high-level domain)
    - requests (100xx): HELP_REQUESTED, VERSION_REQUESTED
    - missing items (1110x): MISSING_ITEM, MISSING_COMMAND, MISSING_VALUE, STRICT_POSITIONAL
    - unexpected tokens (1111x): UNEXPECTED_TOKEN, CONFLICTING_TOKEN, REPEATED_TOKEN,
      MISPLACED_TOKEN, UNKNOWN_SWITCH, UNKNOWN_COMMAND, FLAG_ASSIGNMENT
    - ambiguity (1112x): AMBIGUOUS_CLUSTER
    - invalid values (1113x): INVALID_VALUE, INVALID_CHOICE, GUARD_REJECTED
    - warnings (12xxx): DEPRECATED_ARGUMENT

    spacing leaves room for future additions without reshuffling existing codes.
    """
    # --- requests (10xxx) ---
    HELP_REQUESTED              = 10001
    VERSION_REQUESTED           = 10002

    # --- missing items (11xxx) ---
    MISSING_ITEM                = 11101
    MISSING_COMMAND             = 11102
    MISSING_VALUE               = 11103
    STRICT_POSITIONAL           = 11104

    # --- unexpected tokens (11xxx) ---
    UNEXPECTED_TOKEN            = 11111
    CONFLICTING_TOKEN           = 11112
    REPEATED_TOKEN              = 11113
    MISPLACED_TOKEN             = 11114
    UNKNOWN_SWITCH              = 11115
    UNKNOWN_COMMAND             = 11116
    FLAG_ASSIGNMENT             = 11117

    # --- ambiguity (11xxx) ---
    AMBIGUOUS_CLUSTER           = 11121

    # --- invalid values (11xxx) ---
    INVALID_VALUE               = 11131
    INVALID_CHOICE              = 11132
    GUARD_REJECTED              = 11133

    # --- warnings (12xxx) ---
    DEPRECATED_ARGUMENT         = 12112

    def normalize(self, codes=MappingProxyType({}), /):
        """
        return a host-normalized string for this code.

        hosts may hand a mapping of codes to friendlier labels through
        Appearance(codes=...); without one the numeric value is used.
        """
        return str(codes.get(self, self.value))


class Failure:
    """
    Base type of every unsuccessful outcome.

    A failure carries an optional message and a read-only mapping of options
    (token, index, expected, got, route, appearance, ...). Subclasses set:
    - code: the FaultCode shown next to the message.
    - title: a short lowercase title used by fancy panels.
    - catchable: whether Optional/Many/Sum may treat it as plain absence, as
      long as the failing attempt consumed nothing. A `catchable` option
      overrides it for one failure.
    - exit_code: what the process boundary exits with.
    """
    code = FaultCode.UNEXPECTED_TOKEN
    title = "failure"
    catchable = False
    exit_code = 1

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        self.message = message
        self.options = MappingProxyType(options)
        if "catchable" in options:
            self.catchable = bool(options["catchable"])

    @property
    def token(self):
        """the offending Token, when there is one."""
        return self.options.get("token")

    @property
    def route(self):
        """program names from the root down to the failing scope."""
        return tuple(self.options.get("route", ()))

    @property
    def hint(self):
        if hint := self.options.get("hint"):
            return hint
        if not (route := self.route):
            return None
        if (token := self.token) is not None and token.origin is not None:
            return "check the %s token, or run `%s --help` for usage information" % (
                ordinal(token.origin + 1), " ".join(route)
            )
        return "run `%s --help` for usage information" % " ".join(route)

    def describe(self):
        """the one-line diagnostic, without styling."""
        return coalesce(self.message, self.title)

    def __str__(self):
        return self.describe()

    def __repr__(self):
        return f"{type(self).__name__}({self.describe()!r})"

    def __rich__(self):
        appearance = self.options.get("appearance") or Appearance()
        styler, text = appearance.styler, appearance.text

        code = self.code.normalize(appearance.codes)
        message = Text.assemble(
            text(f"error[{code}]", styler("error-label")),
            ": ",
            text(self.describe(), styler("error-message")),
        )
        renders = [message]
        if hint := self.hint:
            renders.append(Text.assemble(text(" → ", styler("hint-arrow")), text(hint, styler("hint"))))

        if appearance.fancy:
            header = Text.assemble(
                "[ ",
                text(" ".join(self.route) or "error", styler("prog-name")),
                " — ",
                text(code, styler("code")),
                " | ",
                text(self.title.title(), styler("error-label")),
                " ]"
            )
            return Panel(Group(*renders), title=header, title_align="left")

        return Group(*renders)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class Missing(Failure):
    """
    An expected item never appeared.

    Options
    - expected: tuple of visitor Items (their str() is the usage form).
    - got: raw text of the first leftover token, when one explains the miss.
    """
    code = FaultCode.MISSING_ITEM
    title = "missing item"
    catchable = True

    @property
    def expected(self):
        return tuple(self.options.get("expected", ()))

    def merge(self, other, /):
        """combine the expectations of two failed alternatives."""
        expected = list(self.expected)
        for item in other.expected:
            if item not in expected:
                expected.append(item)
        return self.__replace__(expected=tuple(expected))

    def describe(self):
        if self.message is not Unset:
            return self.message
        labels = []
        for item in self.expected:
            if (label := str(item)) not in labels:
                labels.append(label)
        match labels:
            case []:
                message = "expected more input"
            case [label]:
                message = "expected %s" % quote(label)
            case [first, second]:
                message = "expected %s or %s" % (quote(first), quote(second))
            case [first, second, *_]:
                message = "expected %s, %s, or more" % (quote(first), quote(second))
        if (got := self.options.get("got")) is not None:
            message += ", got %s" % quote(got)
        return message


class MissingCommand(Missing):
    code = FaultCode.MISSING_COMMAND
    title = "missing command"


class MissingValue(Missing):
    """a named argument was found but its value was not: this one is never absence."""
    code = FaultCode.MISSING_VALUE
    title = "missing value"
    catchable = False


class StrictPositional(Missing):
    code = FaultCode.STRICT_POSITIONAL
    title = "strict positional"


class Unexpected(Failure):
    """An input token matched nothing in the current context."""
    code = FaultCode.UNEXPECTED_TOKEN
    title = "unexpected token"

    def describe(self):
        if self.message is not Unset:
            return self.message
        return "%s is not expected in this context" % quote(self.token.text)


class Conflict(Unexpected):
    code = FaultCode.CONFLICTING_TOKEN
    title = "conflicting token"


class Repeated(Unexpected):
    code = FaultCode.REPEATED_TOKEN
    title = "repeated token"


class Misplaced(Unexpected):
    code = FaultCode.MISPLACED_TOKEN
    title = "misplaced token"


class UnknownSwitch(Unexpected):
    code = FaultCode.UNKNOWN_SWITCH
    title = "unknown switch"


class UnknownCommand(Unexpected):
    code = FaultCode.UNKNOWN_COMMAND
    title = "unknown command"


class FlagAssignment(Unexpected):
    code = FaultCode.FLAG_ASSIGNMENT
    title = "flag assignment"


class Ambiguous(Failure):
    """
    A short cluster reads both as a glued argument value and as a set of flags.

    Options
    - candidates: tuple of the competing readings, as display strings.
    """
    code = FaultCode.AMBIGUOUS_CLUSTER
    title = "ambiguous token"

    @property
    def candidates(self):
        return tuple(self.options.get("candidates", ()))

    def describe(self):
        if self.message is not Unset:
            return self.message
        return "%s is ambiguous, it could be %s" % (
            quote(self.token.raw), " or ".join(map(quote, self.candidates))
        )


class Invalid(Failure):
    """A matched token's value failed its conversion."""
    code = FaultCode.INVALID_VALUE
    title = "invalid value"


class InvalidChoice(Invalid):
    code = FaultCode.INVALID_CHOICE
    title = "invalid choice"


class GuardRejected(Failure):
    """A converted value was refused by a guard predicate."""
    code = FaultCode.GUARD_REJECTED
    title = "rejected value"


class UserRequestedHelp(Failure):
    """
    Not an error: the user asked for help. Renders the help of the program
    (or command) in scope and exits successfully.
    """
    code = FaultCode.HELP_REQUESTED
    title = "help"
    exit_code = 0

    @property
    def program(self):
        return self.options["program"]

    @property
    def hint(self):
        return None

    def describe(self):
        return coalesce(self.message, "help requested for %s" % quote(self.program.name))

    def __rich__(self):
        return self.program.render_help(appearance=self.options.get("appearance", Unset), route=self.route or Unset)


class UserRequestedVersion(Failure):
    """Not an error: the user asked for the version."""
    code = FaultCode.VERSION_REQUESTED
    title = "version"
    exit_code = 0

    @property
    def program(self):
        return self.options["program"]

    @property
    def hint(self):
        return None

    def describe(self):
        return coalesce(self.message, "version requested for %s" % quote(self.program.name))

    def __rich__(self):
        return self.program.render_version(appearance=self.options.get("appearance", Unset))


class GrammarError(ValueError):
    """A grammar that can never be matched safely (cycles, endless repetition)."""


class ParseExit(SystemExit):
    """
    Process-boundary exit raised by Program.run() in non-shell mode.

    The exit code follows the failure: 0 for help/version requests, 1 otherwise.
    """

    def __init__(self, failure, /, **options):
        super().__init__(failure.exit_code)
        self.failure = failure
        self.options = MappingProxyType(options)

    def __str__(self):
        return str(self.failure)

    def __rich__(self):
        return self.failure

    def __trigger__(self):
        if not self.options.get("shell", False):
            raise self from None
        appearance = self.options.get("appearance") or Appearance()
        appearance.console(stderr=self.failure.exit_code != 0).print(self.failure)
        sys.exit(self.failure.exit_code)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.failure, **{**self.options, **overrides})


class ArgotreeWarning(Warning):
    code = FaultCode.DEPRECATED_ARGUMENT

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    def __str__(self):
        return coalesce(self.message, "")

    def __rich__(self):
        appearance = self.options.get("appearance") or Appearance()
        styler, text = appearance.styler, appearance.text
        return Text.assemble(
            text(f"warning[{self.code.normalize(appearance.codes)}]", styler("warning-label")),
            ": ",
            text(str(self), styler("warning-message")),
        )

    def __trigger__(self):
        if not self.options.get("shell", False):
            return warnings.warn(self, stacklevel=len(inspect.stack()))
        (self.options.get("appearance") or Appearance()).console(stderr=True).print(self)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class DeprecatedArgumentWarning(ArgotreeWarning): ...


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods (ParseExit, warnings).
    - options are merged into the fault via __replace__(**options) before triggering.
    - in shell mode, rendering happens via a rich console; otherwise, exits are
      raised and warnings go through the warnings module.
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    fault.__replace__(**options).__trigger__()


__all__ = (
    "FaultCode",
    "Failure",
    "Missing",
    "MissingCommand",
    "MissingValue",
    "StrictPositional",
    "Unexpected",
    "Conflict",
    "Repeated",
    "Misplaced",
    "UnknownSwitch",
    "UnknownCommand",
    "FlagAssignment",
    "Ambiguous",
    "Invalid",
    "InvalidChoice",
    "GuardRejected",
    "UserRequestedHelp",
    "UserRequestedVersion",
    "GrammarError",
    "ParseExit",
    "ArgotreeWarning",
    "DeprecatedArgumentWarning",
    "trigger",
)
