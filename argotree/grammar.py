r"""
Argotree grammar nodes and combinators.

Overview
- Leaves (grammar nodes)
  • Flag: named, presence-only item producing a fixed value (present/absent).
  • Argument: named, value-bearing item (-o VALUE, -oVALUE, --output=VALUE).
  • Positional: bare value taken in declaration order.
  • Command: a word handing the rest of the line to its own sub-program.
  • Pure: constant value, consumes nothing.
  • Any: the first argument a predicate accepts, whatever its shape.
  • Literal: a fixed word.

- Combinators
  • Product: all children, values collected into a tuple or fed to `build`.
  • Sum: exactly one alternative.
  • Many: zero-or-more (or one-or-more) repetitions of a subtree.
  • Optional: zero-or-one, producing a default when absent.

- Modifiers (any node, returned as cheap copies)
  • .adjacent(): match only within a contiguous run of tokens.
  • .anywhere(): match at the first position where the subtree fits.
  • .catch(): a failure below the node becomes plain absence.
  • .map(fn) / .parse(fn) / .guard(check, message): post-process the value.
  • .many() / .some() / .optional() / .fallback(value) / .hide() / .group(title).

Nodes are immutable once built. Fields are exposed through read-only
properties listed in __introspectable__; every modifier returns a new node via
__replace__, so the same sub-grammar can be reused across trees.

Validation highlights
- Short names match r"-[^\W_]" and long names r"--[^\W\d_](-?[^\W_]+)*".
- Command names are words matching r"[^\W_][\w-]*" (unicode allowed).
- Names are unique within a node; descr/metavar strings are trimmed and
  must not be empty.
- Converters, builders, completers, guards must be callable.

Quick example:
    >>> from argotree.grammar import Flag, Argument, Product
    >>> grammar = Product(Flag("-a", "--alice"), Argument("-b", "--bob", metavar="N", type=int))
"""
import builtins
import functools
import operator
import re
from collections.abc import Iterable, Set

from rich.text import Text

from .faults import GrammarError
from .utils import *

# Modifier fields shared by every node.
_modifiers = ("modifiers", "steps", "title", "hidden")


class NodeType(type):
    """
    Metaclass that turns node classes into introspectable, immutable records.

    Responsibilities
    - Provide stable, readable __repr__/__rich_repr__ implementations for
      diagnostics and debugging.
    - Expose selected fields as read-only properties using mirror() for all
      names listed in __introspectable__.

    Conventions
    - __typename__ is derived from the class name (camel-case split with hyphens)
      and used in messages.
    - __displayable__ (if set) narrows which properties are shown by __rich_repr__;
      otherwise __introspectable__ is used.
    """
    __introspectable__ = ()
    __displayable__ = Unset

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
            **options
        )

        @rename("__repr__")
        def __repr__(self):
            """
            Return a concise, stable representation with key metadata.

            Example
            - flag(names=['-v', '--verbose'], present=True, absent=False)
            """
            return "%s(%s)" % (
                type(self).__typename__,
                ", ".join(map(functools.partial(operator.mod, "%s=%r"), self.__rich_repr__()))
            )
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            """
            Yield (name, object) pairs for pretty printers.
            """
            for name in coalesce(type(self).__displayable__, type(self).__introspectable__):
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        return self


def _sanitize_metadata(cls, metadata, /):
    """
    Internal: normalize and validate shared leaf metadata.

    - descr: optional short description (str or rich Text). Unset becomes None;
      strings are trimmed and must not be empty.
    - hidden/deprecated: coerced to bool by the caller.

    Raises
    - TypeError: when 'descr' is not a string.
    - ValueError: when 'descr' is empty after trimming.
    """
    if not isinstance(descr := metadata["descr"], str | Text | Unset):
        raise TypeError(f"{cls.__typename__} 'descr' must be a string")
    elif isinstance(descr, str) and not (descr := descr.strip()):
        raise ValueError(f"{cls.__typename__} 'descr' cannot be empty")
    metadata["descr"] = coalesce(descr)


def _sanitize_named_metadata(cls, metadata, /):
    r"""
    Internal: validate and normalize the names of named items (Flag, Argument).

    - names: required, each either a short "-x" (a single letter or digit) or
      a long "--long-name". Unicode letters are allowed, duplicates are not.
      Order is kept: the first short and the first long are the display names.
    - env: Unset or a non-empty environment variable name.

    Raises
    - TypeError: when names are missing or are not strings.
    - ValueError: when a name is empty, malformed or duplicated.
    """
    names = []
    if not metadata["names"]:
        raise TypeError(f"{cls.__typename__} must specify at least one name")

    for name in metadata["names"]:
        if not isinstance(name, str):
            raise TypeError(f"{cls.__typename__} names must be strings")
        elif not (name := name.strip()):
            raise ValueError(f"{cls.__typename__} names cannot be empty-strings")
        elif not re.fullmatch(r"-[^\W_]|--[^\W\d_](-?[^\W_]+)*", name):
            raise ValueError(f"{cls.__typename__} names must be valid option names like '-v' or '--verbose' (unicodes are allowed)")
        elif name in names:
            raise ValueError(f"{cls.__typename__} names cannot contain duplicates")
        names.append(name)

    # Shorts first, then longs, both in declaration order.
    metadata["names"] = tuple(sorted(names, key=lambda name: name.startswith("--")))

    if not isinstance(env := metadata["env"], str | Unset):
        raise TypeError(f"{cls.__typename__} 'env' must be a string")
    elif isinstance(env, str) and not (env := env.strip()):
        raise ValueError(f"{cls.__typename__} 'env' cannot be empty")
    metadata["env"] = env


def _sanitize_parametric_metadata(cls, metadata, /):
    """
    Internal: validate and normalize metadata for value-bearing leaves
    (Argument, Positional).

    - metavar: non-empty string after trimming.
    - type: callable converter from raw text.
    - choices: iterable; duplicates are rejected unless it is a Set, and the
      collection is normalized to a tuple for stable display.
    - complete: Unset or a callable taking the typed prefix and returning
      candidates (strings or (text, descr) pairs).
    - default: any value; Unset means the item is required.
    """
    if not isinstance(metavar := metadata["metavar"], str):
        raise TypeError(f"{cls.__typename__} 'metavar' must be a string")
    elif not (metavar := metavar.strip()):
        raise ValueError(f"{cls.__typename__} 'metavar' cannot be empty")
    metadata["metavar"] = metavar

    if not callable(metadata["type"]):
        raise TypeError(f"{cls.__typename__} 'type' must be callable")

    if not isinstance(choices := metadata["choices"], Iterable) or isinstance(choices, str):
        raise TypeError(f"{cls.__typename__} 'choices' must be iterable")
    if not isinstance(choices, Set):
        sanitized = []
        for choice in choices:
            if choice in sanitized:
                raise ValueError(f"{cls.__typename__} 'choices' cannot contain duplicates")
            sanitized.append(choice)
        choices = sanitized
    metadata["choices"] = tuple(choices)

    if metadata["complete"] is not Unset and not callable(metadata["complete"]):
        raise TypeError(f"{cls.__typename__} 'complete' must be callable")


def _sanitize_children(cls, children, /):
    for child in children:
        if not isinstance(child, Node):
            raise TypeError(f"{cls.__typename__} children must be grammar nodes, not {type(child).__name__!r}")
    return tuple(children)


class Node(metaclass=NodeType):
    """
    Base of every grammar node.

    Shared fields
    - modifiers: frozenset of "adjacent", "anywhere" and "catch".
    - steps: post-processing pipeline, tuples of (kind, function, message).
    - title: help section title, None for the default sections.
    - hidden: suppressed from help, usage and completion.
    """
    __introspectable__ = _modifiers

    def _setup(self):
        self._modifiers = frozenset()
        self._steps = ()
        self._title = None
        self._hidden = getattr(self, "_hidden", False)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        clone = object.__new__(type(self))
        clone.__dict__.update(self.__dict__)
        for name, value in overrides.items():
            if not hasattr(self, "_" + name):
                raise TypeError(f"{type(self).__typename__} has no field named {name!r}")
            setattr(clone, "_" + name, value)
        return clone

    # --- modifiers ---

    def adjacent(self):
        """restrict matching to one contiguous run of tokens."""
        return self.__replace__(modifiers=self._modifiers | {"adjacent"})

    def anywhere(self):
        """match at the first position where this subtree fits, not only in order."""
        return self.__replace__(modifiers=self._modifiers | {"anywhere"})

    def catch(self):
        """turn any failure below this node into absence."""
        return self.__replace__(modifiers=self._modifiers | {"catch"})

    def hide(self):
        return self.__replace__(hidden=True)

    def group(self, title, /):
        """render every item below this node in its own help section."""
        if not isinstance(title, str):
            raise TypeError(f"{type(self).__typename__} group title must be a string")
        elif not (title := title.strip()):
            raise ValueError(f"{type(self).__typename__} group title cannot be empty")
        return self.__replace__(title=title)

    # --- value pipeline ---

    def map(self, function, /):
        """apply an infallible function to the produced value."""
        if not callable(function):
            raise TypeError(f"{type(self).__typename__} map() argument must be callable")
        return self.__replace__(steps=self._steps + (("map", function, None),))

    def parse(self, function, /):
        """apply a fallible conversion; exceptions become Invalid failures."""
        if not callable(function):
            raise TypeError(f"{type(self).__typename__} parse() argument must be callable")
        return self.__replace__(steps=self._steps + (("parse", function, None),))

    def guard(self, check, message, /):
        """reject values for which check(value) is false."""
        if not callable(check):
            raise TypeError(f"{type(self).__typename__} guard() check must be callable")
        if not isinstance(message, str) or not message.strip():
            raise TypeError(f"{type(self).__typename__} guard() message must be a non-empty string")
        return self.__replace__(steps=self._steps + (("guard", check, message.strip()),))

    # --- shorthands ---

    def many(self):
        return Many(self)

    def some(self):
        return Many(self, at_least=1)

    def optional(self, default=None):
        return Optional(self, default=default)

    def fallback(self, value, /):
        """like optional(), but the value is shown in help."""
        return Optional(self, default=value, shown=True)


class Flag(Node):
    """
    Named, presence-only item.

    Produces `present` when one of its names is found and `absent` otherwise.
    With required=True absence is a Missing failure instead (a "req-flag"),
    which is how a flag competes with other alternatives inside a Sum.
    When `env` is set, a non-empty variable of that name counts as presence.
    """
    __introspectable__ = (
        "names",
        "present",
        "absent",
        "required",
        "env",
        "descr",
        "deprecated",
    ) + _modifiers
    __displayable__ = ("names", "present", "absent", "required")

    def __new__(
            cls,
            *names,
            present=True,
            absent=False,
            required=False,
            env=Unset,
            descr=Unset,
            hidden=False,
            deprecated=False
    ):
        metadata = {
            "names": names,
            "present": present,
            "absent": absent,
            "required": bool(required),
            "env": env,
            "descr": descr,
            "deprecated": bool(deprecated),
        }
        _sanitize_metadata(cls, metadata)
        _sanitize_named_metadata(cls, metadata)

        self = super().__new__(cls)
        self._setup()
        self._hidden = bool(hidden)
        for name, value in metadata.items():
            setattr(self, "_" + name, value)
        return self


class Argument(Node):
    """
    Named, value-bearing item.

    Accepts "-o VALUE", "-oVALUE", "-o=VALUE", "--output VALUE" and
    "--output=VALUE". The raw value goes through `type`; an exception becomes
    an Invalid failure, a value outside of `choices` an InvalidChoice. When
    the name never appears, `env` is consulted, then `default`; with neither
    the result is Missing.
    """
    __introspectable__ = (
        "names",
        "metavar",
        "type",
        "choices",
        "default",
        "env",
        "complete",
        "descr",
        "deprecated",
    ) + _modifiers
    __displayable__ = ("names", "metavar", "type", "default")

    def __new__(
            cls,
            *names,
            metavar="ARG",
            type=str,
            choices=(),
            default=Unset,
            env=Unset,
            complete=Unset,
            descr=Unset,
            hidden=False,
            deprecated=False
    ):
        metadata = {
            "names": names,
            "metavar": metavar,
            "type": type,
            "choices": choices,
            "default": default,
            "env": env,
            "complete": complete,
            "descr": descr,
            "deprecated": bool(deprecated),
        }
        _sanitize_metadata(cls, metadata)
        _sanitize_named_metadata(cls, metadata)
        _sanitize_parametric_metadata(cls, metadata)

        self = super().__new__(cls)
        self._setup()
        self._hidden = bool(hidden)
        for name, value in metadata.items():
            setattr(self, "_" + name, value)
        return self


class Positional(Node):
    """
    Bare value, taken from the first unconsumed word that is not the pending
    value of a named argument. Positionals consume words in declaration order.
    With strict=True the word must come after "--".
    """
    __introspectable__ = (
        "metavar",
        "type",
        "choices",
        "default",
        "strict",
        "complete",
        "descr",
        "deprecated",
    ) + _modifiers
    __displayable__ = ("metavar", "type", "default", "strict")

    def __new__(
            cls,
            metavar="ARG",
            /,
            type=str,
            choices=(),
            default=Unset,
            strict=False,
            complete=Unset,
            descr=Unset,
            *,
            hidden=False,
            deprecated=False
    ):
        metadata = {
            "metavar": metavar,
            "type": type,
            "choices": choices,
            "default": default,
            "strict": bool(strict),
            "complete": complete,
            "descr": descr,
            "deprecated": bool(deprecated),
        }
        _sanitize_metadata(cls, metadata)
        _sanitize_parametric_metadata(cls, metadata)

        self = super().__new__(cls)
        self._setup()
        self._hidden = bool(hidden)
        for name, value in metadata.items():
            setattr(self, "_" + name, value)
        return self


class Command(Node):
    """
    A word that hands the rest of the line to an independent sub-program.

    `parser` is either a grammar node (wrapped into a Program named after the
    command) or a ready Program. Once the command word is consumed nothing
    after it is visible to siblings; with .adjacent() only the contiguous run
    the sub-grammar accepts is ceded, the rest goes back to the parent.
    """
    __introspectable__ = (
        "names",
        "program",
        "descr",
    ) + _modifiers
    __displayable__ = ("names", "program")

    def __new__(cls, *names, parser=Unset, descr=Unset, hidden=False):
        from .program import Program

        metadata = {"descr": descr}
        _sanitize_metadata(cls, metadata)

        sanitized = []
        if not names:
            raise TypeError(f"{cls.__typename__} must specify at least one name")
        for name in names:
            if not isinstance(name, str):
                raise TypeError(f"{cls.__typename__} names must be strings")
            elif not re.fullmatch(r"[^\W_][\w-]*", name := name.strip()):
                raise ValueError(f"{cls.__typename__} names must be words like 'build' (unicodes are allowed)")
            elif name in sanitized:
                raise ValueError(f"{cls.__typename__} names cannot contain duplicates")
            sanitized.append(name)

        if isinstance(parser, Node):
            parser = Program(parser, name=sanitized[0], descr=metadata["descr"])
        elif not isinstance(parser, Program):
            raise TypeError(f"{cls.__typename__} 'parser' must be a grammar node or a program")

        self = super().__new__(cls)
        self._setup()
        self._hidden = bool(hidden)
        self._names = tuple(sanitized)
        self._program = parser
        self._descr = parser.descr if metadata["descr"] is None else metadata["descr"]
        return self


class Pure(Node):
    """A constant; consumes nothing and never fails."""
    __introspectable__ = ("value",) + _modifiers
    __displayable__ = ("value",)

    def __new__(cls, value, /):
        self = super().__new__(cls)
        self._setup()
        self._value = value
        return self


class Any(Node):
    """
    Any single argument, whatever its shape ("+toolchain", "-foo", "if=x").

    The first unconsumed argument before the command fence for which
    check(text) does not return None is taken, and check's result is the
    value. Arguments check declines are left to the other items; an exception
    raised by check is an Invalid failure. Names are not recognized here: an
    Any declared before a named item may take that item's name.
    """
    __introspectable__ = (
        "metavar",
        "check",
        "complete",
        "descr",
    ) + _modifiers
    __displayable__ = ("metavar", "check")

    def __new__(cls, metavar="ARG", /, check=str, complete=Unset, descr=Unset, *, hidden=False):
        metadata = {"descr": descr}
        _sanitize_metadata(cls, metadata)

        if not isinstance(metavar, str):
            raise TypeError(f"{cls.__typename__} 'metavar' must be a string")
        elif not (metavar := metavar.strip()):
            raise ValueError(f"{cls.__typename__} 'metavar' cannot be empty")
        if not callable(check):
            raise TypeError(f"{cls.__typename__} 'check' must be callable")
        if complete is not Unset and not callable(complete):
            raise TypeError(f"{cls.__typename__} 'complete' must be callable")

        self = super().__new__(cls)
        self._setup()
        self._hidden = bool(hidden)
        self._metavar = metavar
        self._check = check
        self._complete = complete
        self._descr = metadata["descr"]
        return self


class Literal(Node):
    """
    A fixed word such as "+turbo", producing `present`.

    Like Any, the first unconsumed argument equal to the word is taken,
    wherever it sits before the command fence.
    """
    __introspectable__ = (
        "word",
        "present",
        "descr",
    ) + _modifiers
    __displayable__ = ("word", "present")

    def __new__(cls, word, /, present=True, descr=Unset, *, hidden=False):
        metadata = {"descr": descr}
        _sanitize_metadata(cls, metadata)

        if not isinstance(word, str):
            raise TypeError(f"{cls.__typename__} word must be a string")
        elif not word or word.isspace() or word == "--":
            raise ValueError(f"{cls.__typename__} word cannot be empty or '--'")

        self = super().__new__(cls)
        self._setup()
        self._hidden = bool(hidden)
        self._word = word
        self._present = present
        self._descr = metadata["descr"]
        return self


class Product(Node):
    """
    All children, in order. The value is the tuple of child values, or
    build(*values) when a builder is given. The first failing child stops
    the product.
    """
    __introspectable__ = ("children", "build") + _modifiers
    __displayable__ = ("children",)

    def __new__(cls, *children, build=Unset):
        if build is not Unset and not callable(build):
            raise TypeError(f"{cls.__typename__} 'build' must be callable")
        self = super().__new__(cls)
        self._setup()
        self._children = _sanitize_children(cls, children)
        self._build = build
        return self


class Sum(Node):
    """Exactly one of the alternatives; see the matcher for the tie-break."""
    __introspectable__ = ("alternatives",) + _modifiers
    __displayable__ = ("alternatives",)

    def __new__(cls, *alternatives):
        if not alternatives:
            raise ValueError(f"{cls.__typename__} must have at least one alternative")
        self = super().__new__(cls)
        self._setup()
        self._alternatives = _sanitize_children(cls, alternatives)
        return self


class Many(Node):
    """Repetitions of inner, as a list; at_least=1 needs one success."""
    __introspectable__ = ("inner", "at_least") + _modifiers
    __displayable__ = ("inner", "at_least")

    def __new__(cls, inner, /, at_least=0):
        if not isinstance(at_least, int) or isinstance(at_least, bool):
            raise TypeError(f"{cls.__typename__} 'at_least' must be an integer")
        elif at_least not in (0, 1):
            raise ValueError(f"{cls.__typename__} 'at_least' must be 0 or 1")
        self = super().__new__(cls)
        self._setup()
        self._inner, = _sanitize_children(cls, (inner,))
        self._at_least = at_least
        return self


class Optional(Node):
    """Zero-or-one of inner; `default` stands in when it is absent."""
    __introspectable__ = ("inner", "default", "shown") + _modifiers
    __displayable__ = ("inner", "default")

    def __new__(cls, inner, /, default=None, shown=False):
        self = super().__new__(cls)
        self._setup()
        self._inner, = _sanitize_children(cls, (inner,))
        self._default = default
        self._shown = bool(shown)
        return self


def children(node, /):
    """direct subtrees of a node (commands are not descended)."""
    match node:
        case Product():
            return node._children
        case Sum():
            return node._alternatives
        case Many() | Optional():
            return (node._inner,)
        case _:
            return ()


def consuming(node, /):
    """True when some leaf below node can consume a token."""
    match node:
        case Flag() | Argument() | Positional() | Command() | Any() | Literal():
            return True
        case Pure():
            return False
        case _:
            return builtins.any(map(consuming, children(node)))


_limit = 200


def verify(node, /, *, depth=0, stack=()):
    """
    Reject grammars that could never be matched safely.

    - a node reachable from itself (only possible by tampering with fields),
    - a Many whose subtree has no consuming leaf,
    - nesting deeper than a fixed limit (command sub-programs included).

    Raises
    - GrammarError
    """
    if depth > _limit:
        raise GrammarError(f"grammar is nested deeper than {_limit} levels")
    if builtins.any(node is seen for seen in stack):
        raise GrammarError(f"{type(node).__typename__} is reachable from itself")
    if isinstance(node, Many) and not consuming(node._inner):
        raise GrammarError(f"{type(node).__typename__} repeats a subtree that never consumes a token")
    if isinstance(node, Command):
        verify(node._program._grammar, depth=depth + 1, stack=stack + (node,))
    for child in children(node):
        verify(child, depth=depth + 1, stack=stack + (node,))


del NodeType


__all__ = (
    # Base
    "Node",

    # Leaves
    "Flag",
    "Argument",
    "Positional",
    "Command",
    "Pure",
    "Any",
    "Literal",

    # Combinators
    "Product",
    "Sum",
    "Many",
    "Optional",
)
