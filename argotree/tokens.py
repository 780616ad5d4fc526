"""
Token stream: the classified input and its consumption marks.

The input argument list is split once into Tokens. Matching never removes a
token; it marks token indices as consumed. A Sum or a Many works on a fork
of the stream (a snapshot of the marks) and only the winning fork is
committed back, so speculative branches never see each other's claims.

Tokenization rules
- "--" disables name recognition; every later word is a *strict* word.
- "--name=value" and "-n=value" carry an inline value.
- "-abc" is a glued value ("-a" takes "bc") when "-a" is an argument name,
  a cluster of flags "-a -b -c" when every letter is a flag name, and
  ambiguous when both readings hold. Flags followed by one argument letter
  ("-vvo") split into those flags and the argument, which takes the rest of
  the cluster or the next word. Otherwise it stays one unknown named token,
  so "-42" is reported verbatim.
- "-" alone is a bare word.
"""
import enum
from types import MappingProxyType
from typing import NamedTuple

from .faults import Ambiguous
from .utils import *


class TokenKind(enum.Enum):
    SHORT = "short"
    LONG = "long"
    WORD = "word"


class Token(NamedTuple):
    """
    One classified piece of input.

    Fields
    - kind: SHORT, LONG or WORD.
    - raw: the whole argument this token came from (a cluster shares it).
    - name: "-a" / "--alice" for named tokens, None for words.
    - value: inline value of a named token, None when there is none.
    - origin: index of the originating argument in the input list.
    - strict: True for words that followed "--".
    """
    kind: TokenKind
    raw: str
    name: str | None = None
    value: str | None = None
    origin: int | None = None
    strict: bool = False

    @property
    def named(self):
        return self.kind is not TokenKind.WORD

    @property
    def text(self):
        """the part of the input this token stands for, as shown in diagnostics."""
        if self.kind is TokenKind.WORD or self.value is not None:
            return self.raw
        return self.name


def split(args, /, *, flags=frozenset(), arguments=frozenset()):
    """
    Classify raw arguments into Tokens.

    Parameters
    - args: Iterable[str] of raw arguments (no executable name).
    - flags: short names ("-v") known to take no value, used to expand clusters.
    - arguments: short names ("-o") known to take a value, used for glued values.

    Returns
    - tuple[Token, ...], or an Ambiguous failure for a cluster that reads both ways.
    """
    tokens = []
    strict = False
    for origin, arg in enumerate(args):
        if strict:
            tokens.append(Token(TokenKind.WORD, arg, origin=origin, strict=True))
        elif arg == "--":
            strict = True
        elif arg.startswith("--"):
            name, separator, value = arg.partition("=")
            tokens.append(Token(TokenKind.LONG, arg, name, value if separator else None, origin))
        elif arg.startswith("-") and len(arg) > 1:
            body = arg[1:]
            if "=" in body:
                name, _, value = body.partition("=")
                tokens.append(Token(TokenKind.SHORT, arg, "-" + name, value, origin))
            elif len(body) == 1:
                tokens.append(Token(TokenKind.SHORT, arg, arg, None, origin))
            else:
                head = "-" + body[0]
                glued = head in arguments
                cluster = all("-" + char in flags for char in body)
                match glued, cluster:
                    case True, True:
                        return Ambiguous(
                            token=Token(TokenKind.SHORT, arg, arg, None, origin),
                            candidates=(
                                f"{head}={body[1:]}",
                                " ".join("-" + char for char in body),
                            ),
                        )
                    case True, False:
                        tokens.append(Token(TokenKind.SHORT, arg, head, body[1:], origin))
                    case False, True:
                        tokens.extend(Token(TokenKind.SHORT, arg, "-" + char, None, origin) for char in body)
                    case _:
                        tokens.extend(_cluster(arg, body, origin, flags, arguments))
        else:
            tokens.append(Token(TokenKind.WORD, arg, origin=origin))
    return tuple(tokens)


def _cluster(arg, body, origin, flags, arguments):
    """
    "-vvo" or "-vvoVALUE": flags followed by one argument letter, which takes
    the rest of the cluster or, when nothing is left, the next word. Anything
    else stays one unknown token.
    """
    for position, char in enumerate(body):
        if "-" + char in flags:
            continue
        if position and "-" + char in arguments:
            tokens = [Token(TokenKind.SHORT, arg, "-" + flag, None, origin) for flag in body[:position]]
            tokens.append(Token(TokenKind.SHORT, arg, "-" + char, body[position + 1:] or None, origin))
            return tokens
        break
    return [Token(TokenKind.SHORT, arg, arg, None, origin)]


class TokenStream:
    """
    Indexable, consumable view over a token tuple.

    The stream has a *window* [start, stop) that bounds what the current scope
    may look at (a command's tail, an adjacent run), and a *fence*: the first
    unconsumed word naming a command of the current scope. Named tokens are
    only searched before the fence, so a parent never steals a command's
    options.

    Consumption
    - consume(index) marks a token; consuming twice is a programming error and
      raises RuntimeError rather than producing a parse failure.
    - fork() snapshots the marks, commit(fork) adopts a fork's marks.
    - consumed lists the indices claimed by this frame since it was forked.
    """

    def __init__(self, tokens, /, *, env=MappingProxyType({}), arguments=frozenset()):
        self._tokens = tuple(tokens)
        self._claims = {}
        self._fresh = []
        self._start = 0
        self._stop = len(self._tokens)
        self._commands = frozenset()
        self._arguments = frozenset(arguments)
        self._route = ()
        self._conflicts = {}
        self._notes = []
        self._env = MappingProxyType(dict(env))

    def __len__(self):
        return len(self._tokens)

    def __getitem__(self, index):
        return self._tokens[index]

    @property
    def env(self):
        return self._env

    @property
    def window(self):
        return self._start, self._stop

    @property
    def route(self):
        return self._route

    @property
    def commands(self):
        return self._commands

    @property
    def conflicts(self):
        """map of leftover-candidate index to the index of the token it lost against."""
        return self._conflicts

    @property
    def notes(self):
        """warnings collected by this frame, emitted once the parse succeeds."""
        return tuple(self._notes)

    @property
    def consumed(self):
        return tuple(self._fresh)

    @property
    def head(self):
        """leftmost index consumed by this frame, None when nothing was."""
        return min(self._fresh, default=None)

    @property
    def fence(self):
        for index in range(self._start, self._stop):
            token = self._tokens[index]
            if (
                index not in self._claims and
                token.kind is TokenKind.WORD and
                not token.strict and
                token.raw in self._commands
            ):
                return index
        return self._stop

    def peek_at(self, cursor, /):
        """the token at cursor, or None outside of the window."""
        if self._start <= cursor < self._stop:
            return self._tokens[cursor]
        return None

    def is_consumed(self, index, /):
        return index in self._claims

    def siblings(self, index, /):
        """indices within the window of the tokens split from the same argument as index."""
        origin = self._tokens[index].origin
        return [other for other in range(self._start, self._stop) if self._tokens[other].origin == origin]

    def claimant(self, index, /):
        return self._claims.get(index)

    def consume(self, index, /, claimant=None):
        if not self._start <= index < self._stop:
            raise IndexError(f"token {index} is outside of the {self._start}..{self._stop} window")
        if index in self._claims:
            raise RuntimeError(f"token {index} ({self._tokens[index].text!r}) is already consumed")
        self._claims[index] = claimant
        self._fresh.append(index)

    def remaining(self):
        return sum(1 for _ in self.unconsumed())

    def unconsumed(self):
        for index in range(self._start, self._stop):
            if index not in self._claims:
                yield index

    def note(self, warning, /):
        self._notes.append(warning)

    def reserved(self, index, /):
        """
        True when the word at index is the pending value of a named argument
        that has not been consumed yet.
        """
        if index - 1 < self._start:
            return False
        previous = self._tokens[index - 1]
        return (
            previous.named and
            previous.value is None and
            previous.name in self._arguments and
            index - 1 not in self._claims
        )

    def find_named(self, names, /):
        """first unconsumed named token before the fence whose name is in names."""
        for index in range(self._start, self.fence):
            token = self._tokens[index]
            if token.named and token.name in names and index not in self._claims:
                return index
        return None

    def find_word(self, *, fenced=True):
        """
        first unconsumed bare word that is not a pending argument value, before
        the fence (or anywhere in the window with fenced=False).
        """
        for index in range(self._start, self.fence if fenced else self._stop):
            token = self._tokens[index]
            if token.kind is TokenKind.WORD and index not in self._claims and not self.reserved(index):
                return index
        return None

    def fork(self):
        clone = object.__new__(type(self))
        clone.__dict__.update(self.__dict__)
        clone._claims = dict(self._claims)
        clone._fresh = []
        clone._conflicts = dict(self._conflicts)
        clone._notes = list(self._notes)
        return clone

    def narrow(self, start=Unset, stop=Unset, /, *, commands=Unset, route=Unset):
        """a fork limited to [start, stop), optionally entering a new command scope."""
        clone = self.fork()
        clone._start = coalesce(start, self._start)
        clone._stop = coalesce(stop, self._stop)
        clone._commands = frozenset(coalesce(commands, self._commands))
        clone._route = tuple(coalesce(route, self._route))
        return clone

    def commit(self, fork, /):
        self._claims = fork._claims
        self._fresh.extend(fork._fresh)
        self._conflicts = fork._conflicts
        self._notes = fork._notes

    def __repr__(self):
        return "token-stream(%s)" % " ".join(
            ("[%s]" if index in self._claims else "%s") % token.text
            for index, token in enumerate(self._tokens)
        )


__all__ = (
    "TokenKind",
    "Token",
    "TokenStream",
    "split",
)
