"""
Argotree programs: a grammar with a name, documentation and a process boundary.

A Program owns one grammar and answers three kinds of requests:
- parse(args, env=...) -> the typed value or a Failure (never raises for bad input),
- run(args) -> the typed value, or prints help/version/diagnostics and exits,
- complete(line, cursor) -> completion candidates for a partial command line.

Every program understands "-h/--help" and, when it has a version,
"-V/--version", unless its grammar declares those names itself.
"""
import logging
import os
import shlex
import sys
from collections.abc import Iterable
from types import MappingProxyType

from rich.text import Text

from .appearance import Appearance
from .faults import *
from .grammar import Flag, Node, verify
from .matcher import resolve
from .tokens import TokenStream, split
from .utils import *
from .visitor import Index

logger = logging.getLogger(__name__)


def _sanitize_text(name, object, /, *, rich=False):
    if not isinstance(object, (str | Text | Unset | None) if rich else (str | Unset | None)):
        raise TypeError(f"program {name!r} must be a string")
    if isinstance(object, str) and not (object := object.strip()):
        raise ValueError(f"program {name!r} cannot be empty")
    return coalesce(object)


class Program:
    """
    Top-level (or command-level) parser.

    Parameters
    - grammar: Node
      The grammar tree; verified on construction (see grammar.verify).
    - name: Unset | str
      Program name used in usage lines and hints. Defaults to the basename of
      sys.argv[0].
    - descr / header / footer: Unset | str | Text
      Help text blocks: description, text under it, and text after the items.
    - version: Unset | str
      Enables "-V/--version" when set.
    - usage: Unset | str
      Explicit usage line instead of the synthesized one.
    - appearance: Unset | Appearance
      Rendering configuration. Commands without their own inherit the one of
      the program in scope when rendering.
    - shell: bool
      In shell mode run() prints and exits; otherwise it raises ParseExit.

    Raises
    - TypeError / ValueError: on malformed metadata.
    - GrammarError: on a grammar that could never be matched safely.
    """

    name = mirror("name")
    descr = mirror("descr")
    header = mirror("header")
    footer = mirror("footer")
    version = mirror("version")
    usage = mirror("usage")
    grammar = mirror("grammar")
    shell = mirror("shell")

    def __init__(
            self,
            grammar,
            /,
            name=Unset,
            descr=Unset,
            header=Unset,
            footer=Unset,
            version=Unset,
            usage=Unset,
            appearance=Unset,
            *,
            shell=False
    ):
        if not isinstance(grammar, Node):
            raise TypeError("program 'grammar' must be a grammar node")
        verify(grammar)

        if name is Unset:
            name = os.path.basename(sys.argv[0]) or "program"
        if not isinstance(name, str):
            raise TypeError("program 'name' must be a string")
        elif not (name := name.strip()):
            raise ValueError("program 'name' cannot be empty")
        if not isinstance(appearance, Appearance | Unset):
            raise TypeError("program 'appearance' must be an appearance")

        self._grammar = grammar
        self._name = name
        self._descr = _sanitize_text("descr", descr, rich=True)
        self._header = _sanitize_text("header", header, rich=True)
        self._footer = _sanitize_text("footer", footer, rich=True)
        self._version = _sanitize_text("version", version)
        self._usage = _sanitize_text("usage", usage)
        self._appearance = appearance
        self._shell = bool(shell)

        declared = Index.of(grammar).names
        self._builtins = []
        self._requests = []
        if names := [name for name in ("-h", "--help") if name not in declared]:
            self._builtins.append(Flag(*names, descr="Prints help information"))
            self._requests.append(UserRequestedHelp)
        if self._version is not None and (names := [name for name in ("-V", "--version") if name not in declared]):
            self._builtins.append(Flag(*names, descr="Prints version information"))
            self._requests.append(UserRequestedVersion)
        self._builtins = tuple(self._builtins)
        self._requests = tuple(self._requests)
        self._index = Index.of(grammar, *self._builtins)

    @property
    def appearance(self):
        return coalesce(self._appearance, Appearance())

    @property
    def builtins(self):
        """the built-in help/version flags, as grammar nodes."""
        return self._builtins

    def __rich_repr__(self):
        yield "name", self._name
        yield "version", self._version
        yield "grammar", self._grammar

    def __repr__(self):
        return "program(name=%r, version=%r, grammar=%r)" % (self._name, self._version, self._grammar)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self._grammar, **{
            "name": self._name,
            "descr": coalesce(self._descr, Unset),
            "header": coalesce(self._header, Unset),
            "footer": coalesce(self._footer, Unset),
            "version": coalesce(self._version, Unset),
            "usage": coalesce(self._usage, Unset),
            "appearance": self._appearance,
            "shell": self._shell,
        } | overrides)

    # --- parsing ---

    @staticmethod
    def _arguments(args):
        if args is Unset:
            return sys.argv[1:]
        elif isinstance(args, str):
            return shlex.split(args)
        elif isinstance(args, Iterable):
            arguments = list(args)
            for argument in arguments:
                if not isinstance(argument, str):
                    raise TypeError("parse() argument must be a string or an iterable of strings")
            return arguments
        raise TypeError("parse() argument must be a string or an iterable of strings")

    def _stream(self, arguments, env):
        index = self._index
        tokens = split(arguments, flags=index.flag_shorts, arguments=index.argument_shorts)
        if isinstance(tokens, Failure):
            return tokens
        logger.debug("tokens of %r: %r", self._name, tokens)
        stream = TokenStream(tokens, env=env, arguments=index.argument_names)
        return stream.narrow(commands=index.commands, route=(self,))

    def _parse(self, args, env):
        stream = self._stream(self._arguments(args), coalesce(env, MappingProxyType({})))
        if isinstance(stream, Failure):
            return stream.__replace__(route=(self._name,), appearance=self.appearance), ()
        outcome = resolve(self, stream)
        if isinstance(outcome, Failure):
            logger.debug("%r failed with %r", self._name, outcome)
            return outcome.__replace__(appearance=self.appearance), ()
        return outcome, stream.notes

    def parse(self, args=Unset, /, *, env=Unset):
        """
        Match args against the grammar.

        Parameters
        - args: Unset (sys.argv[1:]) | str (split like a shell) | Iterable[str].
        - env: Mapping of environment variables consulted by items declaring
          env=...; nothing is read from os.environ unless passed in.

        Returns
        - the typed value, or a Failure (UserRequestedHelp/UserRequestedVersion
          included).
        """
        outcome, notes = self._parse(args, env)
        for note in notes:
            trigger(note, shell=self._shell, appearance=self.appearance)
        return outcome

    def run(self, args=Unset, /, *, env=Unset):
        """
        Process boundary: parse with os.environ, return the value on success.

        On a failure the ParseExit is triggered: in shell mode help/version are
        printed to stdout (exit 0) and diagnostics to stderr (exit 1); in
        non-shell mode the ParseExit is raised for the caller to handle.
        """
        outcome = self.parse(args, env=coalesce(env, os.environ))
        if isinstance(outcome, Failure):
            trigger(ParseExit(outcome), shell=self._shell, appearance=self.appearance)
        return outcome

    # --- rendering ---

    def _resolve_appearance(self, appearance):
        if self._appearance is not Unset:
            return self._appearance
        return coalesce(appearance, Appearance())

    def render_usage(self, *, appearance=Unset, route=Unset):
        from .help import render_usage
        return render_usage(self, self._resolve_appearance(appearance), coalesce(route, (self._name,)))

    def render_help(self, *, appearance=Unset, route=Unset):
        from .help import render_help
        return render_help(self, self._resolve_appearance(appearance), coalesce(route, (self._name,)))

    def render_version(self, *, appearance=Unset):
        from .help import render_version
        return render_version(self, self._resolve_appearance(appearance))

    def help_text(self, *, appearance=Unset):
        """the help as plain text."""
        appearance = self._resolve_appearance(appearance)
        return appearance.render(self.render_help(appearance=appearance))

    # --- completion ---

    def complete(self, line, /, cursor=Unset):
        """
        Completion candidates for a partial command line.

        Parameters
        - line: str (split like a shell, up to cursor) or a list of words whose
          last element is the word being completed ("" for a new word).
        - cursor: position in a string line; defaults to its end.

        Returns
        - list of Candidate(text, descr), in grammar order, without duplicates.
        """
        from .complete import candidates, words

        if isinstance(line, str):
            arguments = words(line[:coalesce(cursor, len(line))])
        else:
            arguments = self._arguments(line) or [""]
        return candidates(self, arguments[:-1], arguments[-1])

    @staticmethod
    def render_completions(candidates, dialect, /):
        from .complete import render
        return render(candidates, dialect)


__all__ = (
    "Program",
)
