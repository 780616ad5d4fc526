"""
Argotree completion: what may follow a partial command line.

candidates(program, before, current) walks the grammar of the innermost
command named in `before` and offers, for the word being typed:
- argument values, after "--name=" or after a named argument waiting for one,
  from the item's completer or its choices,
- the names of flags and arguments not used yet (or repeatable), when the word
  starts with "-" or is empty,
- literal words not used yet,
- values of the first positional not filled yet, and command words.

Inside a Sum only the alternative already used stays on offer.
"""
import logging
import shlex
from typing import NamedTuple

from rich.text import Text

from .faults import Failure
from .tokens import TokenKind, split
from .utils import *
from .visitor import *
from .visitor import item

logger = logging.getLogger(__name__)


class Candidate(NamedTuple):
    """One completion: the literal text and an optional description."""
    text: str
    descr: str | None = None


def words(line, /):
    """split a partial line like a shell; a trailing space starts a new, empty word."""
    for suffix in ("", '"', "'"):
        try:
            arguments = shlex.split(line + suffix)
            break
        except ValueError:
            continue
    else:
        arguments = line.split()
    if not arguments or line[-1:].isspace():
        arguments.append("")
    return arguments


def _plain(descr):
    if isinstance(descr, Text):
        return descr.plain
    return descr


def _values(node, prefix):
    if node._complete is not Unset:
        found = []
        for result in node._complete(prefix):
            if isinstance(result, tuple):
                text, descr = result
                found.append(Candidate(str(text), _plain(descr)))
            else:
                found.append(Candidate(str(result)))
        return found
    return [Candidate(str(choice)) for choice in getattr(node, "_choices", ()) if str(choice).startswith(prefix)]


def _pick(names, prefix):
    """the name to offer for a prefix: a matching long name first."""
    matching = [name for name in names if name.startswith(prefix)]
    for name in matching:
        if name.startswith("--"):
            return name
    return next(iter(matching), None)


class Entry(NamedTuple):
    item: object
    repeatable: bool
    used: bool


class Completion(Visitor):
    """
    Collects the entries of one program level.

    Each frame is a list of chunks, one chunk per direct child, so a Sum can
    keep only the alternative that holds a used entry.
    """

    def __init__(self, names, words, raws=frozenset()):
        self.names = names
        self.words = words
        self.raws = raws
        self.repeating = 0
        self.frames = [[]]

    def item(self, item, /):
        repeatable = self.repeating > 0
        match item.kind:
            case ItemKind.FLAG | ItemKind.ARGUMENT:
                used = any(name in self.names for name in item.names)
            case ItemKind.LITERAL:
                used = item.names[0] in self.raws
                if used and self.words and not item.names[0].startswith("-"):
                    self.words -= 1
            case ItemKind.POSITIONAL | ItemKind.ANY:
                used = False
                if self.words and not repeatable:
                    self.words -= 1
                    used = True
            case _:
                used = False
        self.frames[-1].append([Entry(item, repeatable, used)])

    def push_group(self, group, node, /):
        self.repeating += group is Group.MANY
        self.frames.append([])

    def pop_group(self, group, node, /):
        self.repeating -= group is Group.MANY
        chunks = self.frames.pop()
        if group is Group.SUM:
            for chunk in chunks:
                if any(entry.used for entry in chunk):
                    chunks = [chunk]
                    break
        self.frames[-1].append([entry for chunk in chunks for entry in chunk])

    @property
    def entries(self):
        return [entry for chunk in self.frames[0] for entry in chunk]


def _command(tokens, index):
    """the command a word of `tokens` enters, with the position of that word."""
    for position, token in enumerate(tokens):
        if token.kind is not TokenKind.WORD or token.strict:
            continue
        if position and (previous := tokens[position - 1]).named and previous.value is None and previous.name in index.argument_names:
            continue
        if (command := index.commands.get(token.raw)) is not None:
            return command, token.origin
    return None, None


def candidates(program, before, current, /):
    """
    Completion candidates for `current`, given the complete words `before` it.

    Returns
    - list of Candidate, in grammar order, without duplicates.
    """
    index = program._index
    tokens = split(before, flags=index.flag_shorts, arguments=index.argument_shorts)
    if isinstance(tokens, Failure):
        return []

    command, origin = _command(tokens, index)
    if command is not None:
        logger.debug("completing inside command %r", command._names[0])
        return candidates(command._program, before[origin + 1:], current)

    found = []
    if current.startswith("--") and "=" in current:
        name, _, prefix = current.partition("=")
        for node in index.arguments.get(name, ()):
            if not node._hidden:
                found.extend(Candidate(f"{name}={value.text}", value.descr) for value in _values(node, prefix))
        return _unique(found)

    if tokens and (previous := tokens[-1]).named and previous.value is None and previous.name in index.arguments:
        for node in index.arguments[previous.name]:
            if not node._hidden:
                found.extend(_values(node, current))
        return _unique(found)

    names = {token.name for token in tokens if token.named}
    free = sum(
        1 for position, token in enumerate(tokens)
        if token.kind is TokenKind.WORD and not (
            position and
            tokens[position - 1].named and
            tokens[position - 1].value is None and
            tokens[position - 1].name in index.argument_names
        )
    )
    visitor = Completion(names, free, frozenset(before))
    visit(program._grammar, visitor)
    entries = visitor.entries + [Entry(item(flag), False, bool(names & set(flag._names))) for flag in program._builtins]

    if current.startswith("-") or not current:
        for entry in entries:
            if entry.item.kind in (ItemKind.FLAG, ItemKind.ARGUMENT) and (entry.repeatable or not entry.used):
                if (name := _pick(entry.item.names, current)) is not None:
                    found.append(Candidate(name, _plain(entry.item.descr)))

    for entry in entries:
        if entry.item.kind is ItemKind.LITERAL and (entry.repeatable or not entry.used):
            if (word := entry.item.names[0]).startswith(current):
                found.append(Candidate(word, _plain(entry.item.descr)))

    if not current.startswith("-"):
        for entry in entries:
            if entry.item.kind in (ItemKind.POSITIONAL, ItemKind.ANY) and (entry.repeatable or not entry.used):
                found.extend(_values(entry.item.node, current))
                break
        for entry in entries:
            if entry.item.kind is ItemKind.COMMAND and (name := _pick(entry.item.names, current)) is not None:
                found.append(Candidate(name, _plain(entry.item.descr)))

    logger.debug("%d completion candidate(s) for %r", len(found), current)
    return _unique(found)


def _unique(found):
    seen = set()
    unique = []
    for candidate in found:
        if candidate.text not in seen:
            seen.add(candidate.text)
            unique.append(candidate)
    return unique


def render(candidates, dialect, /):
    """
    Format candidates for a shell, one per line.

    - bash: the text alone,
    - zsh: "text:descr" (colons in the text escaped),
    - fish: "text<TAB>descr".
    """
    lines = []
    match dialect:
        case "bash":
            lines.extend(candidate.text for candidate in candidates)
        case "zsh":
            for candidate in candidates:
                text = candidate.text.replace(":", "\\:")
                lines.append(f"{text}:{candidate.descr}" if candidate.descr else text)
        case "fish":
            for candidate in candidates:
                lines.append(f"{candidate.text}\t{candidate.descr}" if candidate.descr else candidate.text)
        case _:
            raise ValueError(f"unknown shell dialect {dialect!r}, expected 'bash', 'zsh' or 'fish'")
    return "\n".join(lines)


__all__ = (
    "Candidate",
    "candidates",
    "words",
    "render",
)
