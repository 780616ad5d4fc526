"""
Grammar traversal shared by the reporters.

visit(node, visitor) walks a grammar in declaration order and reports it to a
Visitor as a stream of events:
- item(Item): a leaf (flag, argument, positional, command, any or literal),
- push_group(Group, node) / pop_group(Group, node): bracket every nesting level,
  so a renderer can tell "all of" (PRODUCT) from "exactly one of" (SUM),
  "zero or more of" (MANY) and "maybe" (OPTIONAL),
- command(Item) -> bool: whether to descend into a command's sub-grammar
  (bracketed as SUBPARSER).

Leaves that produce a value when absent (a switch, an argument with a default)
are reported inside their own OPTIONAL group. Hidden nodes are skipped unless
the visitor sets hidden = True.
"""
import enum
from typing import NamedTuple

from .grammar import *
from .utils import *


class ItemKind(enum.Enum):
    FLAG = "flag"
    ARGUMENT = "argument"
    POSITIONAL = "positional"
    COMMAND = "command"
    ANY = "any"
    LITERAL = "literal"


class Group(enum.Enum):
    PRODUCT = "product"
    SUM = "sum"
    MANY = "many"
    OPTIONAL = "optional"
    SUBPARSER = "subparser"
    SECTION = "section"


class Item(NamedTuple):
    """
    One leaf as seen by a reporter.

    - names: declared names (shorts first) for flags, arguments and commands,
      the word of a literal.
    - metavar: value label for arguments, positionals and any-items.
    - descr: description, None when there is none.
    - node: the grammar node itself (None for built-in help/version items).
    """
    kind: ItemKind
    names: tuple = ()
    metavar: str | None = None
    descr: object = None
    node: object = None

    def __str__(self):
        """the usage form of the item: -a, -b=N, FILE, +word or COMMAND."""
        match self.kind:
            case ItemKind.FLAG:
                return self.names[0]
            case ItemKind.ARGUMENT:
                return f"{self.names[0]}={self.metavar}"
            case ItemKind.POSITIONAL | ItemKind.ANY:
                return self.metavar
            case ItemKind.LITERAL:
                return self.names[0]
            case ItemKind.COMMAND:
                return "COMMAND"


class Visitor:
    """No-op base; override what you need."""
    hidden = False

    def item(self, item, /):
        pass

    def command(self, item, /):
        return False

    def push_group(self, group, node, /):
        pass

    def pop_group(self, group, node, /):
        pass


def item(node, /):
    """the Item describing a leaf node."""
    match node:
        case Flag():
            return Item(ItemKind.FLAG, node._names, None, node._descr, node)
        case Argument():
            return Item(ItemKind.ARGUMENT, node._names, node._metavar, node._descr, node)
        case Positional():
            return Item(ItemKind.POSITIONAL, (), node._metavar, node._descr, node)
        case Command():
            return Item(ItemKind.COMMAND, node._names, None, node._descr, node)
        case Any():
            return Item(ItemKind.ANY, (), node._metavar, node._descr, node)
        case Literal():
            return Item(ItemKind.LITERAL, (node._word,), None, node._descr, node)
    raise TypeError(f"{type(node).__typename__} is not a leaf")


def required(node, /):
    """False for leaves that produce a value when absent."""
    match node:
        case Flag():
            return node._required
        case Argument() | Positional():
            return node._default is Unset
        case _:
            return True


def visit(node, visitor, /):
    if node._hidden and not visitor.hidden:
        return

    if node._title is not None:
        visitor.push_group(Group.SECTION, node)

    match node:
        case Flag() | Argument() | Positional() | Any() | Literal():
            if required(node):
                visitor.item(item(node))
            else:
                visitor.push_group(Group.OPTIONAL, node)
                visitor.item(item(node))
                visitor.pop_group(Group.OPTIONAL, node)
        case Command():
            visitor.item(command := item(node))
            if visitor.command(command):
                visitor.push_group(Group.SUBPARSER, node)
                visit(node._program._grammar, visitor)
                visitor.pop_group(Group.SUBPARSER, node)
        case Pure():
            pass
        case Product():
            visitor.push_group(Group.PRODUCT, node)
            for child in node._children:
                visit(child, visitor)
            visitor.pop_group(Group.PRODUCT, node)
        case Sum():
            visitor.push_group(Group.SUM, node)
            for alternative in node._alternatives:
                visit(alternative, visitor)
            visitor.pop_group(Group.SUM, node)
        case Many():
            visitor.push_group(Group.MANY, node)
            visit(node._inner, visitor)
            visitor.pop_group(Group.MANY, node)
        case Optional():
            visitor.push_group(Group.OPTIONAL, node)
            visit(node._inner, visitor)
            visitor.pop_group(Group.OPTIONAL, node)
        case _:
            raise TypeError(f"unknown grammar node {type(node).__name__!r}")

    if node._title is not None:
        visitor.pop_group(Group.SECTION, node)


class Collector(Visitor):
    """every Item of a grammar, commands not descended."""

    def __init__(self):
        self.items = []

    def item(self, item, /):
        self.items.append(item)


def items(node, /):
    collector = Collector()
    visit(node, collector)
    return tuple(collector.items)


class Index(Visitor):
    """
    Name tables of one program.

    Level tables (this program only, hidden items included)
    - names: every flag/argument name.
    - longs: long names, for suggestions.
    - commands: command word -> Command node.
    - arguments: name -> Argument nodes declaring it.

    Global tables (nested programs included), used by the tokenizer
    - flag_shorts / argument_shorts / argument_names.
    """
    hidden = True

    def __init__(self):
        self.depth = 0
        self.names = set()
        self.longs = []
        self.commands = {}
        self.arguments = {}
        self.flag_shorts = set()
        self.argument_shorts = set()
        self.argument_names = set()

    @classmethod
    def of(cls, grammar, /, *builtins):
        self = cls()
        for flag in builtins:
            visit(flag, self)
        visit(grammar, self)
        return self

    def item(self, item, /):
        shorts = [name for name in item.names if not name.startswith("--")]
        match item.kind:
            case ItemKind.FLAG:
                self.flag_shorts.update(shorts)
            case ItemKind.ARGUMENT:
                self.argument_shorts.update(shorts)
                self.argument_names.update(item.names)
        if self.depth:
            return
        match item.kind:
            case ItemKind.FLAG | ItemKind.ARGUMENT:
                self.names.update(item.names)
                self.longs.extend(name for name in item.names if name.startswith("--") and name not in self.longs)
                if item.kind is ItemKind.ARGUMENT:
                    for name in item.names:
                        self.arguments.setdefault(name, []).append(item.node)
            case ItemKind.COMMAND:
                for name in item.names:
                    self.commands.setdefault(name, item.node)

    def command(self, item, /):
        for flag in item.node._program._builtins:
            self.flag_shorts.update(name for name in flag._names if not name.startswith("--"))
        return True

    def push_group(self, group, node, /):
        self.depth += group is Group.SUBPARSER

    def pop_group(self, group, node, /):
        self.depth -= group is Group.SUBPARSER


__all__ = (
    "ItemKind",
    "Group",
    "Item",
    "Visitor",
    "Collector",
    "Index",
    "visit",
    "items",
)
