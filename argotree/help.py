"""
Argotree reporters: usage line, help page and version banner.

All three walk the grammar with the same visit() the name index uses, so the
documentation can only mention names the grammar declares. They return rich
renderables; Appearance.render turns them into plain strings.

Help layout
- description, header,
- "Usage: <route> <synthesized usage>",
- one block per section: positional items, options (built-ins last),
  commands, then every custom .group(title) section in encounter order,
- footer.
"""
from rich.console import Group as Renderables
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .grammar import Optional
from .visitor import *
from .visitor import item

_positionals = "Available positional items:"
_options = "Available options:"
_commands = "Available commands:"


# --- usage ---

def _wrap(fragment, context):
    text, kind = fragment
    if kind == "sum" and context != "top":
        return "(%s)" % text
    return text


def _fold(group, fragments):
    """fold the fragments of one nesting level into a single (text, kind)."""
    parts = [fragment for fragment in fragments if fragment is not None]
    if not parts:
        return None

    match group:
        case Group.SUM:
            alternatives = []
            for text, kind in parts:
                if text not in alternatives:
                    alternatives.append(text)
            if len(alternatives) == 1:
                return parts[0]
            return " | ".join(alternatives), "sum"
        case Group.OPTIONAL:
            text, kind = inner = _fold(Group.PRODUCT, parts)
            if kind == "optional":
                return inner
            return "[%s]" % text, "optional"
        case Group.MANY:
            text, kind = inner = _fold(Group.PRODUCT, parts)
            if kind in ("item", "optional"):
                return "%s..." % text, "many"
            return "(%s)..." % text, "many"
        case _:
            if len(parts) == 1:
                return parts[0]
            return " ".join(_wrap(part, "product") for part in parts), "product"


class Usage(Visitor):
    """Synthesizes the usage line of one program level."""

    def __init__(self):
        self.frames = [[]]

    def item(self, item, /):
        if item.kind is ItemKind.COMMAND:
            self.frames[-1].append(("COMMAND ...", "item"))
        else:
            self.frames[-1].append((str(item), "item"))

    def push_group(self, group, node, /):
        self.frames.append([])

    def pop_group(self, group, node, /):
        fragments = self.frames.pop()
        self.frames[-1].append(_fold(group, fragments))

    @property
    def text(self):
        if (folded := _fold(Group.PRODUCT, self.frames[0])) is None:
            return ""
        return _wrap(folded, "top")


def usage(node, /):
    """the synthesized usage of a grammar, without the program name."""
    visitor = Usage()
    visit(node, visitor)
    return visitor.text


def _usage_line(program, appearance, route):
    styler, text = appearance.styler, appearance.text
    line = Text()
    line.append(text("Usage", styler("usage-label"))).append(": ")
    if program.usage:
        return line.append(text(program.usage, styler("usage-section")))
    line.append(text(" ".join(route), styler("program-name")))
    if body := usage(program.grammar):
        line.append(" ").append(text(body, styler("usage-section")))
    return line


def render_usage(program, appearance, route, /):
    return _usage_line(program, appearance, route)


# --- help ---

class Help(Visitor):
    """
    Collects the help rows of one program level, section by section.

    A row is [item, annotations]; a shown fallback annotates the single row
    produced below it with its default value.
    """

    def __init__(self):
        self.sections = {}
        self.titles = []
        self.rows = []
        self.marks = []
        self.seen = set()

    def _section(self, item):
        if self.titles:
            return self.titles[-1]
        match item.kind:
            case ItemKind.POSITIONAL | ItemKind.ANY | ItemKind.LITERAL:
                return _positionals
            case ItemKind.COMMAND:
                return _commands
            case _:
                return _options

    def item(self, item, /):
        if (key := (item.kind, item.names, item.metavar)) in self.seen:
            return
        self.seen.add(key)

        annotations = []
        node = item.node
        if getattr(node, "_env", None):
            annotations.append("[env:%s]" % node._env)
        if choices := getattr(node, "_choices", ()):
            annotations.append("[possible values: %s]" % ", ".join(map(str, choices)))
        if getattr(node, "_deprecated", False):
            annotations.append("(deprecated)")

        row = [item, annotations]
        self.rows.append(row)
        self.sections.setdefault(self._section(item), []).append(row)

    def push_group(self, group, node, /):
        match group:
            case Group.SECTION:
                self.titles.append(node._title)
            case Group.OPTIONAL if isinstance(node, Optional) and node._shown:
                self.marks.append(len(self.rows))

    def pop_group(self, group, node, /):
        match group:
            case Group.SECTION:
                self.titles.pop()
            case Group.OPTIONAL if isinstance(node, Optional) and node._shown:
                if len(self.rows) - self.marks.pop() == 1 and node._default is not None:
                    self.rows[-1][1].insert(0, "[default: %s]" % node._default)


def _names(item, appearance):
    styler, text = appearance.styler, appearance.text
    deprecated = getattr(item.node, "_deprecated", False)

    match item.kind:
        case ItemKind.FLAG:
            style = "deprecated-name" if deprecated else "flag-name"
            return Text(", ").join(text(name, styler(style)) for name in item.names)
        case ItemKind.ARGUMENT:
            style = "deprecated-name" if deprecated else "option-name"
            names = Text(", ").join(text(name, styler(style)) for name in item.names)
            return names.append("=").append(text(item.metavar, styler("metavar")))
        case ItemKind.POSITIONAL:
            return text(item.metavar, styler("deprecated-name" if deprecated else "metavar"))
        case ItemKind.ANY:
            return text(item.metavar, styler("metavar"))
        case ItemKind.LITERAL:
            return text(item.names[0], styler("flag-name"))
        case ItemKind.COMMAND:
            return Text(", ").join(text(name, styler("command-name")) for name in item.names)


def _description(item, annotations, appearance):
    styler, text = appearance.styler, appearance.text
    fragments = []
    if item.descr:
        fragments.append(text(item.descr, styler("argument-description")))
    fragments.extend(text(annotation, styler("annotation")) for annotation in annotations)
    return Text(" ").join(fragments)


def render_help(program, appearance, route, /):
    styler, text = appearance.styler, appearance.text

    visitor = Help()
    visit(program.grammar, visitor)
    for flag in program.builtins:
        visitor.item(item(flag))

    renders = []
    if program.descr:
        renders.extend((text(program.descr, styler("description-section")), Text("")))
    if program.header:
        renders.extend((text(program.header, styler("description-section")), Text("")))

    renders.append(_usage_line(program, appearance, route))

    for title, rows in visitor.sections.items():
        table = Table.grid(padding=(0, 2), pad_edge=True)
        table.add_column(no_wrap=True)
        table.add_column()
        for row, annotations in rows:
            table.add_row(_names(row, appearance), _description(row, annotations, appearance))
        renders.extend((Text(""), text(title, styler("group-label")), table))

    if program.footer:
        renders.extend((Text(""), text(program.footer, styler("epilog-section"))))

    renderable = Renderables(*renders)
    if appearance.fancy:
        renderable = Panel(
            renderable,
            title=Text.assemble("[", " ", f"{route[-1]} HELP".upper(), " ", "]", style=styler("panel-title")),
            title_align="left",
        )
    return renderable


# --- version ---

def render_version(program, appearance, /):
    styler, text = appearance.styler, appearance.text
    renderable = Text(" — ").join((
        text(program.name, styler("program-name")),
        text(program.version or "unknown", styler("program-version")),
    ))
    if appearance.fancy:
        renderable = Panel(
            renderable,
            title=Text.assemble("[", " ", f"{program.name} VERSION".upper(), " ", "]", style=styler("panel-title")),
            title_align="left",
        )
    return renderable


__all__ = (
    "Usage",
    "Help",
    "usage",
    "render_usage",
    "render_help",
    "render_version",
)
