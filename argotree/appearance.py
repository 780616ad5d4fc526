"""
Rendering configuration handed to every reporter at call time.

Appearance replaces a process-wide style switch: help, usage, version and
diagnostics all receive the Appearance they should honour, and a sub-program
inherits its parent's unless it was given its own.
"""
from collections import defaultdict
from collections.abc import Mapping
from types import MappingProxyType

from rich.console import Console
from rich.text import Text

from .utils import *

_palette = MappingProxyType({
    # === Diagnostics ===
    "prog-name": "bold #E6E6F0",  # near-white program name
    "code": "bold #00E5FF",  # neon cyan fault code
    "error-label": "bold #FF4DA6",  # friendly pinky label
    "error-message": "#C8C8D0",  # soft light gray message
    "warning-label": "bold #FFB400",  # amber label for warnings
    "warning-message": "#D6D6DE",
    "hint-arrow": "#9CE19C dim",  # gentle green arrow
    "hint": "italic #9CE19C",  # gentle green hint text

    # === Head sections ===
    "usage-label": "bold #00E6FF",
    "program-name": "bold #FF4D94",
    "program-version": "bold #36C5F0",
    "usage-section": "bold #36C5F0",
    "description-section": "italic #A3A3A3",
    "epilog-section": "#737373",

    # === Groups / items ===
    "group-label": "bold #FFFFFF",
    "argument-description": "#9CA3AF",
    "option-name": "bold #00E6FF",
    "flag-name": "bold #22C55E",
    "command-name": "bold #36C5F0",
    "deprecated-name": "bold #F97316 strike",
    "metavar": "bold #FFD600",
    "annotation": "#737373",

    # === Fancy panel ===
    "panel-title": "bold #FF4D94",
})


class Appearance:
    """
    Explicit rendering configuration.

    Parameters
    - colorful: bool
      Apply the palette when True; plain text otherwise (deprecated names keep
      their strike-through either way).
    - fancy: bool
      Wrap help, version and diagnostics in rich panels.
    - width: Unset | int
      Fixed console width; Unset lets rich detect the terminal.
    - styles: Mapping[str, str]
      Palette overrides, merged over the defaults.
    - codes: Mapping[FaultCode, str]
      Host labels shown instead of numeric fault codes.
    """
    __slots__ = ("_colorful", "_fancy", "_width", "_styles", "_codes")

    colorful = mirror("colorful")
    fancy = mirror("fancy")
    width = mirror("width")
    styles = mirror("styles")
    codes = mirror("codes")

    def __init__(self, *, colorful=False, fancy=False, width=Unset, styles=MappingProxyType({}), codes=MappingProxyType({})):
        if not isinstance(width, int | Unset) or isinstance(width, bool):
            raise TypeError("appearance 'width' must be an integer")
        elif width is not Unset and width < 20:
            raise ValueError("appearance 'width' must be at least 20 columns")
        if not isinstance(styles, Mapping):
            raise TypeError("appearance 'styles' must be a mapping")
        if not isinstance(codes, Mapping):
            raise TypeError("appearance 'codes' must be a mapping")

        self._colorful = bool(colorful)
        self._fancy = bool(fancy)
        self._width = width
        self._styles = MappingProxyType(defaultdict(str, _palette | dict(styles)))
        self._codes = MappingProxyType(dict(codes))

    def styler(self, style, /):
        """resolve a palette key, honouring colorful (deprecated styles always strike)."""
        if "deprecated" in style and not self._colorful:
            return "strike"
        return self._styles[style] if self._colorful else ""

    def text(self, fragment, style="", /):
        """normalize a fragment into rich Text, dropping styles when not colorful."""
        if not fragment:
            return Text("")
        if isinstance(fragment, Text):
            return fragment if self._colorful else Text(fragment.plain)
        return Text(str(fragment), style if self._colorful else "")

    def console(self, *, stderr=False, file=None):
        """build a console that renders with this appearance."""
        return Console(
            stderr=stderr,
            file=file,
            width=coalesce(self._width),
            no_color=not self._colorful,
            highlight=False,
            soft_wrap=False,
        )

    def render(self, renderable, /):
        """render to a plain string (no ANSI escapes unless colorful)."""
        console = Console(
            width=coalesce(self._width, 100),
            color_system="truecolor" if self._colorful else None,
            force_terminal=self._colorful,
            highlight=False,
            record=False,
        )
        with console.capture() as capture:
            console.print(renderable)
        return capture.get().rstrip("\n")

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(**{
            "colorful": self._colorful,
            "fancy": self._fancy,
            "width": self._width,
            "styles": {key: value for key, value in self._styles.items() if _palette.get(key) != value},
            "codes": self._codes,
        } | overrides)

    def __repr__(self):
        return f"appearance(colorful={self._colorful!r}, fancy={self._fancy!r}, width={self._width!r})"


__all__ = (
    "Appearance",
)
