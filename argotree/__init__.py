__title__ = 'argotree'
__license__ = 'MIT'
__version__ = "0.1.0"

from .appearance import *
from .complete import *
from .faults import *
from .grammar import *
from .program import *

VersionInfo = __import__("collections").namedtuple("VersionInfo", (
    "major",
    "minor",
    "micro",
    "releaselevel",
    "serial",
    "metadata"
))

version_info = VersionInfo(0, 1, 0, "final", 0, "")

__all__ = (
    "__title__",
    "__license__",
    "__version__",
    "version_info"
)

# Load the exposed API of the appearance
__all__ += appearance.__all__  # type: ignore[attr-defined]
# Load the exposed API of the completion
__all__ += complete.__all__  # type: ignore[attr-defined]
# Load the exposed API of the faults
__all__ += faults.__all__  # type: ignore[attr-defined]
# Load the exposed API of the grammar
__all__ += grammar.__all__  # type: ignore[attr-defined]
# Load the exposed API of the program
__all__ += program.__all__  # type: ignore[attr-defined]
