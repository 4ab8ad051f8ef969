"""NiceGUI pages for the number board.

Import this module to register all page routes with NiceGUI.
"""

from numbercall.pages import board, status

__all__ = ["board", "status"]

# Touch modules to prevent linter from removing "unused" imports.
# These imports register @ui.page decorators as a side effect.
_PAGES = (board, status)
