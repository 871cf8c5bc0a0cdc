"""
handlers/unsupported.py -- Fallback for technologies with no handler.
"""

from core.errors import FixReason, UnsupportedFixError
from core.models import FixTarget

from .base import PackageHandler


class UnsupportedHandler(PackageHandler):
    """Refuses every fix without touching the working directory."""

    def __init__(self, working_dir, settings=None, technology: str = "") -> None:
        super().__init__(working_dir, settings)
        self.technology = technology

    def apply_fix(self, target: FixTarget) -> None:
        raise UnsupportedFixError(
            target.name, target.fix_version, FixReason.UNSUPPORTED_TECHNOLOGY, self.technology or target.technology
        )
