"""
handlers/dispatcher.py -- Routes a fix target to its ecosystem's handler.

One dispatcher serves one working directory. It creates at most one handler
per technology and keeps it for the dispatcher's lifetime, so the handler's
caches are shared across the fix targets of one pass and never across
projects.
"""

import logging
from pathlib import Path
from typing import Optional

from core.config import Settings
from core.models import FixTarget, Technology

from .base import PackageHandler
from .go import GoHandler
from .gradle import GradleHandler
from .maven import MavenHandler
from .npm import NpmHandler, YarnHandler
from .nuget import NugetHandler
from .pip import PipHandler
from .pipenv import PipenvHandler
from .poetry import PoetryHandler
from .unsupported import UnsupportedHandler

logger = logging.getLogger("remediator.dispatcher")

HANDLERS: dict[Technology, type[PackageHandler]] = {
    Technology.GO: GoHandler,
    Technology.MAVEN: MavenHandler,
    Technology.GRADLE: GradleHandler,
    Technology.NPM: NpmHandler,
    Technology.YARN: YarnHandler,
    Technology.NUGET: NugetHandler,
    Technology.DOTNET: NugetHandler,
    Technology.PIP: PipHandler,
    Technology.PIPENV: PipenvHandler,
    Technology.POETRY: PoetryHandler,
}


class PackageHandlerDispatcher:
    def __init__(self, working_dir, settings: Optional[Settings] = None, technology: Optional[str] = None) -> None:
        """technology, when given, overrides the tag carried by each fix target."""
        self.working_dir = Path(working_dir)
        self.settings = settings
        self.technology = technology
        self._handlers: dict[str, PackageHandler] = {}

    def handler_for(self, tag: str) -> PackageHandler:
        tag = (tag or "").strip().lower()
        handler = self._handlers.get(tag)
        if handler is None:
            technology = Technology.from_tag(tag)
            if technology is None:
                handler = UnsupportedHandler(self.working_dir, self.settings, technology=tag)
            else:
                handler = HANDLERS[technology](self.working_dir, self.settings)
            self._handlers[tag] = handler
            logger.debug("Using %s for technology %r", type(handler).__name__, tag)
        return handler

    def apply_fix(self, target: FixTarget) -> None:
        self.handler_for(self.technology or target.technology).apply_fix(target)
