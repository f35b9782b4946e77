from __future__ import annotations

from .base import Driver, statement_phase
from .composite import CompositeDriver
from .simple import SimpleDriver

__all__ = ["CompositeDriver", "Driver", "SimpleDriver", "statement_phase"]
