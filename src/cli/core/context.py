"""Context class for the LaLA audit CLI."""

import sys
from typing import Optional
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session
from rich.console import Console

from lala.config import LalaConfig


class Context:
    """Shared context for CLI commands."""

    def __init__(self):
        self.config: Optional[LalaConfig] = None
        self.engine: Optional[Engine] = None
        self.session: Optional[Session] = None
        self.verbose: bool = False
        self.console = Console()
        self.stderr_console = Console(file=sys.stderr)
