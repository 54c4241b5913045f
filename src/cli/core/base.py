"""Base command classes for the LaLA audit CLI."""

from abc import ABC, abstractmethod
from cli.core.context import Context
from cli.core.utils import EXIT_ERROR
from lala.anonymize import SqlAlchemySchema


class BaseCommand(ABC):
    """Base class for all commands."""

    def __init__(self, ctx: Context):
        self.ctx = ctx
        self.session = ctx.session
        self.console = ctx.console

    @abstractmethod
    def execute(self, **kwargs) -> int:
        """Execute command. Returns exit code."""
        pass

    def handle_exception(self, e: Exception) -> int:
        """Common error handling."""
        self.ctx.stderr_console.print(f"❌ Error: {e}", style="bold red")
        if self.ctx.verbose:
            import traceback
            self.ctx.stderr_console.print(traceback.format_exc(), style="dim")
        return EXIT_ERROR


class BaseSchemaCommand(BaseCommand):
    """Base for commands reading the LMS tables."""

    def get_schema(self) -> SqlAlchemySchema:
        return SqlAlchemySchema(self.ctx.engine, id_chunk_size=self.ctx.config.id_chunk_size)

    def table_exists(self, schema: SqlAlchemySchema, table: str) -> bool:
        return table in schema.list_tables()
