"""
Base strategy interface for dialect-specific procedure handling.

Each strategy knows how to build the SQLAlchemy URL for its dialect, how to
prepare a freshly opened DBAPI connection, and how to render a
`ProcedureCommand` as a call statement plus positional arguments. The
executor programs against this interface only.
"""
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from procmap.parameters import ExecutionMode, ProcedureCommand

if TYPE_CHECKING:
    import sqlalchemy as sa
    from procmap.options import DatabaseOptions

# Registry of dialect name -> strategy class
# Defined here to avoid circular imports (concrete strategies import from base)
_STRATEGY_REGISTRY: dict[str, type['ProcedureStrategy']] = {}


def register_strategy(dialect: str):
    """Decorator to register a strategy class for a dialect.

    Usage:
        @register_strategy('mssql')
        class SQLServerStrategy(ProcedureStrategy):
            ...
    """
    def decorator(cls: type['ProcedureStrategy']) -> type['ProcedureStrategy']:
        _STRATEGY_REGISTRY[dialect] = cls
        return cls
    return decorator


class ProcedureStrategy(ABC):
    """Base class for dialect-specific procedure operations.
    """

    placeholder: str = '%s'
    quote_chars: tuple[str, str] = ('"', '"')

    @property
    @abstractmethod
    def dialect_name(self) -> str:
        """Return the dialect identifier (e.g., 'mssql', 'postgresql')."""

    @classmethod
    @abstractmethod
    def get_required_options(cls) -> list[str]:
        """Return list of required option field names for this dialect.

        Returns
            List of field names that must have non-None/non-zero values
        """

    @classmethod
    def validate_options(cls, options: 'DatabaseOptions') -> None:
        """Validate options for this dialect.

        Raises
            ValueError: If any required field is None or 0
        """
        for field in cls.get_required_options():
            if not getattr(options, field):
                raise ValueError(f'field {field} cannot be None or 0')

    @abstractmethod
    def build_connection_url(self, options: 'DatabaseOptions') -> 'sa.URL':
        """Build the SQLAlchemy connection URL for this dialect.
        """

    def get_engine_kwargs(self, options: 'DatabaseOptions') -> dict[str, Any]:
        """Return SQLAlchemy create_engine kwargs for this dialect.
        """
        return {}

    @abstractmethod
    def configure_connection(self, raw_conn: Any) -> None:
        """Prepare a newly opened DBAPI connection.

        Args:
            raw_conn: The raw DBAPI connection (not wrapped)
        """

    def quote_identifier(self, identifier: str) -> str:
        """Quote a single identifier, doubling embedded closing quotes.
        """
        opening, closing = self.quote_chars
        return opening + identifier.replace(closing, closing * 2) + closing

    def quote_procedure_name(self, name: str) -> str:
        """Quote a possibly schema-qualified procedure name.

        Names that already contain quote characters are used as given.
        """
        if any(ch in name for ch in self.quote_chars):
            return name
        return '.'.join(self.quote_identifier(part) for part in name.split('.'))

    @staticmethod
    def parameter_name(name: str) -> str:
        """Parameter name without the ``@`` prefix."""
        return name.lstrip('@')

    @abstractmethod
    def build_call(self, command: ProcedureCommand,
                   mode: ExecutionMode) -> tuple[str, tuple[Any, ...]]:
        """Render `command` as a statement and positional arguments.

        Args:
            command: Procedure name and bound parameters
            mode: How the result will be consumed

        Returns
            (sql, args) ready for ``cursor.execute``
        """
