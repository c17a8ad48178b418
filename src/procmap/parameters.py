"""
Procedure invocation and parameter binding.

Parameters are passed as one flat sequence of alternating names and values:

    executor.execute('dbo.UpdateUser', '@username', 'steve', '@active', True)
"""
import enum
import logging
import re
from collections.abc import Iterator, Sequence
from typing import Any

from procmap.conversion import ParameterConverter
from procmap.exceptions import ParameterCountError, ParameterError

logger = logging.getLogger(__name__)

__all__ = ['ExecutionMode', 'ProcedureCommand', 'bind_parameters', 'pairwise_parameters']

PARAMETER_NAME = re.compile(r'@?[A-Za-z_][A-Za-z0-9_]*')


class ExecutionMode(enum.Enum):
    """How the procedure's output will be consumed."""
    NON_QUERY = 'non_query'
    READER = 'reader'
    SCALAR = 'scalar'
    FILL = 'fill'


class ProcedureCommand:
    """A stored procedure call being prepared: name plus ordered parameters.

    Names are stored without the ``@`` prefix, so ``@id`` and ``id`` are the
    same parameter. Rebinding a name replaces its value and keeps its
    original position.
    """

    def __init__(self, name: str) -> None:
        if not name or not isinstance(name, str):
            raise ValueError('procedure name must be a non-empty string')
        self.name = name
        self.parameters: dict[str, Any] = {}

    def add(self, name: str, value: Any) -> None:
        if not isinstance(name, str) or not PARAMETER_NAME.fullmatch(name):
            raise ParameterError(f'parameter name must be an identifier, got {name!r}')
        name = name.lstrip('@')
        if name in self.parameters:
            logger.debug(f'Parameter {name} bound twice on {self.name}, keeping last value')
        self.parameters[name] = ParameterConverter.convert_value(value)

    def __len__(self) -> int:
        return len(self.parameters)

    def __iter__(self) -> Iterator[tuple[str, Any]]:
        return iter(self.parameters.items())

    def __repr__(self) -> str:
        return f'ProcedureCommand({self.name!r}, {list(self.parameters)})'


def pairwise_parameters(params: Sequence[Any]) -> list[tuple[str, Any]]:
    """Split an alternating name/value sequence into pairs.

    Raises
        ParameterCountError: odd number of items
        ParameterError: a name is not an identifier, optionally prefixed with ``@``

    >>> pairwise_parameters(['@id', 1, '@name', 'steve'])
    [('@id', 1), ('@name', 'steve')]
    """
    if len(params) % 2 != 0:
        raise ParameterCountError(
            f'must contain an even number of parameters, got {len(params)}')
    pairs = []
    for i in range(0, len(params), 2):
        name = params[i]
        if not isinstance(name, str) or not PARAMETER_NAME.fullmatch(name):
            raise ParameterError(f'parameter name at position {i} must be an identifier, got {name!r}')
        pairs.append((name, params[i + 1]))
    return pairs


def bind_parameters(command: ProcedureCommand, params: Sequence[Any]) -> None:
    """Validate `params` and add each pair to `command` in order.
    """
    for name, value in pairwise_parameters(params):
        command.add(name, value)
