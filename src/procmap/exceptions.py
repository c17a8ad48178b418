"""
Exception classes for stored procedure access and row mapping.
"""
import psycopg
import pyodbc
from sqlalchemy import exc as sa_exc


class DataAccessError(Exception):
    """Base class for all procmap errors.
    """


class ParameterError(DataAccessError, ValueError):
    """Invalid procedure parameter list.
    """


class ParameterCountError(ParameterError):
    """Parameter list does not hold an even number of items.
    """


class ConstructionError(DataAccessError, TypeError):
    """Target type cannot be constructed without arguments.
    """


class AmbiguousResultError(DataAccessError):
    """More than one table returned where exactly one was expected.
    """


class MultipleResultsError(DataAccessError):
    """More than one row returned where at most one was expected.
    """


class InvalidCastError(DataAccessError, TypeError):
    """Scalar result is not an instance of the requested type.
    """


class MappingError(DataAccessError):
    """Row could not be mapped onto the target type (strict mapping only).
    """


class TypeConversionError(DataAccessError):
    """Error converting a column value to an attribute type.
    """


# Driver errors propagate unchanged; group them for except clauses
ExecutionError = (
    sa_exc.DBAPIError,
    psycopg.Error,
    pyodbc.Error,
    )
