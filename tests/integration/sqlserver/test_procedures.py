"""
Integration tests for stored procedure execution against SQL Server.
"""
from dataclasses import dataclass
from decimal import Decimal

import procmap
import pytest


@dataclass
class User:
    Id: int = 0
    Name: str = ''
    Score: float | None = None


def test_get_multiple_maps_rows_in_order(sexec):
    """Test mapping every row of a procedure result"""
    users = procmap.get_multiple(sexec, 'dbo.sp_GetUsers', target=User)

    assert users == [User(1, 'Alice'), User(2, 'Bob')]


def test_get_single_converts_decimal(sexec):
    """Test that DECIMAL columns convert to a float attribute"""
    user = procmap.get_single(sexec, 'dbo.sp_GetUser', '@id', 1, target=User)

    assert user.Name == 'Alice'
    assert user.Score == 91.5
    assert isinstance(user.Score, float)


def test_get_single_null_into_optional(sexec):
    """Test NULL column into an Optional attribute"""
    user = procmap.get_single(sexec, 'dbo.sp_GetUser', '@id', 2, target=User)

    assert user.Name == 'Bob'
    assert user.Score is None


def test_get_single_no_rows(sexec):
    """Test that an empty result maps to None"""
    assert procmap.get_single(sexec, 'dbo.sp_GetUser', '@id', 99, target=User) is None


def test_get_scalar(sexec):
    """Test scalar result with and without a requested type"""
    assert procmap.get_scalar(sexec, 'dbo.sp_CountUsers', type_=int) == 2

    with pytest.raises(procmap.InvalidCastError):
        procmap.get_scalar(sexec, 'dbo.sp_CountUsersAsText', type_=int)


def test_execute_then_read(sexec):
    """Test that a non-query call is visible to the next call"""
    procmap.execute(sexec, 'dbo.sp_AddUser', '@name', 'Charlie', '@score', Decimal('70.25'))

    assert procmap.get_scalar(sexec, 'dbo.sp_CountUsers') == 3


def test_get_dataset_multiple_result_sets(sexec):
    """Test that every result set comes back as its own table"""
    tables = procmap.get_dataset(sexec, 'dbo.sp_UsersAndCount')

    assert len(tables) == 2
    assert tables[0] == [{'Id': 1, 'Name': 'Alice'}, {'Id': 2, 'Name': 'Bob'}]
    assert tables[1] == [{'Total': 2}]

    with pytest.raises(procmap.AmbiguousResultError):
        procmap.get_datatable(sexec, 'dbo.sp_UsersAndCount')


def test_odd_parameters_rejected(sexec):
    """Test that an odd parameter list fails before execution"""
    with pytest.raises(procmap.ParameterCountError):
        procmap.execute(sexec, 'dbo.sp_AddUser', '@name', 'Dana', '@score')

    assert procmap.get_scalar(sexec, 'dbo.sp_CountUsers') == 2


if __name__ == '__main__':
    __import__('pytest').main([__file__])
