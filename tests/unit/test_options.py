import pandas as pd
import pytest
from procmap.options import DatabaseOptions, iterdict_data_loader
from procmap.options import pandas_numpy_data_loader
from procmap.options import pandas_pyarrow_data_loader
from procmap.types import Column


def test_init_defaults():
    """Test default initialization"""
    options = DatabaseOptions(
        hostname='testhost',
        username='testuser',
        password='testpass',
        database='testdb',
    )

    assert options.drivername == 'mssql'
    assert options.driver == 'ODBC Driver 18 for SQL Server'
    assert options.appname is not None
    assert options.data_loader == pandas_numpy_data_loader
    assert options.strict_mapping is False

    assert options.use_pool is False
    assert options.pool_max_connections == 5
    assert options.pool_max_idle_time == 300
    assert options.pool_wait_timeout == 30


def test_postgres_options():
    """Test PostgreSQL options require a port"""
    options = DatabaseOptions(
        drivername='postgresql',
        hostname='testhost',
        username='testuser',
        password='testpass',
        database='testdb',
        port=5432,
        strict_mapping=True,
    )
    assert options.port == 5432
    assert options.strict_mapping is True

    with pytest.raises(ValueError):
        DatabaseOptions(
            drivername='postgresql',
            hostname='testhost',
            username='testuser',
            password='testpass',
            database='testdb',
        )


def test_validation():
    """Test validation rules"""
    with pytest.raises(ValueError):
        DatabaseOptions(
            drivername='invalid',
            hostname='testhost',
            username='testuser',
            password='testpass',
            database='testdb',
        )

    with pytest.raises(ValueError):
        DatabaseOptions(drivername='mssql', hostname='testhost')


COLUMNS = [Column('Id', int), Column('Name', str)]
ROWS = [{'Id': 1, 'Name': 'Alice'}, {'Id': 2, 'Name': 'Bob'}]


def test_iterdict_data_loader():
    assert iterdict_data_loader(ROWS, COLUMNS) == ROWS
    assert iterdict_data_loader([], COLUMNS) == []


def test_pandas_numpy_data_loader():
    df = pandas_numpy_data_loader(ROWS, COLUMNS)

    assert list(df.columns) == ['Id', 'Name']
    assert df['Id'].tolist() == [1, 2]
    assert df.attrs['column_types']['Id']['python_type'] == 'int'


def test_pandas_pyarrow_data_loader():
    df = pandas_pyarrow_data_loader(ROWS, COLUMNS)

    assert list(df.columns) == ['Id', 'Name']
    assert isinstance(df['Name'].dtype, pd.ArrowDtype)
    assert df['Name'].tolist() == ['Alice', 'Bob']


@pytest.mark.parametrize('loader', [pandas_numpy_data_loader, pandas_pyarrow_data_loader])
def test_empty_dataframe_keeps_columns(loader):
    df = loader([], COLUMNS)

    assert isinstance(df, pd.DataFrame)
    assert df.empty
    assert list(df.columns) == ['Id', 'Name']


@pytest.mark.parametrize('loader', [pandas_numpy_data_loader, pandas_pyarrow_data_loader])
def test_loaders_follow_result_column_order(loader):
    """Test frame columns follow the procedure's columns, not dict key order"""
    rows = [{'Name': 'Alice', 'Id': 1}]
    df = loader(rows, COLUMNS)

    assert list(df.columns) == ['Id', 'Name']
    assert df['Id'].tolist() == [1]


if __name__ == '__main__':
    __import__('pytest').main([__file__])
