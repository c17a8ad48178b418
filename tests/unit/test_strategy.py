"""
Tests for dialect strategies: registry, call rendering and URLs.
"""
import datetime
import struct

import pytest
from procmap.parameters import ExecutionMode, ProcedureCommand
from procmap.strategy import PostgresStrategy, SQLServerStrategy
from procmap.strategy import get_available_dialects, get_strategy
from procmap.strategy import get_strategy_class, is_supported_dialect
from procmap.strategy.sqlserver import SQL_SS_TIMESTAMPOFFSET
from procmap.strategy.sqlserver import _handle_datetimeoffset


def make_command(name, *params):
    command = ProcedureCommand(name)
    for i in range(0, len(params), 2):
        command.add(params[i], params[i + 1])
    return command


def test_registry():
    assert set(get_available_dialects()) >= {'mssql', 'postgresql'}
    assert is_supported_dialect('mssql')
    assert not is_supported_dialect('oracle')
    assert get_strategy_class('postgresql') is PostgresStrategy
    assert isinstance(get_strategy('mssql'), SQLServerStrategy)


def test_strategy_instances_cached():
    assert get_strategy('mssql') is get_strategy('mssql')


def test_unknown_dialect():
    with pytest.raises(ValueError, match='Unsupported dialect'):
        get_strategy('oracle')


@pytest.mark.parametrize('mode', list(ExecutionMode))
def test_sqlserver_build_call(mode):
    """Test EXEC rendering is the same for every execution mode"""
    strategy = get_strategy('mssql')
    command = make_command('dbo.GetUsers', '@active', True, 'since', '2023-01-01')

    sql, args = strategy.build_call(command, mode)

    assert sql == 'SET NOCOUNT ON; EXEC [dbo].[GetUsers] @active=?, @since=?'
    assert args == (True, '2023-01-01')


def test_sqlserver_build_call_without_parameters():
    sql, args = get_strategy('mssql').build_call(make_command('GetUsers'), ExecutionMode.READER)
    assert sql == 'SET NOCOUNT ON; EXEC [GetUsers]'
    assert args == ()


def test_sqlserver_quoted_name_used_as_given():
    sql, _ = get_strategy('mssql').build_call(make_command('[dbo].[Get Users]'), ExecutionMode.READER)
    assert sql == 'SET NOCOUNT ON; EXEC [dbo].[Get Users]'


def test_quote_identifier_escapes():
    assert get_strategy('mssql').quote_identifier('a]b') == '[a]]b]'
    assert get_strategy('postgresql').quote_identifier('a"b') == '"a""b"'


def test_postgres_build_call():
    strategy = get_strategy('postgresql')
    command = make_command('public.get_users', '@active', True)

    assert strategy.build_call(command, ExecutionMode.NON_QUERY) == \
        ('CALL "public"."get_users"(active => %s)', (True,))
    assert strategy.build_call(command, ExecutionMode.READER) == \
        ('SELECT * FROM "public"."get_users"(active => %s)', (True,))
    assert strategy.build_call(command, ExecutionMode.SCALAR)[0].startswith('SELECT * FROM')
    assert strategy.build_call(command, ExecutionMode.FILL)[0].startswith('SELECT * FROM')


def test_sqlserver_url(mssql_options):
    url = get_strategy('mssql').build_connection_url(mssql_options)

    assert url.drivername == 'mssql+pyodbc'
    assert url.host == 'localhost'
    assert url.database == 'test_db'
    assert url.query['driver'] == 'ODBC Driver 18 for SQL Server'
    assert 'TrustServerCertificate' not in url.query


def test_postgres_url(postgres_options):
    url = get_strategy('postgresql').build_connection_url(postgres_options)

    assert url.drivername == 'postgresql+psycopg'
    assert url.port == 5432
    assert url.query['application_name'] == postgres_options.appname


def test_sqlserver_configure_connection(mocker):
    raw_conn = mocker.Mock()
    get_strategy('mssql').configure_connection(raw_conn)

    assert raw_conn.autocommit is True
    raw_conn.add_output_converter.assert_called_once_with(SQL_SS_TIMESTAMPOFFSET, _handle_datetimeoffset)


def test_postgres_configure_connection(mocker):
    raw_conn = mocker.Mock()
    get_strategy('postgresql').configure_connection(raw_conn)
    assert raw_conn.autocommit is False


def test_handle_datetimeoffset():
    raw = struct.pack('<6hI2h', 2023, 5, 15, 10, 30, 0, 500000000, -4, 0)
    value = _handle_datetimeoffset(raw)

    assert value == datetime.datetime(2023, 5, 15, 10, 30, 0, 500000,
                                      datetime.timezone(datetime.timedelta(hours=-4)))
    assert _handle_datetimeoffset(None) is None


if __name__ == '__main__':
    __import__('pytest').main([__file__])
