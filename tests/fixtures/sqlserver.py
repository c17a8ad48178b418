import logging
import os
import sys
import time

import docker
import procmap
import pyodbc
import pytest

HERE = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, HERE)
sys.path.append('..')
import config

logger = logging.getLogger(__name__)

PROCEDURES = [
    """
CREATE OR ALTER PROCEDURE dbo.sp_GetUsers
AS
BEGIN
    SET NOCOUNT ON;
    SELECT id AS Id, name AS Name FROM dbo.test_users ORDER BY id;
END
""",
    """
CREATE OR ALTER PROCEDURE dbo.sp_GetUser
    @id INT
AS
BEGIN
    SET NOCOUNT ON;
    SELECT id AS Id, name AS Name, score AS Score FROM dbo.test_users WHERE id = @id;
END
""",
    """
CREATE OR ALTER PROCEDURE dbo.sp_CountUsers
AS
BEGIN
    SET NOCOUNT ON;
    SELECT COUNT(*) FROM dbo.test_users;
END
""",
    """
CREATE OR ALTER PROCEDURE dbo.sp_CountUsersAsText
AS
BEGIN
    SET NOCOUNT ON;
    SELECT CAST(COUNT(*) AS VARCHAR(10)) FROM dbo.test_users;
END
""",
    """
CREATE OR ALTER PROCEDURE dbo.sp_AddUser
    @name VARCHAR(255),
    @score DECIMAL(10, 2)
AS
BEGIN
    SET NOCOUNT ON;
    INSERT INTO dbo.test_users (name, score) VALUES (@name, @score);
END
""",
    """
CREATE OR ALTER PROCEDURE dbo.sp_UsersAndCount
AS
BEGIN
    SET NOCOUNT ON;
    SELECT id AS Id, name AS Name FROM dbo.test_users ORDER BY id;
    SELECT COUNT(*) AS Total FROM dbo.test_users;
END
""",
]


def _odbc_connection_string(database):
    return (
        f'DRIVER={{{config.mssql.driver}}};'
        f'SERVER={config.mssql.hostname},{config.mssql.port};'
        f'DATABASE={database};'
        f'UID={config.mssql.username};'
        f'PWD={config.mssql.password};'
        f'Connection Timeout={config.mssql.timeout or 5};'
        f'TrustServerCertificate=yes;'
    )


@pytest.fixture(scope='session')
def sqlserver_docker(request):
    try:
        client = docker.from_env()
    except docker.errors.DockerException as e:
        pytest.skip(f'Docker is not available: {e}')

    try:
        old_container = client.containers.get('test_sqlserver')
        logger.info('Found existing test container, removing it')
        old_container.stop()
        old_container.remove()
    except docker.errors.NotFound:
        pass
    except Exception as e:
        logger.warning(f'Error when cleaning up container: {e}')

    container = client.containers.run(
        image='mcr.microsoft.com/mssql/server:2022-latest',
        auto_remove=True,
        environment={
            'ACCEPT_EULA': 'Y',
            'MSSQL_SA_PASSWORD': config.mssql.password,
            'MSSQL_PID': 'Developer',
        },
        name='test_sqlserver',
        ports={'1433/tcp': str(config.mssql.port)},
        detach=True,
        remove=True,
    )

    def finalizer():
        try:
            container.stop()
        except Exception as e:
            logger.warning(f'Error stopping container during cleanup: {e}')

    request.addfinalizer(finalizer)

    logger.info('Waiting for SQL Server to initialize...')
    time.sleep(5)

    for _ in range(60):
        try:
            conn = pyodbc.connect(_odbc_connection_string('master'))
            conn.close()
            logger.info('SQL Server is ready')
            break
        except pyodbc.Error as e:
            logger.info(f'Waiting for SQL Server to start: {e}')
            time.sleep(2)
    else:
        raise Exception('SQL Server container failed to start in time')

    return container


def stage_test_data():
    """Recreate the users table and the procedures under test.
    """
    conn = pyodbc.connect(_odbc_connection_string(config.mssql.database), autocommit=True)
    try:
        cursor = conn.cursor()
        cursor.execute("IF OBJECT_ID('dbo.test_users', 'U') IS NOT NULL DROP TABLE dbo.test_users")
        cursor.execute("""
CREATE TABLE dbo.test_users (
    id INT IDENTITY(1,1) NOT NULL PRIMARY KEY,
    name VARCHAR(255) NOT NULL,
    score DECIMAL(10, 2) NULL
);
""")
        cursor.execute("INSERT INTO dbo.test_users (name, score) VALUES (?, ?), (?, ?)",
                       'Alice', 91.5, 'Bob', None)
        for sql in PROCEDURES:
            cursor.execute(sql)
        cursor.close()
    finally:
        conn.close()


@pytest.fixture
def sexec(sqlserver_docker):
    """
    Executor fixture with function scope for clean tests.
    Each test gets reset test data.
    """
    stage_test_data()
    return procmap.connect('mssql', config=config)
