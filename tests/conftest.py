import os
from typing import AsyncIterator

import anysqlite
import pytest

from kayakcache import AsyncBaseStorage, AsyncInMemoryStorage, AsyncSqliteStorage


@pytest.fixture()
def use_temp_dir(tmpdir):
    cur_dir = os.getcwd()
    os.chdir(tmpdir)
    yield
    os.chdir(cur_dir)


@pytest.fixture(params=["memory", "sqlite"])
async def storage(request: pytest.FixtureRequest) -> AsyncIterator[AsyncBaseStorage]:
    """Every storage backend, the sqlite one on an in-memory database."""
    if request.param == "memory":
        yield AsyncInMemoryStorage()
        return

    sqlite_storage = AsyncSqliteStorage(connection=await anysqlite.connect(":memory:"))
    yield sqlite_storage
    await sqlite_storage.close()
