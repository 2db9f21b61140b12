import pytest_asyncio

from pump_token_tracker.db import Database


@pytest_asyncio.fixture
async def db(tmp_path):
    database = await Database.connect(str(tmp_path / "tracker.db"))
    await database.init()
    yield database
    await database.close()
