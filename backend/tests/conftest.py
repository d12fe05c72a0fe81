import os
import tempfile

# point the app at a throwaway database before anything imports retread.config
_tmpdir = tempfile.mkdtemp(prefix="retread-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_tmpdir, 'test.db')}"
os.environ.pop("SHEET_ENDPOINT_URL", None)
os.environ["RESET_DB"] = "0"

import pytest

from retread.db import init_db


@pytest.fixture()
def fresh_db():
    init_db(reset=True)
    yield
