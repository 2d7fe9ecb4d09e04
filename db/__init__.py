from .db import (
    Base,
    session_scope,
    create_all,
    dispose_engine,
    use_null_pool,
)  # noqa: F401
from . import appointments, ledger  # noqa: F401
