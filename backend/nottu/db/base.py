# backend/nottu/db/base.py

# Import every model so that Base.metadata knows all tables. Alembic's env.py
# and the test suite import Base from here.
from nottu.db.base_class import Base  # noqa: F401
from nottu.db.models.passkey import PasskeyCredential  # noqa: F401
from nottu.db.models.passkey_challenge import PasskeyChallenge  # noqa: F401
from nottu.db.models.user import User  # noqa: F401
