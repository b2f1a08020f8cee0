# init/init_db.py
import os
import sys

# 1. Project root on sys.path so `common` imports when run as a script
current_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(current_dir)
if project_root not in sys.path:
    sys.path.append(project_root)

from common.config import WorkerSettings  # noqa: E402  (loads .env)
from common import database, models  # noqa: E402,F401  models must be imported for create_all


def init_models(database_url=None, drop=False):
    """
    Create the sys_logs table.

    :param drop: drop existing tables first (wipes the audit log)
    """
    database_url = database_url if database_url is not None else WorkerSettings.from_env().database_url
    engine = database.configure(database_url)
    if engine is None:
        print("DATABASE_URL is empty, nothing to initialise")
        return None

    print(f"🔌 Connecting to: {engine.url.render_as_string(hide_password=True)}")
    if drop:
        print("🗑️  Dropping existing tables...")
        database.Base.metadata.drop_all(bind=engine)

    database.Base.metadata.create_all(bind=engine)
    print("✅ Tables are in sync")
    return engine


if __name__ == "__main__":
    init_models(drop="--drop" in sys.argv)
