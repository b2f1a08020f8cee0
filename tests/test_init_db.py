# tests/test_init_db.py
from sqlalchemy import inspect

from common import database
from init.init_db import init_models


def test_init_models_creates_sys_logs(tmp_path):
    engine = init_models(f"sqlite:///{tmp_path / 'audit.db'}")
    try:
        assert "sys_logs" in inspect(engine).get_table_names()
    finally:
        database.configure("")


def test_init_models_without_database_url():
    assert init_models("") is None
