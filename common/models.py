# common/models.py
from datetime import datetime

from sqlalchemy import Column, String, DateTime, Text, BigInteger, Integer

from common.database import Base


class SystemLog(Base):
    """
    Error audit table.
    One row per reported error, with the stack trace when one was active.
    """
    __tablename__ = "sys_logs"
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True, autoincrement=True)
    level = Column(String, default="ERROR", index=True)
    source = Column(String, index=True)
    task_name = Column(String, index=True, nullable=True)
    message = Column(Text)
    stack_trace = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.now)
