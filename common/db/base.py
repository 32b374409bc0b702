"""
Declarative base shared by every billing and seller entity.
"""

from sqlalchemy import BigInteger, Integer
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Primary and foreign keys are BIGINT in Postgres. SQLite only autoincrements
# an INTEGER PRIMARY KEY, so the in-memory test database gets plain INTEGER.
BigIntegerType = BigInteger().with_variant(Integer(), "sqlite")
