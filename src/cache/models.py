"""SQLAlchemy ORM model for the pool_cache table.

Local, eventually-consistent mirror of ledger pool state. Written only by
the Reconciler through CacheStore. sqrt prices exceed 64 bits and are
stored as decimal text.
"""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class PoolCacheRow(Base):
    __tablename__ = "pool_cache"

    pool_address: Mapped[str] = mapped_column(String(64), primary_key=True)
    content_id: Mapped[str | None] = mapped_column(String(64), index=True)

    s_long: Mapped[int | None] = mapped_column(BigInteger)
    s_short: Mapped[int | None] = mapped_column(BigInteger)
    r_long: Mapped[int | None] = mapped_column(BigInteger)
    r_short: Mapped[int | None] = mapped_column(BigInteger)
    sqrt_price_long_x96: Mapped[str | None] = mapped_column(Text)
    sqrt_price_short_x96: Mapped[str | None] = mapped_column(Text)

    f: Mapped[int | None] = mapped_column(Integer)
    beta_num: Mapped[int | None] = mapped_column(Integer)
    beta_den: Mapped[int | None] = mapped_column(Integer)

    vault_balance: Mapped[int | None] = mapped_column(BigInteger)
    last_settle_ts: Mapped[int | None] = mapped_column(BigInteger)
    min_settle_interval: Mapped[int | None] = mapped_column(BigInteger)
    current_epoch: Mapped[int | None] = mapped_column(BigInteger)
    expiration_timestamp: Mapped[int | None] = mapped_column(BigInteger)
    last_decay_update: Mapped[int | None] = mapped_column(BigInteger)

    last_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
