from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class ExchangeRow(Base):
    __tablename__ = "exchanges"

    code = Column(String(20), primary_key=True)
    name = Column(String(200), nullable=False)
    operating_mic = Column(String(100))
    country = Column(String(100), nullable=False, default="")
    currency = Column(String(10), nullable=False, default="")
    fetched_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<ExchangeRow(code='{self.code}')>"


class SymbolRow(Base):
    __tablename__ = "symbols"

    ticker = Column(String(50), primary_key=True)
    exchange_code = Column(String(20), primary_key=True)
    parent_exchange = Column(String(20), nullable=False, index=True)
    name = Column(Text, nullable=False, default="")
    type = Column(String(50))
    isin = Column(String(20))
    currency = Column(String(10))
    is_active = Column(Boolean, nullable=False, default=True)
    fetched_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<SymbolRow(ticker='{self.ticker}', exchange_code='{self.exchange_code}')>"


class QuoteRow(Base):
    __tablename__ = "stock_quotes"

    ticker = Column(String(50), primary_key=True)
    current_price = Column(Float)
    previous_close = Column(Float)
    change = Column(Float)
    change_percent = Column(Float)
    open = Column(Float)
    high = Column(Float)
    low = Column(Float)
    volume = Column(Float)
    average_volume = Column(Float)
    last_updated = Column(DateTime(timezone=True), nullable=False)
    fetched_at = Column(DateTime(timezone=True), nullable=False)


class FundamentalsRow(Base):
    __tablename__ = "stock_fundamentals"

    ticker = Column(String(50), primary_key=True)
    # Mostly-optional valuation / earnings / balance-sheet figures
    payload = Column(JSONB, nullable=False, default=dict)
    last_updated = Column(DateTime(timezone=True), nullable=False)
    fetched_at = Column(DateTime(timezone=True), nullable=False)


class NoDataRow(Base):
    __tablename__ = "no_data_available"

    ticker = Column(String(50), primary_key=True)
    exchange_code = Column(String(20), primary_key=True)
    failure_count = Column(Integer, nullable=False, default=1)
    first_failed_at = Column(DateTime(timezone=True), nullable=False)
    last_attempted_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    last_error = Column(Text)

    def __repr__(self):
        return f"<NoDataRow(ticker='{self.ticker}', exchange_code='{self.exchange_code}')>"
