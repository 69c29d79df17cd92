"""
Typed records for the performance metrics engine.
Bars in, per-window metrics out, plus the daily cache entry that bundles them.
"""

import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union


TimestampLike = Union[datetime, date, str, int, float]


class BarError(ValueError):
    """Raised when a bar cannot be built from the given values."""
    pass


class WindowKey(str, Enum):
    """Trailing windows, in calendar days back from the latest bar."""
    D7 = '7d'
    D30 = '30d'
    D60 = '60d'
    D90 = '90d'

    @property
    def days(self) -> int:
        return int(self.value[:-1])


class TopPriceMode(str, Enum):
    """Which field a window's top price is taken from."""
    HIGH = 'high'
    CLOSE = 'close'


def resolve_timestamp(value: TimestampLike) -> datetime:
    """
    Resolve a timestamp-like value to a datetime.

    Accepts datetime, date (midnight), ISO-8601 strings and epoch seconds.

    Raises:
        BarError: If the value cannot be resolved to an absolute instant
    """
    if isinstance(value, datetime):
        return value

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if not math.isfinite(value):
            raise BarError(f"Bad timestamp: {value}")
        return datetime.fromtimestamp(value, tz=timezone.utc)

    if isinstance(value, str) and value:
        text = value.strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            return datetime.fromisoformat(text)
        except ValueError as e:
            raise BarError(f"Bad timestamp: {value}") from e

    raise BarError(f"Bad timestamp: {value!r}")


def round2(value: float) -> float:
    """Round half up to 2 decimal places."""
    return math.floor(value * 100 + 0.5) / 100


def round4(value: float) -> float:
    """Round half up to 4 decimal places."""
    return math.floor(value * 10000 + 0.5) / 10000


@dataclass(frozen=True)
class Bar:
    """One trading day's observation. Only close is mandatory."""
    timestamp: datetime
    close: float
    open: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None

    def __post_init__(self):
        object.__setattr__(self, 'timestamp', resolve_timestamp(self.timestamp))

        if isinstance(self.close, bool) or not isinstance(self.close, (int, float)):
            raise BarError(f"close must be numeric, got {type(self.close)}")
        object.__setattr__(self, 'close', float(self.close))

        for name in ('open', 'high', 'low'):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, float(value))

    @property
    def epoch(self) -> float:
        """Absolute instant in seconds since the epoch."""
        return self.timestamp.timestamp()

    def to_dict(self) -> Dict[str, Any]:
        return {
            't': self.timestamp.isoformat(),
            'open': self.open,
            'high': self.high,
            'low': self.low,
            'close': self.close,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Bar':
        return cls(
            timestamp=data['t'],
            close=data['close'],
            open=data.get('open'),
            high=data.get('high'),
            low=data.get('low'),
        )


@dataclass(frozen=True)
class TickerWindowMetrics:
    """Computed metrics for one (symbol, window) pair."""
    symbol: str
    window: WindowKey
    start_price: float
    end_price: float
    return_pct: float
    return_dollar: float
    volatility_annual: float
    sharpe: float
    max_drawdown_pct: float
    top_price: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'symbol': self.symbol,
            'window': self.window.value,
            'start_price': self.start_price,
            'end_price': self.end_price,
            'return_pct': self.return_pct,
            'return_dollar': self.return_dollar,
            'volatility_annual': self.volatility_annual,
            'sharpe': self.sharpe,
            'max_drawdown_pct': self.max_drawdown_pct,
            'top_price': self.top_price,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TickerWindowMetrics':
        return cls(
            symbol=data['symbol'],
            window=WindowKey(data['window']),
            start_price=float(data['start_price']),
            end_price=float(data['end_price']),
            return_pct=float(data['return_pct']),
            return_dollar=float(data['return_dollar']),
            volatility_annual=float(data['volatility_annual']),
            sharpe=float(data['sharpe']),
            max_drawdown_pct=float(data['max_drawdown_pct']),
            top_price=float(data['top_price']),
        )


@dataclass(frozen=True)
class MetricsCacheEntry:
    """
    Daily snapshot for one symbol.

    The date key comes from the local calendar date at compute time, never
    from bar timestamps. Windows that could not be computed are absent from
    ``metrics``.
    """
    date: str
    symbol: str
    bars: List[Bar]
    metrics: Dict[WindowKey, TickerWindowMetrics] = field(default_factory=dict)
    current_price: float = 0.0
    data_source: str = ''

    def is_fresh(self, today: str) -> bool:
        return self.date == today

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': self.date,
            'symbol': self.symbol,
            'bars': [bar.to_dict() for bar in self.bars],
            'metrics': {key.value: m.to_dict() for key, m in self.metrics.items()},
            'current_price': self.current_price,
            'data_source': self.data_source,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MetricsCacheEntry':
        return cls(
            date=data['date'],
            symbol=data['symbol'],
            bars=[Bar.from_dict(b) for b in data.get('bars', [])],
            metrics={
                WindowKey(key): TickerWindowMetrics.from_dict(m)
                for key, m in data.get('metrics', {}).items()
            },
            current_price=float(data.get('current_price', 0.0)),
            data_source=data.get('data_source', ''),
        )
