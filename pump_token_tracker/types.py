from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    import aiohttp
    import logging

    from .config import Config, FilterStore
    from .db import Database
    from .enricher import TokenEnricher
    from .pipeline import TokenPipeline
    from .rpc import SolanaRpcClient


@dataclass
class TokenRecord:
    address: str
    name: str = "Unknown"
    symbol: str = ""
    decimals: int = 9
    mint_auth_revoked: bool = False
    freeze_auth_revoked: bool = False
    price: float = 0.0
    liquidity: float = 0.0
    market_cap: float = 0.0
    dev_holding: float = 0.0
    pool_supply: float = 0.0
    supply: float = 0.0
    top_holders: Tuple[Tuple[str, float], ...] = ()
    degraded: Tuple[str, ...] = ()
    market_source: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["degraded"] = list(self.degraded)
        data["top_holders"] = [list(holder) for holder in self.top_holders]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenRecord":
        known = {key: data[key] for key in cls.__dataclass_fields__ if key in data}
        known["degraded"] = tuple(known.get("degraded") or ())
        known["top_holders"] = tuple(
            (str(owner), float(percent)) for owner, percent in known.get("top_holders") or ()
        )
        return cls(**known)


@dataclass(frozen=True)
class MarketQuote:
    price: float
    liquidity: float
    market_cap: float
    source: str
    name: Optional[str] = None
    symbol: Optional[str] = None


@dataclass(frozen=True)
class ChainMetadata:
    decimals: int
    mint_auth_revoked: bool
    freeze_auth_revoked: bool
    name: Optional[str] = None
    symbol: Optional[str] = None


@dataclass(frozen=True)
class HolderStats:
    dev_holding: float
    pool_supply: float
    supply: float = 0.0
    top_holders: Tuple[Tuple[str, float], ...] = ()


@dataclass
class FilterResult:
    passed: bool
    reasons: List[str]


class EventStage(str, Enum):
    EVALUATED = "evaluated"
    DISPATCHED = "dispatched"
    SKIPPED = "skipped"


@dataclass
class EventOutcome:
    stage: EventStage
    address: Optional[str] = None
    reason: Optional[str] = None
    passed: Optional[bool] = None
    reasons: List[str] = field(default_factory=list)


@dataclass
class AppContext:
    config: "Config"
    logger: "logging.Logger"
    db: "Database"
    session: "aiohttp.ClientSession"
    rpc: "SolanaRpcClient"
    enricher: "TokenEnricher"
    filter_store: "FilterStore"
    pipeline: Optional["TokenPipeline"] = None
