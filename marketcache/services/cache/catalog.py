"""
Market Catalog

Static market details (question, resolution criteria, short tag, spread
labels) known ahead of time. Loaded from JSON so the Static tier can be
served without a ledger read.
"""

import json
from pathlib import Path
from typing import Dict, List, Optional, Union

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from marketcache.services.cache.models import SpreadLabel, StaticMarketData


class SpreadLabelDetails(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    index: int
    name: str
    lower_bound: Optional[int] = Field(None, alias="lowerBound")
    upper_bound: Optional[int] = Field(None, alias="upperBound")
    description: Optional[str] = None


class MarketDetails(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question: str
    resolution_criteria: str = Field(..., alias="resolutionCriteria")
    short_tag: Optional[str] = Field(None, alias="shortTag")
    spread_labels: List[SpreadLabelDetails] = Field(default_factory=list, alias="spreadLabels")

    def to_static_data(self) -> StaticMarketData:
        return StaticMarketData(
            question=self.question,
            resolution_criteria=self.resolution_criteria,
            short_tag=self.short_tag,
            spread_labels=[
                SpreadLabel(
                    index=label.index,
                    name=label.name,
                    lower_bound=label.lower_bound,
                    upper_bound=label.upper_bound,
                    description=label.description,
                )
                for label in self.spread_labels
            ],
        )


class MarketCatalog:
    """
    Lookup of static details by market id.

    Example:
        ```python
        catalog = MarketCatalog.from_file("markets.json")
        details = catalog.get("0x1090...")
        ```
    """

    def __init__(self, markets: Optional[Dict[str, MarketDetails]] = None):
        self.markets: Dict[str, MarketDetails] = markets or {}

    @classmethod
    def from_dict(cls, raw: Dict[str, dict]) -> "MarketCatalog":
        try:
            markets = {
                market_id: MarketDetails.model_validate(details)
                for market_id, details in raw.items()
            }
        except ValidationError as e:
            raise ValueError(f"Invalid market catalog: {e}") from e
        return cls(markets)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "MarketCatalog":
        with open(path, encoding="utf-8") as f:
            catalog = cls.from_dict(json.load(f))
        logger.info(f"Loaded {len(catalog)} markets from catalog {path}")
        return catalog

    def __len__(self) -> int:
        return len(self.markets)

    def __contains__(self, market_id: str) -> bool:
        return market_id in self.markets

    def get(self, market_id: str) -> Optional[MarketDetails]:
        return self.markets.get(market_id)

    def get_static_data(self, market_id: str) -> Optional[StaticMarketData]:
        details = self.get(market_id)
        return details.to_static_data() if details else None

    def get_spread_labels(self, market_id: str) -> List[SpreadLabel]:
        static = self.get_static_data(market_id)
        return static.spread_labels if static else []

    def all_static_data(self) -> Dict[str, StaticMarketData]:
        return {
            market_id: details.to_static_data()
            for market_id, details in self.markets.items()
        }
