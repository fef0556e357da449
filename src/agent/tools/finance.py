"""
agent.tools.finance - Stock market tools.

FinanceTool lists top stocks for a sector; StockPriceTool quotes a single
symbol. Both read from a Financial Modeling Prep compatible API.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from agent.tools.base import BaseTool, ToolResult
from domain.exceptions import ToolExecutionError
from domain.ports import HttpClientPort

_MISSING_KEY = "Finance API key is not configured (set FMP_API_KEY)"

MAX_LIMIT = 100


class FinanceInput(BaseModel):
    """Input schema for the finance tool."""
    text: str = ""
    sector: Optional[str] = Field(default=None, description="Sector such as 'Technology'")
    limit: int = Field(default=10, ge=1, le=MAX_LIMIT)

    @field_validator("limit", mode="before")
    @classmethod
    def _clamp_limit(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return min(max(value, 1), MAX_LIMIT)
        return value


class StockPriceInput(BaseModel):
    """Input schema for the stock_price tool."""
    text: str = ""
    symbol: str = Field(default="", description="Ticker symbol, e.g. AAPL")


class _FmpTool(BaseTool):
    def __init__(self, http: HttpClientPort, api_url: str, api_key: str):
        self._http = http
        self._api_url = api_url.rstrip("/")
        self._api_key = api_key

    async def _get(self, path: str, **params: Any) -> Any:
        return await self._http.get_json(
            f"{self._api_url}/{path}", params={**params, "apikey": self._api_key},
        )


class FinanceTool(_FmpTool):
    """Top stocks, optionally filtered by sector."""

    name = "finance"
    description = "List the top stocks by market cap, optionally for one sector."

    def get_schema(self) -> type[BaseModel]:
        return FinanceInput

    async def invoke(self, input: Any, context: dict[str, Any]) -> ToolResult:
        if not self._api_key:
            return ToolResult.fail(_MISSING_KEY)
        params = self.parse_params(input, context)
        query: dict[str, Any] = {"limit": params.limit, "isActivelyTrading": "true"}
        if params.sector:
            query["sector"] = params.sector
        try:
            rows = await self._get("stock-screener", **query)
        except ToolExecutionError as e:
            return ToolResult.fail(str(e))

        results = [
            {
                "symbol": row.get("symbol"),
                "name": row.get("companyName"),
                "price": row.get("price"),
                "market_cap": row.get("marketCap"),
                "sector": row.get("sector"),
            }
            for row in (rows or [])[: params.limit]
            if isinstance(row, dict)
        ]
        return ToolResult.ok({"sector": params.sector, "results": results})


class StockPriceTool(_FmpTool):
    """Latest quote for one ticker."""

    name = "stock_price"
    description = "Latest price quote for a single ticker symbol."

    def get_schema(self) -> type[BaseModel]:
        return StockPriceInput

    async def invoke(self, input: Any, context: dict[str, Any]) -> ToolResult:
        if not self._api_key:
            return ToolResult.fail(_MISSING_KEY)
        params = self.parse_params(input, context)
        symbol = params.symbol.strip().upper()
        if not symbol:
            return ToolResult.fail("No ticker symbol provided")
        try:
            rows = await self._get(f"quote/{symbol}")
        except ToolExecutionError as e:
            return ToolResult.fail(str(e))

        results = [
            {
                "symbol": row.get("symbol"),
                "name": row.get("name"),
                "price": row.get("price"),
                "change": row.get("change"),
                "change_percent": row.get("changesPercentage"),
                "day_low": row.get("dayLow"),
                "day_high": row.get("dayHigh"),
            }
            for row in (rows or [])
            if isinstance(row, dict)
        ]
        return ToolResult.ok({"symbol": symbol, "results": results})
