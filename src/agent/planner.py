"""
agent.planner - Request to Step decomposition.

RuleBasedPlanner evaluates an ordered table of PlanRule entries and the
first rule whose predicate matches decides the tool. The order is part of
the contract, because categories overlap and later rules assume the
earlier ones did not match:

    1. arithmetic   -> calculator
    2. meta         -> llm
    3. finance      -> finance | stock_price
    4. file         -> file
    5. weather      -> weather
    6. search       -> search
    7. (default)    -> llm

Compound requests ("X; Y", "X, then Y", "X and then Y") are split into
segments and each segment becomes one Step. The rule planner is
deterministic: the same request and history always give the same plan.

SingleStepPlanner adapts planners that pick a single Step (the language
model planner) to the list-of-Steps contract.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Protocol, Sequence

from agent.prompt import wants_table_format
from domain.models import Message, StateGraph, Step

logger = logging.getLogger(__name__)

GEOLOCATION_SENTINEL = "__USE_GEOLOCATION__"

Predicate = Callable[[str, str, Sequence[Message]], bool]
Extractor = Callable[[str, str], dict[str, Any]]


@dataclass(frozen=True)
class PlanRule:
    """One row of the routing table.

    route, when set, picks the tool from the extracted parameters
    (finance vs stock_price); otherwise the rule's tool is used.
    """
    name: str
    tool: str
    predicate: Predicate
    extract: Optional[Extractor] = None
    route: Optional[Callable[[dict[str, Any]], str]] = None
    confidence: float = 0.8


# ---------------------------------------------------------------------------
# 1. Arithmetic
# ---------------------------------------------------------------------------

_ARITH_PREFIX = re.compile(
    r"^(?:what\s+is|what's|whats|calculate|compute|evaluate|solve|how\s+much\s+is)\s+",
    re.IGNORECASE,
)
_PURE_ARITH = re.compile(r"^[\d+\-*/().%\s]+$")
_HAS_OPERATOR = re.compile(r"[+\-*/%]")


def arithmetic_expression(text: str) -> Optional[str]:
    """Return the bare expression if text is arithmetic and nothing else."""
    candidate = _ARITH_PREFIX.sub("", text.strip()).rstrip("?= ").strip()
    if (
        candidate
        and _PURE_ARITH.match(candidate)
        and any(ch.isdigit() for ch in candidate)
        and _HAS_OPERATOR.search(candidate)
    ):
        return candidate
    return None


def _is_arithmetic(text: str, lower: str, history: Sequence[Message]) -> bool:
    return arithmetic_expression(text) is not None


def _extract_expression(text: str, lower: str) -> dict[str, Any]:
    return {"expression": arithmetic_expression(text) or text}


# ---------------------------------------------------------------------------
# 2. Meta / capability questions
# ---------------------------------------------------------------------------

_META_PHRASES = (
    "what can you do",
    "what are you able to do",
    "who are you",
    "what are you",
    "describe yourself",
    "introduce yourself",
    "tell me about yourself",
    "how do you work",
    "what tools do you have",
    "what tools can you use",
    "your capabilities",
    "what are your abilities",
    "are you an ai",
)
_REFERS_BACK = re.compile(r"\b(that|it|this|those|these|them|above|previous|last answer)\b")


def _is_meta(text: str, lower: str, history: Sequence[Message]) -> bool:
    if any(phrase in lower for phrase in _META_PHRASES):
        return True
    # "show that in a table" reformats the previous answer
    return bool(history) and wants_table_format(lower) and bool(_REFERS_BACK.search(lower))


# ---------------------------------------------------------------------------
# 3. Finance
# ---------------------------------------------------------------------------

_FINANCE_WORDS = re.compile(
    r"\b(stocks?|shares|market cap|stock market|nasdaq|nyse|dow jones|s&p|sp500|"
    r"ticker|share price|stock price|dividends?|etfs?|portfolio|earnings|equities)\b"
)
_PRICE_WORDS = re.compile(r"\b(price|quote)\b")
_TOP_N = re.compile(r"\btop\s+(\d{1,3})\b")
# Screener page size accepted by the finance tool.
FINANCE_MAX_LIMIT = 100
_DOLLAR_TICKER = re.compile(r"\$([A-Za-z]{1,5})\b")
_UPPER_TICKER = re.compile(r"\b([A-Z]{2,5})\b")
_NOT_TICKERS = frozenset({
    "AI", "CEO", "CFO", "ETF", "ETFS", "IPO", "USA", "US", "UK", "EU", "THE",
    "OK", "API", "FAQ", "NYSE", "PM", "AM", "USD", "EUR", "GDP",
})

# Checked in order; first hit wins.
SECTOR_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("real estate", "Real Estate"),
    ("health care", "Healthcare"),
    ("healthcare", "Healthcare"),
    ("pharma", "Healthcare"),
    ("biotech", "Healthcare"),
    ("technology", "Technology"),
    ("tech", "Technology"),
    ("semiconductor", "Technology"),
    ("software", "Technology"),
    ("energy", "Energy"),
    ("oil", "Energy"),
    ("bank", "Financial Services"),
    ("financial", "Financial Services"),
    ("utilities", "Utilities"),
    ("utility", "Utilities"),
    ("industrial", "Industrials"),
    ("consumer", "Consumer Cyclical"),
    ("retail", "Consumer Cyclical"),
    ("telecom", "Communication Services"),
    ("communication", "Communication Services"),
    ("media", "Communication Services"),
    ("materials", "Basic Materials"),
    ("mining", "Basic Materials"),
)


def find_ticker(text: str) -> Optional[str]:
    """Bare-ticker heuristic: '$aapl' or an all-caps 2-5 letter token."""
    dollar = _DOLLAR_TICKER.search(text)
    if dollar:
        return dollar.group(1).upper()
    for token in _UPPER_TICKER.findall(text):
        if token not in _NOT_TICKERS:
            return token
    return None


def _is_finance(text: str, lower: str, history: Sequence[Message]) -> bool:
    if _FINANCE_WORDS.search(lower):
        return True
    return bool(_PRICE_WORDS.search(lower)) and find_ticker(text) is not None


def _extract_finance(text: str, lower: str) -> dict[str, Any]:
    params: dict[str, Any] = {}
    for keyword, sector in SECTOR_KEYWORDS:
        if re.search(rf"\b{re.escape(keyword)}", lower):
            params["sector"] = sector
            break
    top = _TOP_N.search(lower)
    if top:
        params["limit"] = min(max(int(top.group(1)), 1), FINANCE_MAX_LIMIT)
    if _PRICE_WORDS.search(lower):
        symbol = find_ticker(text)
        if symbol:
            params["symbol"] = symbol
    return params


def _route_finance(params: dict[str, Any]) -> str:
    if params.get("symbol") and not params.get("sector"):
        return "stock_price"
    return "finance"


# ---------------------------------------------------------------------------
# 4. File system
# ---------------------------------------------------------------------------

_FILE_NOUNS = re.compile(r"\b(files?|folders?|director(?:y|ies)|duplicates?)\b")
_FILE_VERBS = re.compile(
    r"\b(scan|list|read|open|show|write|create|save|delete|remove|find|duplicates?)\b"
)
_NEWS_WORDS = re.compile(r"\b(news|headlines?|breaking|top stories|articles?|latest updates?)\b")
_ABS_PATH = re.compile(r"(?:[A-Za-z]:\\[^\s\"']*|(?<![\w.])/[^\s\"']+|~/[^\s\"']*)")
_NAMED_PATH = re.compile(
    r"\b(?:folder|file|directory)\s+(?:called\s+|named\s+)?[\"']?([^\s\"']+)",
    re.IGNORECASE,
)
_QUOTED = re.compile(r"[\"“]([^\"”]+)[\"”]")
_PATH_STOPWORDS = frozenset({
    "for", "in", "at", "on", "and", "the", "with", "to", "from", "of", "is",
    "that", "this", "please", "contents",
})


def _is_file_request(text: str, lower: str, history: Sequence[Message]) -> bool:
    if _NEWS_WORDS.search(lower):
        return False
    has_target = bool(_FILE_NOUNS.search(lower)) or bool(_ABS_PATH.search(text))
    return has_target and bool(_FILE_VERBS.search(lower))


def file_operation(lower: str) -> str:
    if re.search(r"\bduplicat", lower):
        return "duplicates"
    if re.search(r"\b(delete|remove)\b", lower):
        return "delete"
    if re.search(r"\b(write|create|save)\b", lower):
        return "write"
    if re.search(r"\b(read|open)\b", lower) or re.search(r"\bshow\b.*\bfile\b", lower):
        return "read"
    return "scan"


def file_path(text: str) -> str:
    absolute = _ABS_PATH.search(text)
    if absolute:
        return absolute.group(0).rstrip(".,?!")
    for match in _NAMED_PATH.finditer(text):
        token = match.group(1).rstrip(".,?!")
        if token and token.lower() not in _PATH_STOPWORDS:
            return token
    return "."


def _extract_file(text: str, lower: str) -> dict[str, Any]:
    params: dict[str, Any] = {"operation": file_operation(lower), "path": file_path(text)}
    if params["operation"] == "write":
        quoted = _QUOTED.search(text)
        if quoted:
            params["content"] = quoted.group(1)
    return params


# ---------------------------------------------------------------------------
# 5. Weather
# ---------------------------------------------------------------------------

_WEATHER_WORDS = re.compile(
    r"\b(weather|forecast|temperature|rain(?:ing|y)?|snow(?:ing|y)?|humidity|windy?|sunny)\b"
)
_HERE = re.compile(r"\b(here|my location|where i am)\b")
_TRAILING_TIME = re.compile(
    r"\s+(today|tonight|tomorrow|now|right now|this week|this weekend|next week)$",
    re.IGNORECASE,
)
_CITY_TAIL = re.compile(r"\b(?:in|for)\s+([A-Za-z][A-Za-z\s\-]*)$", re.IGNORECASE)
_NOT_CITY_WORDS = frozenset({
    "the", "week", "weekend", "today", "tomorrow", "next", "days", "this", "me",
    "us", "a", "table", "please", "now",
})


def extract_city(text: str) -> Optional[str]:
    """City from a trailing 'in X' / 'for X' phrase, title-cased."""
    stripped = text.strip().rstrip("?.!")
    previous = None
    while previous != stripped:
        previous = stripped
        stripped = _TRAILING_TIME.sub("", stripped)
    match = _CITY_TAIL.search(stripped)
    if not match:
        return None
    words = match.group(1).split()
    if not words or all(w.lower() in _NOT_CITY_WORDS for w in words):
        return None
    return " ".join(w.capitalize() if "-" not in w else w.title() for w in words)


def _is_weather(text: str, lower: str, history: Sequence[Message]) -> bool:
    return bool(_WEATHER_WORDS.search(lower))


def _extract_weather(text: str, lower: str) -> dict[str, Any]:
    if _HERE.search(lower):
        return {"city": GEOLOCATION_SENTINEL}
    city = extract_city(text)
    return {"city": city} if city else {}


# ---------------------------------------------------------------------------
# 6. Search
# ---------------------------------------------------------------------------

_SEARCH_WORDS = re.compile(
    r"\b(who|what|when|where|why|how|latest|news|find|search|look up)\b"
)


def _is_search(text: str, lower: str, history: Sequence[Message]) -> bool:
    return bool(_SEARCH_WORDS.search(lower))


DEFAULT_RULES: tuple[PlanRule, ...] = (
    PlanRule("arithmetic", "calculator", _is_arithmetic, _extract_expression, confidence=0.95),
    PlanRule("meta", "llm", _is_meta, confidence=0.9),
    PlanRule("finance", "finance", _is_finance, _extract_finance, _route_finance, confidence=0.85),
    PlanRule("file", "file", _is_file_request, _extract_file, confidence=0.8),
    PlanRule("weather", "weather", _is_weather, _extract_weather, confidence=0.85),
    PlanRule("search", "search", _is_search, confidence=0.7),
)

FALLBACK_TOOL = "llm"

_SEGMENT_SPLIT = re.compile(r"\s*(?:;|\n+|,\s*then\s+|\s+and\s+then\s+)\s*", re.IGNORECASE)


def split_request(request: str) -> list[str]:
    """Split a compound request into its non-empty segments."""
    return [part.strip() for part in _SEGMENT_SPLIT.split(request or "") if part and part.strip()]


class RuleBasedPlanner:
    """Deterministic planner driven by an ordered rule table."""

    def __init__(self, rules: Sequence[PlanRule] = DEFAULT_RULES):
        self._rules = tuple(rules)

    async def plan(
        self,
        request: str,
        recent_history: Sequence[Message] = (),
        trace: Optional[StateGraph] = None,
    ) -> list[Step]:
        segments = split_request(request)
        if not segments:
            return [Step(tool=FALLBACK_TOOL, input=(request or "").strip(), confidence=0.5)]
        steps = [self.plan_segment(segment, recent_history) for segment in segments]
        logger.debug("Planned %d step(s): %s", len(steps), [s.tool for s in steps])
        return steps

    def plan_segment(self, text: str, history: Sequence[Message] = ()) -> Step:
        lower = text.lower()
        for rule in self._rules:
            if not rule.predicate(text, lower, history):
                continue
            params = rule.extract(text, lower) if rule.extract else {}
            tool = rule.route(params) if rule.route else rule.tool
            step_input: Any = params.pop("expression", text) if tool == "calculator" else text
            return Step(tool=tool, input=step_input, context=params, confidence=rule.confidence)
        return Step(tool=FALLBACK_TOOL, input=text, confidence=0.5)


# ---------------------------------------------------------------------------
# Single-step planners
# ---------------------------------------------------------------------------

class StepChooser(Protocol):
    """A planner that picks exactly one Step (or nothing)."""

    async def choose_step(self, request: str, recent_history: Sequence[Message]) -> Optional[Step]: ...


def normalize_plan(result: Any) -> list[Step]:
    """Coerce None, a bare Step, or an iterable of Steps into list[Step]."""
    if result is None:
        return []
    if isinstance(result, Step):
        return [result]
    if isinstance(result, Iterable) and not isinstance(result, (str, bytes, dict)):
        return [item for item in result if isinstance(item, Step)]
    logger.warning("Discarding unrecognised plan result of type %s", type(result).__name__)
    return []


class SingleStepPlanner:
    """Adapts a StepChooser to the list-of-Steps planner contract."""

    def __init__(self, chooser: StepChooser):
        self._chooser = chooser

    async def plan(
        self,
        request: str,
        recent_history: Sequence[Message] = (),
        trace: Optional[StateGraph] = None,
    ) -> list[Step]:
        return normalize_plan(await self._chooser.choose_step(request, recent_history))
