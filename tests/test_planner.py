"""Rule-based planner routing."""

import asyncio

import pytest

from agent.planner import (
    GEOLOCATION_SENTINEL,
    RuleBasedPlanner,
    SingleStepPlanner,
    arithmetic_expression,
    extract_city,
    find_ticker,
    normalize_plan,
    split_request,
)
from domain.models import Message, Step


def plan(request, history=()):
    return asyncio.run(RuleBasedPlanner().plan(request, list(history)))


def plan_one(request, history=()):
    steps = plan(request, history)
    assert len(steps) == 1
    return steps[0]


@pytest.mark.parametrize("request_text", ["2 + 2 * 3", "(3 + 4) * 12", "what's 12*7", "calculate 10 / 4?"])
def test_pure_arithmetic_routes_to_calculator(request_text):
    step = plan_one(request_text)
    assert step.tool == "calculator"
    assert arithmetic_expression(request_text) == step.input


def test_arithmetic_input_is_the_bare_expression():
    assert plan_one("what's 12*7").input == "12*7"


def test_numbers_without_operator_are_not_arithmetic():
    assert arithmetic_expression("2024") is None
    assert plan_one("2024").tool == "llm"


def test_meta_question_goes_to_llm():
    assert plan_one("What can you do?").tool == "llm"
    assert plan_one("who are you").tool == "llm"


def test_table_reformat_of_previous_answer_goes_to_llm():
    history = [Message("user", "top 5 tech stocks"), Message("assistant", "...")]
    assert plan_one("show that in a table", history).tool == "llm"


def test_ticker_price_routes_to_stock_price():
    step = plan_one("what is the price of $aapl")
    assert step.tool == "stock_price"
    assert step.context == {"symbol": "AAPL"}


def test_sector_listing_routes_to_finance():
    step = plan_one("top 5 tech stocks")
    assert step.tool == "finance"
    assert step.context == {"sector": "Technology", "limit": 5}


@pytest.mark.parametrize("request_text, limit", [("top 200 tech stocks", 100), ("top 0 tech stocks", 1)])
def test_finance_limit_stays_in_screener_range(request_text, limit):
    assert plan_one(request_text).context["limit"] == limit


def test_find_ticker_skips_common_acronyms():
    assert find_ticker("is the AI ETF price up") is None
    assert find_ticker("MSFT quote please") == "MSFT"


def test_file_scan_with_absolute_path():
    step = plan_one("scan the folder /tmp/projects for large files")
    assert step.tool == "file"
    assert step.context["operation"] == "scan"
    assert step.context["path"] == "/tmp/projects"


def test_file_duplicates_and_named_folder():
    step = plan_one("find duplicates in folder photos")
    assert step.tool == "file"
    assert step.context == {"operation": "duplicates", "path": "photos"}


def test_file_write_picks_up_quoted_content():
    step = plan_one('write "hello there" to file notes.txt')
    assert step.context == {"operation": "write", "path": "notes.txt", "content": "hello there"}


def test_news_phrasing_is_not_a_file_request():
    assert plan_one("show me the latest news about files").tool == "search"


def test_weather_city_is_extracted():
    step = plan_one("What's the weather in new york today?")
    assert step.tool == "weather"
    assert step.context == {"city": "New York"}


def test_weather_here_requests_geolocation():
    step = plan_one("what's the weather here")
    assert step.context == {"city": GEOLOCATION_SENTINEL}


def test_weather_without_city_has_empty_context():
    assert plan_one("will it rain").context == {}
    assert extract_city("forecast for this weekend") is None


def test_interrogative_routes_to_search():
    step = plan_one("who is Ada Lovelace")
    assert step.tool == "search"
    assert step.input == "who is Ada Lovelace"


def test_default_is_llm():
    step = plan_one("write me a haiku about autumn")
    assert step.tool == "llm"
    assert step.confidence == 0.5


def test_empty_request_falls_back_to_llm():
    assert plan("") == [Step(tool="llm", input="", confidence=0.5)]
    assert plan("   ") == [Step(tool="llm", input="", confidence=0.5)]


def test_compound_request_yields_one_step_per_segment():
    steps = plan("who is Ada Lovelace; 2+2 and then tell me a joke")
    assert [s.tool for s in steps] == ["search", "calculator", "llm"]


def test_split_request():
    assert split_request("a; b\nc, then d") == ["a", "b", "c", "d"]
    assert split_request(" ; ") == []


def test_planning_is_deterministic():
    request = "top 3 energy stocks; what's the weather in Oslo"
    assert plan(request) == plan(request)


def test_normalize_plan_accepts_single_step_and_none():
    step = Step("llm", "hi")
    assert normalize_plan(step) == [step]
    assert normalize_plan(None) == []
    assert normalize_plan((step, "junk")) == [step]
    assert normalize_plan({"tool": "llm"}) == []


def test_single_step_planner_wraps_chooser():
    class Chooser:
        async def choose_step(self, request, recent_history):
            return Step("search", request)

    steps = asyncio.run(SingleStepPlanner(Chooser()).plan("latest rust release"))
    assert steps == [Step("search", "latest rust release")]
