import pytest

from scholardesk.utils.token_utils import count_tokens, estimate_cost, load_plan_catalog


def test_count_tokens_short_strings():
    # Basic sanity: token count should be > 0 for short non-empty string
    assert count_tokens("hello", "gpt-3.5-turbo") > 0
    assert count_tokens("hello world", "gpt-3.5-turbo") >= count_tokens("hello", "gpt-3.5-turbo")


def test_count_tokens_empty():
    assert count_tokens("") == 0
    assert count_tokens(None) == 0


def test_estimate_cost_rounds_to_six_places():
    assert estimate_cost(1000, 0.000002) == pytest.approx(0.002)
    assert estimate_cost(3, "0.000001") == pytest.approx(0.000003)


def test_plan_catalog():
    names = [plan['name'] for plan in load_plan_catalog()]
    assert names == ['basic', 'pro', 'enterprise']
