"""
Token utilities using tiktoken and plans.json

FLOW OVERVIEW
- load_plan_catalog(): Load the default subscription plan table shipped with the package.
- get_encoding_for_model(model): Resolve tiktoken encoding for a given model.
- count_tokens(text, model): Return token count using tiktoken for the given model.
- estimate_cost(token_count, cost_per_token): Price a token count at a per-token rate.
"""

import json
import os
from typing import Dict, List

import tiktoken


_PLAN_CACHE: List[Dict] = []


def load_plan_catalog() -> List[Dict]:
    global _PLAN_CACHE
    if _PLAN_CACHE:
        return _PLAN_CACHE
    # plans.json sits next to the package __init__
    root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    plans_path = os.path.join(root, 'plans.json')
    with open(plans_path, 'r', encoding='utf-8') as f:
        _PLAN_CACHE = json.load(f)['plans']
    return _PLAN_CACHE


def get_encoding_for_model(model: str):
    # Map common model families to encodings
    try:
        return tiktoken.encoding_for_model(model)
    except KeyError:
        # Fallback to cl100k_base commonly used across GPT-3.5/4 families
        return tiktoken.get_encoding('cl100k_base')


def count_tokens(text: str, model: str = 'gpt-3.5-turbo') -> int:
    if not text:
        return 0
    enc = get_encoding_for_model(model)
    return len(enc.encode(text))


def estimate_cost(token_count: int, cost_per_token: float) -> float:
    return round(token_count * float(cost_per_token), 6)
