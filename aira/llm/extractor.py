import json
import math

from loguru import logger
from pydantic import ValidationError

from aira.errors import BudgetValidationError, MalformedPayloadError, PayloadNotFoundError
from aira.models.schemas import BudgetAnalysis
from aira.utils.text import normalize_location, round_to_nearest


def locate_payload(raw: str) -> str:
    """Slice from the first ``{`` to the last ``}``; models like to wrap the
    JSON in prose or code fences."""
    start = raw.find("{")
    end = raw.rfind("}")
    if start == -1 or end == -1 or end < start:
        raise PayloadNotFoundError("no JSON found in response")
    return raw[start : end + 1]


def parse_payload(payload: str) -> BudgetAnalysis:
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise MalformedPayloadError(f"failed to parse JSON: {e}") from e

    try:
        return BudgetAnalysis.model_validate(data)
    except ValidationError as e:
        raise MalformedPayloadError(f"unexpected budget payload shape: {e}") from e


def validate_analysis(analysis: BudgetAnalysis, interval: float = 1000) -> BudgetAnalysis:
    """Round every category to ``interval`` and check the allocation adds up.

    Returns a copy with rounded amounts and a canonical city name. The rounded
    total may drift from the rounded salary by at most one interval. ``NaN``
    and infinities are rejected.
    """
    if not analysis.categories:
        raise BudgetValidationError("budget has no categories")
    if not math.isfinite(analysis.salary):
        raise BudgetValidationError(f"salary is not a finite number: {analysis.salary}")
    if analysis.salary <= 0:
        raise BudgetValidationError(f"salary must be positive, got {analysis.salary}")

    categories = []
    for cat in analysis.categories:
        if not math.isfinite(cat.amount):
            raise BudgetValidationError(f"category {cat.name!r} has a non-finite amount")
        if cat.amount < 0:
            raise BudgetValidationError(f"category {cat.name!r} has a negative amount")
        categories.append(
            cat.model_copy(update={"amount": round_to_nearest(cat.amount, interval)})
        )

    salary = round_to_nearest(analysis.salary, interval)
    total = sum(cat.amount for cat in categories)
    if abs(total - salary) > interval:
        raise BudgetValidationError(
            f"categories sum to {total:,.0f} but salary is {salary:,.0f}"
        )

    return analysis.model_copy(
        update={
            "salary": salary,
            "location": normalize_location(analysis.location),
            "categories": categories,
        }
    )


def extract_budget_analysis(raw: str, interval: float = 1000) -> BudgetAnalysis:
    analysis = validate_analysis(parse_payload(locate_payload(raw)), interval)
    logger.debug(
        "Extracted budget: salary={} categories={}",
        analysis.salary,
        len(analysis.categories),
    )
    return analysis
