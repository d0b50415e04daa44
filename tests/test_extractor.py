import json

import pytest

from aira.errors import (
    BudgetValidationError,
    MalformedPayloadError,
    PayloadNotFoundError,
    ValidationFailure,
)
from aira.llm.extractor import extract_budget_analysis, locate_payload
from conftest import BUDGET_JSON


def _payload(salary, amounts):
    return json.dumps(
        {
            "salary": salary,
            "location": "Bandung",
            "analysis": "cukup",
            "categories": [
                {"name": f"Kategori {i}", "amount": amount, "description": ""}
                for i, amount in enumerate(amounts)
            ],
        }
    )


def test_extracts_payload_wrapped_in_prose():
    raw = f"Oke, ini hasilnya:\n```json\n{BUDGET_JSON}\n```\nSemoga membantu!"

    analysis = extract_budget_analysis(raw)

    assert analysis.salary == 5_000_000
    assert analysis.location == "Jakarta"
    assert [c.name for c in analysis.categories] == [
        "Kewajiban", "Makan", "Transport", "Healing", "Tabungan", "Lain-lain",
    ]
    assert sum(c.amount for c in analysis.categories) == 5_000_000


def test_no_payload():
    with pytest.raises(PayloadNotFoundError):
        extract_budget_analysis("maaf, gue belum bisa bikin budget")


def test_braces_in_wrong_order_count_as_no_payload():
    with pytest.raises(PayloadNotFoundError):
        locate_payload("} nope {")


def test_malformed_json_is_distinct_from_missing_payload():
    with pytest.raises(MalformedPayloadError):
        extract_budget_analysis('{"salary": 5000000, "categories": [}')


def test_wrong_shape_is_malformed():
    with pytest.raises(MalformedPayloadError):
        extract_budget_analysis('{"salary": "banyak", "categories": []}')


def test_rejects_sum_off_by_more_than_one_unit():
    with pytest.raises(BudgetValidationError):
        extract_budget_analysis(_payload(500_000, [200_000, 150_000, 100_000]))


def test_accepts_sum_within_one_unit():
    analysis = extract_budget_analysis(_payload(500_000, [200_000, 150_000, 149_000]))
    assert sum(c.amount for c in analysis.categories) == 499_000


def test_rounds_amounts_before_comparing():
    analysis = extract_budget_analysis(_payload(500_000, [200_400, 149_700, 149_900]))
    assert [c.amount for c in analysis.categories] == [200_000, 150_000, 150_000]


def test_rejects_negative_amount():
    with pytest.raises(BudgetValidationError):
        extract_budget_analysis(_payload(500_000, [600_000, -100_000]))


def test_rejects_empty_categories():
    with pytest.raises(BudgetValidationError):
        extract_budget_analysis(_payload(500_000, []))


def test_all_failures_are_validation_failures():
    for raw in ("no json", "{oops}", _payload(500_000, [1])):
        with pytest.raises(ValidationFailure):
            extract_budget_analysis(raw)


@pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
def test_rejects_non_finite_salary(value):
    with pytest.raises(BudgetValidationError):
        extract_budget_analysis(_payload(value, [1_000]))


@pytest.mark.parametrize("value", [float("nan"), float("inf")])
def test_rejects_non_finite_amount(value):
    with pytest.raises(BudgetValidationError):
        extract_budget_analysis(_payload(5_000_000, [5_000_000, value]))


def test_salary_written_out_in_words():
    raw = '{"salary": "Rp 5 juta", "categories": [{"name": "Makan", "amount": 5000000}]}'
    assert extract_budget_analysis(raw).salary == 5_000_000


def test_location_is_normalized():
    raw = '{"salary": 5000000, "location": "jkt", "categories": [{"name": "Makan", "amount": 5000000}]}'
    assert extract_budget_analysis(raw).location == "Jakarta"
