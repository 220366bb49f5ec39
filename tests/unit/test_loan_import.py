from __future__ import annotations

from borrower_match.models.config_models import MatchingConfig
from borrower_match.models.match import MatchTier
from borrower_match.models.records import LOAN_STATUS_REQUIRES_MAPPING
from borrower_match.services.loan_import import find_matching_customer, import_loans_with_matching


def test_find_matching_customer_priority(customer_pool):
    by_id = find_matching_customer(customer_pool, "C2", "Jane Mwale", "123456/78/1")
    assert by_id.candidate_id == "C2"
    assert by_id.confidence == 1.0

    by_nid = find_matching_customer(customer_pool, None, "Someone", " 222222/22/2 ")
    assert by_nid.candidate_id == "C3"
    assert by_nid.tier is MatchTier.HARD

    fuzzy = find_matching_customer(customer_pool, None, "Mary", None)
    assert fuzzy.candidate_id == "C3"
    assert fuzzy.tier is MatchTier.SOFT
    assert fuzzy.confidence == 0.95

    assert find_matching_customer(customer_pool, None, "Completely Different", None) is None


def test_unknown_borrower_id_falls_through(customer_pool):
    match = find_matching_customer(customer_pool, "C404", "Peter Phiri", None)
    assert match.candidate_id == "C2"
    assert match.tier is MatchTier.SOFT


def test_import_links_exact_matches_and_orphans_the_rest(customer_pool):
    rows = [
        {"id": "L1", "borrower_id": "C1", "borrower_name": "Jane Mwale", "amount": 100},
        {"id": "L2", "borrower_name": "Mary", "amount": 200},
        {"id": "L3", "borrower_name": "Unknown Person", "national_id": "222222/22/2", "amount": 300},
        {"id": "L4", "borrower_name": "", "amount": 400},
    ]
    result = import_loans_with_matching(rows, customer_pool)
    assert result.imported_count == 4
    assert result.linked_count == 2
    assert result.orphan_count == 2
    assert result.orphan_ids == ["L2", "L4"]
    # the fuzzy hit is only a suggestion
    assert result.suggestions["L2"].candidate_id == "C3"
    assert "L4" not in result.suggestions

    by_id = {r["id"]: r for r in result.rows}
    assert by_id["L1"]["customer_id"] == "C1"
    assert by_id["L3"]["customer_id"] == "C3"
    assert by_id["L2"]["customer_id"] is None
    assert by_id["L2"]["status"] == LOAN_STATUS_REQUIRES_MAPPING
    # input rows are not modified
    assert "customer_id" not in rows[0]


def test_rows_without_id_get_positional_keys(customer_pool):
    result = import_loans_with_matching([{"borrower_name": "Nobody"}], customer_pool)
    assert result.orphan_ids == ["row-0"]


def test_fuzzy_threshold_is_configurable(customer_pool):
    rows = [{"id": "L1", "borrower_name": "Peter Phiri Jr"}]
    strict = import_loans_with_matching(rows, customer_pool, config=MatchingConfig(orphan_fuzzy_threshold=0.99))
    assert "L1" not in strict.suggestions
    loose = import_loans_with_matching(rows, customer_pool)
    assert loose.suggestions["L1"].candidate_id == "C2"
