from conftest import record

from finance_agent.services.filters import (
    apply_leniency,
    build_query_context,
    filter_by_keywords,
    filter_by_score,
    filter_by_type,
    filter_recurring,
)


def _mixed():
    return [
        record(description="Payroll", amount=4200, type="income", category="Paycheck"),
        record(description="Netflix", amount=-15.49, type="expense", category="Streaming"),
        record(description="Refund", amount=20, type=None, category="Shopping"),
        record(description="Cash withdrawal", amount=-60, type=None, category="Cash"),
    ]


class TestQueryContext:
    def test_short_terms_dropped(self):
        ctx = build_query_context("How much on coffee in Jan?")
        assert ctx.terms == ("how", "much", "coffee", "jan")


class TestLeniency:
    def test_small_result_from_large_pool_widened(self):
        candidates = [record(description=f"T{i}") for i in range(6)]
        assert apply_leniency(candidates[:2], candidates) == candidates

    def test_small_pool_not_widened(self):
        candidates = [record(description=f"T{i}") for i in range(5)]
        assert apply_leniency([], candidates) == []

    def test_enough_survivors_kept(self):
        candidates = [record(description=f"T{i}") for i in range(10)]
        assert apply_leniency(candidates[:3], candidates) == candidates[:3]


class TestTypeFilter:
    def test_income_only(self):
        kept = filter_by_type(_mixed(), "income_only")
        assert [r.description for r in kept] == ["Payroll", "Refund"]

    def test_expenses_only(self):
        kept = filter_by_type(_mixed(), "expenses_only")
        assert [r.description for r in kept] == ["Netflix", "Cash withdrawal"]

    def test_all_passes_through(self):
        assert len(filter_by_type(_mixed(), "all")) == 4

    def test_unknown_passes_through(self):
        assert len(filter_by_type(_mixed(), "something_else")) == 4

    def test_income_only_leniency_triggers(self):
        records = [record(description=f"E{i}", amount=-10, type="expense") for i in range(5)]
        records.append(record(description="Salary", amount=100, type="income"))
        assert len(filter_by_type(records, "income_only")) == 6

    def test_recurring_via_query_word(self):
        records = [
            record(description="Netflix"),
            record(description="netflix "),
            record(description="Cafe"),
        ]
        kept = filter_by_type(records, "all", "show my recurring payments")
        assert [r.description for r in kept] == ["Netflix", "netflix "]

    def test_query_specific_wins_over_recurring_word(self):
        records = [
            record(description="Netflix"),
            record(description="Netflix"),
            record(description="Cafe"),
        ]
        kept = filter_by_type(records, "query_specific", "recurring cafe")
        assert [r.description for r in kept] == ["Cafe"]


class TestRecurring:
    def _records(self):
        return [
            record(description="Spotify USA"),
            record(description="Spotify  usa"),
            record(description="Gym"),
            record(description=None),
            record(description=None),
            record(description="Gym"),
            record(description="One-off"),
        ]

    def test_only_repeated_descriptions_kept(self):
        kept = filter_recurring(self._records())
        assert [r.description for r in kept] == ["Spotify USA", "Spotify  usa", "Gym", "Gym"]

    def test_missing_descriptions_excluded(self):
        assert all(r.description for r in filter_recurring(self._records()))

    def test_idempotent(self):
        once = filter_recurring(self._records())
        assert filter_recurring(once) == once


class TestKeywordFilter:
    def test_substring_any_field(self):
        records = [
            record(description="UBER *TRIP", category="Rideshare"),
            record(description="Shell", category="Gas", merchant="Shell Oil"),
            record(description="Cafe", category="Food"),
        ]
        kept = filter_by_keywords(records, ["Uber", "oil"])
        assert [r.description for r in kept] == ["UBER *TRIP", "Shell"]

    def test_matches_type(self):
        records = [record(type="income"), record(type="expense")]
        assert len(filter_by_keywords(records, ["INCOME"])) == 1

    def test_resorted_by_score(self):
        records = [
            record(description="Coffee A", relevanceScore=0.71),
            record(description="Coffee B", relevanceScore=0.93),
            record(description="Coffee C", relevanceScore=0.80),
        ]
        kept = filter_by_keywords(records, ["coffee"])
        assert [r.description for r in kept] == ["Coffee B", "Coffee C", "Coffee A"]

    def test_no_keywords_passes_through(self):
        records = [record(), record()]
        assert filter_by_keywords(records, None) == records
        assert filter_by_keywords(records, ["  "]) == records


class TestScoreFilter:
    def test_low_scores_dropped(self):
        records = [
            record(description="Cafe", relevanceScore=0.95),
            record(description="Cafe", relevanceScore=0.5),
        ]
        kept = filter_by_score(records, build_query_context("cafe"))
        assert [r.relevance_score for r in kept] == [0.95]

    def test_amount_within_tolerance(self):
        records = [
            record(description="Groceries run", amount=-52.0, category="Food"),
            record(description="Groceries run", amount=-80.0, category="Food"),
        ]
        kept = filter_by_score(records, build_query_context("what was the 50.00 charge"))
        assert [r.amount for r in kept] == [-52.0]

    def test_year_and_month_terms(self):
        records = [
            record(description="A", date="2023-11-02", category="X"),
            record(description="B", date="2024-03-15", category="X"),
            record(description="C", date="2024-11-20", category="X"),
        ]
        assert [r.description for r in filter_by_score(records, build_query_context("in 2023"))] == ["A"]
        assert [r.description for r in filter_by_score(records, build_query_context("march"))] == ["B"]
        assert [r.description for r in filter_by_score(records, build_query_context("2024-11"))] == ["C"]

    def test_category_and_top_level_match(self):
        records = [
            record(description="Shell", category="Gas", topLevelCategory="Transportation"),
            record(description="Cafe", category="Food", topLevelCategory="Dining"),
        ]
        kept = filter_by_score(records, build_query_context("transportation costs"))
        assert [r.description for r in kept] == ["Shell"]

    def test_no_match_from_large_pool_falls_back(self):
        records = [record(description=f"Item {i}", relevanceScore=0.9) for i in range(7)]
        kept = filter_by_score(records, build_query_context("zebra"))
        assert len(kept) == 7

    def test_full_date_term(self):
        records = [
            record(description="A", date="2024-03-14", category="X"),
            record(description="B", date="2024-03-15", category="X"),
            record(description="C", date="2024-03-15T09:30:00Z", category="X"),
        ]
        kept = filter_by_score(records, build_query_context("on 2024-03-15"))
        assert [r.description for r in kept] == ["B", "C"]
