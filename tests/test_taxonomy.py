from itertools import product

import pytest

from taxonomy import INDUSTRY_ALIASES, categories_for, industry_related, labels_overlap, match_industry


def test_film_relates_to_entertainment_finance():
    assert industry_related("film", "entertainment finance")
    assert industry_related("entertainment finance", "film")


def test_property_technology_relates_to_real_estate():
    assert industry_related("property technology", "real estate")


@pytest.mark.parametrize("category", sorted(INDUSTRY_ALIASES))
def test_aliases_of_one_category_are_related_both_ways(category):
    terms = [category, *INDUSTRY_ALIASES[category][:8]]
    for a, b in product(terms, terms):
        assert industry_related(a, b), (a, b)
        assert industry_related(a, b) == industry_related(b, a)


def test_matching_is_case_and_whitespace_insensitive():
    assert "ai" in categories_for("  Machine   LEARNING ")
    assert labels_overlap("Real  Estate", "real estate debt")


def test_short_aliases_only_match_whole_words():
    # "ai" must not be found inside "retail"
    assert "ai" not in categories_for("retail")
    assert not industry_related("retail", "artificial intelligence")


def test_unrelated_labels():
    assert not industry_related("biotech", "film")
    assert categories_for("") == set()
    assert not industry_related("", "")


def test_match_industry_reports_direct_and_indirect_hits():
    assert match_industry("fintech", ["B2B Fintech", "payments"]) == ("B2B Fintech", None)
    assert match_industry("film", ["entertainment finance"]) == ("entertainment finance", "entertainment")
    assert match_industry("film", ["biotech", ""]) is None


def test_custom_table_can_be_supplied():
    table = {"space": ["satellites", "launch"]}
    assert industry_related("satellites", "launch", table)
    assert not industry_related("film", "movie", table)


@pytest.mark.parametrize(
    "label, related",
    [
        ("biotechnology", "medtech"),
        ("renewables", "energy"),
        ("financials", "banking"),
    ],
)
def test_longer_terms_match_inside_words(label, related):
    assert industry_related(label, related)
    assert industry_related(related, label)


def test_biotechnology_maps_to_healthcare():
    assert categories_for("Biotechnology") == {"healthcare"}
    assert "climate" in categories_for("renewables")
