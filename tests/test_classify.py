import pytest

from dinemap.etl.classify import (
    KEYWORD_RULES,
    ClassificationRule,
    classify,
    infer_price_tier,
    normalize_price,
    price_hint,
)


def test_rule_matches_word_prefixes_only():
    rule = ClassificationRule("Mexican", ("taco",))
    assert rule.matches("Dr. Smith's Tacos")
    assert not rule.matches("Pistacos")
    assert not rule.matches("")
    assert rule.apply() == "Mexican"


@pytest.mark.parametrize(
    "name,description",
    [
        ("Tony's Pizza", None),
        ("Joe's Steak Pizzeria", None),
        ("Tony's", "Wood-fired pizza and craft beer"),
        ("Mamapizza", None),
        ("Crustpizza Bar", None),
    ],
)
def test_pizza_anywhere_is_pizza(name, description):
    assert classify(name, description).cuisines == ("Pizza",)


def test_steak_with_seafood_keyword_gets_both():
    result = classify("Miami Steak & Seafood House")
    assert result.cuisines == ("Steakhouse", "Seafood")
    assert result.primary == "Steakhouse"
    assert result.secondary == "Seafood"


def test_steakhouse_without_seafood_is_single():
    assert classify("Bourbon Steak").cuisines == ("Steakhouse",)


def test_known_names_win_over_everything():
    result = classify("Versailles", categories=["bakeries"])
    assert result.cuisines == ("Cuban",)
    assert result.layer == "known_name"
    assert classify("Toothfairy").is_delete


def test_categories_win_over_keywords():
    result = classify("Bistro Azul", categories=["sushi", "bars"])
    assert result.cuisines == ("Japanese",)
    assert result.layer == "category"
    assert classify("Blue Place", categories=["seafood_restaurant"]).primary == "Seafood"


def test_keyword_layer():
    result = classify("Dr. Smith's Tacos")
    assert result.cuisines == ("Mexican",)
    assert result.layer == "keyword"
    assert result.matched


def test_unmatched_falls_back_to_default():
    result = classify("Zzyzx")
    assert result.cuisines == ("American",)
    assert not result.matched
    assert classify("Zzyzx", default="Other").cuisines == ("Other",)
    assert classify("").cuisines == ("American",)
    assert classify(None, None, None).cuisines == ("American",)


def test_keyword_rules_keep_pizza_first():
    assert KEYWORD_RULES[0].cuisine == "Pizza"


@pytest.mark.parametrize(
    "level,source,expected",
    [
        (3, "google", "$$$"),
        (0, "google", "$"),
        (4, "google", "$$$$"),
        ("$$", "yelp", "$$"),
        ("2", "yelp", "$$"),
        ("Inexpensive", "miami_beach", "$"),
        ("Moderate", "miami_beach", "$$"),
        ("Expensive", "miami_beach", "$$$"),
        ("Very Expensive", "miami_beach", "$$$$"),
        (None, "google", None),
        ("", "yelp", None),
        ("pricey", "yelp", None),
    ],
)
def test_normalize_price(level, source, expected):
    assert normalize_price(level, source) == expected


def test_infer_price_tier():
    assert infer_price_tier("Carbone", "$$", "yelp") == "$$$$$"
    assert infer_price_tier("Nobu Miami", 2, "google") == "$$$$$"
    assert infer_price_tier("Omakase by Yuzu", 4, "google") == "$$$$$"
    assert infer_price_tier("Omakase by Yuzu", 3, "google") == "$$$"
    assert infer_price_tier("Corner Grill", 4, "google") == "$$$$"
    assert infer_price_tier("Corner Grill") == "$$"
    assert infer_price_tier("Corner Grill", None, hint="$") == "$"
    assert infer_price_tier("Corner Grill", "$$$", "yelp", hint="$") == "$$$"


def test_price_hint():
    assert price_hint("An intimate fine dining tasting menu") == "$$$$"
    assert price_hint("Counter service tacos") == "$"
    assert price_hint("Private dining by reservation") == "$$$$$"
    assert price_hint(None) is None
    assert classify("Carbone").price_hint == "$$$$$"
