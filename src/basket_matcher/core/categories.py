"""
Store category vocabulary and the deterministic category fallback chain.
"""

from typing import Iterable, List

from basket_matcher.core.search_engine import fold_diacritics
from basket_matcher.core.search_index import tokenize
from basket_matcher.models.grocery_list import ItemType, ShoppingItem

PRODUCE = "Obst & Gemüse"
READY_MEALS = "Fertiggerichte & Konserven"
MEAT_FISH = "Fleisch & Fisch"
COOKING_BAKING = "Kochen & Backen"
DAIRY = "Käse, Eier & Molkerei"
BREAD_CEREALS = "Brot, Cerealien & Aufstriche"
SNACKS = "Süßes & Salziges"
OILS_SAUCES = "Öle, Soßen & Gewürze"

STORE_CATEGORIES = (
    PRODUCE,
    READY_MEALS,
    MEAT_FISH,
    COOKING_BAKING,
    DAIRY,
    BREAD_CEREALS,
    SNACKS,
    OILS_SAUCES,
)

DEFAULT_CATEGORIES = (PRODUCE, COOKING_BAKING)

MAX_TARGET_CATEGORIES = 2
# Shorter keys only match whole tokens ("ei" must not hit "reis").
MIN_COMPOUND_KEY_LENGTH = 4

# Keys are ASCII-folded.
KEYWORD_CATEGORIES = {
    # plant-based proteins are shelved with meat and fish
    "tofu": MEAT_FISH, "tempeh": MEAT_FISH, "seitan": MEAT_FISH,
    "haehnchen": MEAT_FISH, "huhn": MEAT_FISH, "chicken": MEAT_FISH,
    "rind": MEAT_FISH, "beef": MEAT_FISH, "hack": MEAT_FISH,
    "lachs": MEAT_FISH, "salmon": MEAT_FISH, "fisch": MEAT_FISH,
    "fish": MEAT_FISH, "wurst": MEAT_FISH, "schinken": MEAT_FISH,
    "milch": DAIRY, "milk": DAIRY, "kaese": DAIRY, "cheese": DAIRY,
    "joghurt": DAIRY, "yogurt": DAIRY, "butter": DAIRY, "sahne": DAIRY,
    "cream": DAIRY, "quark": DAIRY, "eier": DAIRY, "ei": DAIRY,
    "egg": DAIRY, "eggs": DAIRY,
    "tomate": PRODUCE, "tomaten": PRODUCE, "tomato": PRODUCE,
    "brokkoli": PRODUCE, "broccoli": PRODUCE, "zwiebel": PRODUCE,
    "onion": PRODUCE, "karotte": PRODUCE, "carrot": PRODUCE,
    "apfel": PRODUCE, "apple": PRODUCE, "banane": PRODUCE,
    "banana": PRODUCE, "salat": PRODUCE, "lettuce": PRODUCE,
    "gurke": PRODUCE, "cucumber": PRODUCE, "paprika": PRODUCE,
    "kartoffel": PRODUCE, "potato": PRODUCE, "avocado": PRODUCE,
    "zucchini": PRODUCE, "knoblauch": PRODUCE, "garlic": PRODUCE,
    "spinat": PRODUCE, "spinach": PRODUCE, "rucola": PRODUCE,
    "nudeln": COOKING_BAKING, "pasta": COOKING_BAKING,
    "spaghetti": COOKING_BAKING, "reis": COOKING_BAKING,
    "rice": COOKING_BAKING, "mehl": COOKING_BAKING, "flour": COOKING_BAKING,
    "zucker": COOKING_BAKING, "sugar": COOKING_BAKING,
    "hefe": COOKING_BAKING, "backpulver": COOKING_BAKING,
    "brot": BREAD_CEREALS, "bread": BREAD_CEREALS,
    "muesli": BREAD_CEREALS, "cereal": BREAD_CEREALS,
    "haferflocken": BREAD_CEREALS, "oats": BREAD_CEREALS,
    "marmelade": BREAD_CEREALS, "jam": BREAD_CEREALS,
    "honig": BREAD_CEREALS, "honey": BREAD_CEREALS,
    "oel": OILS_SAUCES, "oil": OILS_SAUCES, "essig": OILS_SAUCES,
    "vinegar": OILS_SAUCES, "salz": OILS_SAUCES, "salt": OILS_SAUCES,
    "pfeffer": OILS_SAUCES, "pepper": OILS_SAUCES, "sauce": OILS_SAUCES,
    "sosse": OILS_SAUCES, "ketchup": OILS_SAUCES, "senf": OILS_SAUCES,
    "mustard": OILS_SAUCES, "gewuerz": OILS_SAUCES,
    "schokolade": SNACKS, "chocolate": SNACKS, "chips": SNACKS,
    "kekse": SNACKS, "cookies": SNACKS,
    "konserve": READY_MEALS, "dose": READY_MEALS, "canned": READY_MEALS,
}

ITEM_TYPE_CATEGORIES = {
    ItemType.FRESH_PRODUCE: (PRODUCE,),
    ItemType.DRY_GOODS: (COOKING_BAKING, BREAD_CEREALS),
    ItemType.DAIRY: (DAIRY,),
    ItemType.MEAT: (MEAT_FISH,),
    ItemType.HERBS_SPICES: (OILS_SAUCES, PRODUCE),
    ItemType.CANNED: (READY_MEALS,),
    ItemType.CONDIMENTS: (OILS_SAUCES,),
}


def filter_categories(names: Iterable[str]) -> List[str]:
    """Keep vocabulary categories (case-insensitive), canonical spelling, max two."""
    canonical = {c.lower(): c for c in STORE_CATEGORIES}
    kept = []
    for name in names:
        category = canonical.get(name.strip().lower())
        if category and category not in kept:
            kept.append(category)
    return kept[:MAX_TARGET_CATEGORIES]


def keyword_categories(text: str) -> List[str]:
    """Categories suggested by the static keyword table, in order of appearance."""
    found = []
    for token in tokenize(fold_diacritics(text.lower())):
        category = KEYWORD_CATEGORIES.get(token)
        if category is None:
            category = next(
                (cat for key, cat in KEYWORD_CATEGORIES.items()
                 if len(key) >= MIN_COMPOUND_KEY_LENGTH and key in token),
                None,
            )
        if category and category not in found:
            found.append(category)
    return found[:MAX_TARGET_CATEGORIES]


def fallback_categories(item: ShoppingItem) -> List[str]:
    """Keyword table, then item-type default, then the fixed default pair."""
    found = keyword_categories(f"{item.item} {item.original_text}")
    if found:
        return found

    by_type = ITEM_TYPE_CATEGORIES.get(item.item_type)
    if by_type:
        return list(by_type)

    return list(DEFAULT_CATEGORIES)
