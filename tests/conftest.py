from decimal import Decimal

import pytest

from basket_matcher.core.catalog import build_catalog
from basket_matcher.core.retry_utils import TransientError
from basket_matcher.core.search_engine import AdvancedSearchEngine
from basket_matcher.models.candidate import Candidate, MatchTier
from basket_matcher.models.product import Product

CATALOG_RECORDS = [
    {"category": "Fleisch & Fisch", "title": "Fester Tofu, 200g", "price": 1.49, "volume": "200g", "url": "https://shop.example/p/1"},
    {"category": "Fleisch & Fisch", "title": "REWE Bio Tofu Natur 400g", "price": 2.29, "volume": "400g", "url": "https://shop.example/p/2"},
    {"category": "Fleisch & Fisch", "title": "Hähnchenbrustfilet 500g", "price": 6.99, "volume": "500g", "url": "https://shop.example/p/3"},
    {"category": "Obst & Gemüse", "title": "Brokkoli 500g", "price": 1.79, "volume": "500g", "url": "https://shop.example/p/4"},
    {"category": "Obst & Gemüse", "title": "Bio Broccoli 500g", "price": 2.49, "volume": "500g", "url": "https://shop.example/p/5"},
    {"category": "Obst & Gemüse", "title": "Rispentomaten 500g", "price": 1.99, "volume": "500g", "url": "https://shop.example/p/6"},
    {"category": "Obst & Gemüse", "title": "Zwiebeln 1kg", "price": 1.29, "volume": "1kg", "url": "https://shop.example/p/7"},
    {"category": "Obst & Gemüse", "title": "Bananen ca. 1kg", "price": 1.69, "volume": "ca. 1kg", "url": "https://shop.example/p/8"},
    {"category": "Kochen & Backen", "title": "ja! Spaghetti 500g", "price": 0.79, "volume": "500g", "url": "https://shop.example/p/9"},
    {"category": "Kochen & Backen", "title": "Barilla Vollkorn Penne 500g", "price": 1.99, "volume": "500g", "url": "https://shop.example/p/10"},
    {"category": "Kochen & Backen", "title": "Weizenmehl Type 405 1kg", "price": 0.89, "volume": "1kg", "url": "https://shop.example/p/11"},
    {"category": "Käse, Eier & Molkerei", "title": "Frische Vollmilch 3,5% 1l", "price": 1.19, "volume": "1l", "url": "https://shop.example/p/12"},
    {"category": "Käse, Eier & Molkerei", "title": "Bio Eier 10 Stück", "price": 3.49, "volume": "10 Stück", "url": "https://shop.example/p/13"},
    {"category": "Käse, Eier & Molkerei", "title": "Gouda Käse mittelalt 400g", "price": 3.29, "volume": "400g", "url": "https://shop.example/p/14"},
    {"category": "Brot, Cerealien & Aufstriche", "title": "Vollkornbrot 500g", "price": 1.89, "volume": "500g", "url": "https://shop.example/p/15"},
    {"category": "Öle, Soßen & Gewürze", "title": "Natives Olivenöl Extra 750ml", "price": 5.99, "volume": "750ml", "url": "https://shop.example/p/16"},
    {"category": "Fertiggerichte & Konserven", "title": "Tomaten passiert 500g", "price": 0.69, "volume": "500g", "url": "https://shop.example/p/17"},
    {"category": "Süßes & Salziges", "title": "Zartbitter Schokolade 100g", "price": 1.09, "volume": "100g", "url": "https://shop.example/p/18"},
]

TOFU_ONLY_RECORDS = [
    {"category": "Fleisch & Fisch", "title": "Fester Tofu, 200g", "price": 1.49, "volume": "200g", "url": "https://shop.example/p/1"},
]


def make_product(title, category="Obst & Gemüse", price="1.00", volume=""):
    return Product(category=category, title=title, price=Decimal(price), volume=volume, url="https://shop.example/p")


def make_candidate(title, score, category="Obst & Gemüse", tier=MatchTier.TIER3, index=0, volume=""):
    return Candidate(
        product_index=index,
        product=make_product(title, category=category, volume=volume),
        score=score,
        tier=tier,
    )


class FakeLLM:
    """
    Scripted stand-in for the collaborator.

    Each method returns its scripted value (or calls it, if callable);
    unscripted methods fail the way an unreachable model would.
    """

    def __init__(self, **responses):
        self.responses = responses
        self.calls = []

    def _respond(self, name, *args):
        self.calls.append(name)
        value = self.responses.get(name)
        if value is None:
            raise TransientError(f"{name} not scripted", name)
        if isinstance(value, Exception):
            raise value
        if callable(value):
            return value(*args)
        return value

    def parse_shopping_list(self, shopping_list):
        return self._respond("parse_shopping_list", shopping_list)

    def determine_categories(self, item, categories):
        return self._respond("determine_categories", item, categories)

    def generate_search_tiers(self, item):
        return self._respond("generate_search_tiers", item)

    def quality_filter(self, candidates, item):
        return self._respond("quality_filter", candidates, item)

    def calculate_quantity(self, item, product):
        return self._respond("calculate_quantity", item, product)


@pytest.fixture
def catalog_records():
    return [dict(record) for record in CATALOG_RECORDS]


@pytest.fixture
def products():
    return build_catalog([dict(record) for record in CATALOG_RECORDS])


@pytest.fixture
def tofu_only_products():
    return build_catalog([dict(record) for record in TOFU_ONLY_RECORDS])


@pytest.fixture
def engine(products):
    return AdvancedSearchEngine(products)
