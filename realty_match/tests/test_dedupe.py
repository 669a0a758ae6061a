from realty_match.core.dedupe import (
    address_signature,
    content_signature,
    deduplicate_listings,
    geo_bucket_key,
    normalize_text,
    quality_score,
)
from realty_match.core.models import Listing


def _listing(provider: str, external_id: str, **overrides) -> Listing:
    base = {
        "provider": provider,
        "external_id": external_id,
        "title": "2-комн. Квартира, 54 м²",
        "address": "ул. Тверская, д. 7",
        "lat": 55.7601,
        "lng": 37.6102,
        "price": 12_000_000,
        "rooms": 2,
        "area": 54.2,
    }
    base.update(overrides)
    return Listing(**base)


def test_normalize_text_strips_punctuation_and_spacing():
    assert normalize_text("  Ул.  Тверская,   д.7 ") == normalize_text("ул Тверская д 7")
    assert normalize_text(None) == ""


def test_same_property_from_two_sources_collapses_to_better_one():
    poor = _listing("cian", "100", photos=[], description="")
    rich = _listing(
        "yandex_realty",
        "abc",
        lat=55.7603,
        lng=37.6104,
        address="ул Тверская д 7",
        area=53.9,
        photos=["a.jpg", "b.jpg", "c.jpg"],
        description="Светлая квартира",
    )

    result = deduplicate_listings([poor, rich])

    assert result == [rich]


def test_tie_keeps_first_seen():
    first = _listing("cian", "1")
    second = _listing("domclick", "2")
    assert quality_score(first) == quality_score(second)

    assert deduplicate_listings([first, second]) == [first]
    assert deduplicate_listings([second, first]) == [second]


def test_distinct_units_in_same_building_are_kept():
    two_rooms = _listing("cian", "1")
    three_rooms = _listing("cian", "2", rooms=3, area=78.0, title="3-комн. Квартира, 78 м²")
    other_area = _listing("domclick", "3", area=61.0)

    result = deduplicate_listings([two_rooms, three_rooms, other_area])

    assert result == [two_rooms, three_rooms, other_area]


def test_far_apart_listings_with_same_text_are_kept():
    moscow = _listing("cian", "1")
    elsewhere = _listing("cian", "2", lat=59.93, lng=30.31)

    assert geo_bucket_key(moscow) != geo_bucket_key(elsewhere)
    assert len(deduplicate_listings([moscow, elsewhere])) == 2


def test_identity_repeats_are_dropped():
    listing = _listing("cian", "1")
    repeat = _listing("cian", "1", price=11_000_000, address="совсем другой адрес")
    assert deduplicate_listings([listing, repeat]) == [listing]


def test_dedup_is_a_fixed_point():
    listings = [
        _listing("cian", "1"),
        _listing("domclick", "2", photos=["x.jpg"]),
        _listing("pik", "3", rooms=1, area=38.0),
        _listing("yandex_realty", "4", lat=55.70, lng=37.55),
    ]
    once = deduplicate_listings(listings)
    twice = deduplicate_listings(once)
    assert once == twice
    assert len(once) == 3


def test_survivors_keep_first_seen_order():
    a = _listing("cian", "a", rooms=1, area=30.0)
    b = _listing("cian", "b")
    b_better = _listing("domclick", "b2", photos=["1.jpg", "2.jpg"])
    c = _listing("cian", "c", rooms=3, area=80.0)

    assert deduplicate_listings([a, b, c, b_better]) == [a, b_better, c]


def test_quality_score_formula():
    listing = _listing("cian", "1", photos=["1", "2"], description="text", price=50_000_000)
    assert quality_score(listing) == 0.5 * 2 + 1.2 + 2.0
    assert quality_score(_listing("cian", "2", price=0)) == 0


def test_content_signature_is_not_identity():
    a = _listing("cian", "1")
    b = _listing("domclick", "99")
    assert a.identity != b.identity
    assert content_signature(a) == content_signature(b)
    assert address_signature(a) == address_signature(b)
