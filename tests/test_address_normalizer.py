import pytest

from propmatch.address_normalizer import address_similarity, normalize, similarity

ADDRESSES = [
    "123 North Main Street, Suite 400",
    "123 Main St #400",
    "100 Main St, Springfield, GA 30458",
    "1 st",
    "stre et",
    "N 5th Avenue Apt 3B",
    "742 Evergreen Terrace",
    "  221B   Baker   Street  ",
    "Unit 7, 10 Downing Street",
    "2nd Floor 55 West Parkway",
    "!!!",
    "",
    "#",
    "av",
]


def test_directional_synonym_and_unit_fold_to_same_key():
    assert normalize("123 North Main Street, Suite 400") == normalize("123 Main St #400")
    assert normalize("123 Main St #400") == "123mainst"


@pytest.mark.parametrize("address", ADDRESSES)
def test_normalize_is_idempotent(address):
    once = normalize(address)
    assert normalize(once) == once


@pytest.mark.parametrize("raw, expected", [
    ("742 Evergreen Terrace", "742evergreenter"),
    ("500 Oak Boulevard", "500oakblvd"),
    ("12 Elm Court", "12elmct"),
    ("9 Pine Circle", "9pinecir"),
    ("1 Lake Parkway", "1lakepkwy"),
    ("3 Market Place", "3marketpl"),
    ("8 Town Square", "8townsq"),
    ("4 Ridge Trail", "4ridgetrl"),
    ("77 Mill Road", "77millrd"),
    ("6 Cedar Lane", "6cedarln"),
    ("15 Harbor Drive", "15harbordr"),
    ("20 Park Avenue", "20parkave"),
])
def test_street_type_synonyms(raw, expected):
    assert normalize(raw) == expected


def test_ordinal_suffixes_and_floors_are_stripped():
    assert normalize("1st Avenue") == normalize("1 Ave") == "1ave"
    assert normalize("10 West 42nd Street, 3rd Floor") == normalize("10 42 St")


def test_joined_key_keeps_street_type_after_ordinal():
    assert normalize("100 1st St") == "1001st"
    assert normalize("101 1st Street") == "1011st"
    assert normalize("100 1st St") != normalize("1001 Rd")
    assert normalize("12 N St") == "12st"
    assert normalize(normalize("100 1st St")) == "1001st"


def test_leading_directional_without_house_number():
    assert normalize("South Elm Street") == "elmst"


def test_apartment_designators():
    assert normalize("N 5th Avenue Apt 3B") == normalize("5 Ave")
    assert normalize("88 Broad St Apartment 12") == normalize("88 Broad Street Ste 12-A")


def test_similarity_bounds_and_empty_strings():
    assert similarity("", "") == 0.0
    assert similarity("abc", "") == 0.0
    assert address_similarity("!!!", "123 Main St") == 0.0
    assert similarity("kitten", "sitting") == pytest.approx(1 - 3 / 7)


@pytest.mark.parametrize("a, b", [
    ("123 Main St", "123 Main Street"),
    ("100 Main St, Springfield, GA", "101 Maine Street"),
    ("742 Evergreen Terrace", "24 Evergreen Ter"),
    ("", "5 Elm St"),
])
def test_similarity_is_symmetric(a, b):
    assert address_similarity(a, b) == address_similarity(b, a)
    assert 0.0 <= address_similarity(a, b) <= 1.0


@pytest.mark.parametrize("address", [a for a in ADDRESSES if normalize(a)])
def test_similarity_with_itself_is_one(address):
    assert address_similarity(address, address) == 1.0
