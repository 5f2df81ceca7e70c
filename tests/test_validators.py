import pytest

from utils.pagination import matches_search, paginate_list, sort_documents
from utils.validators import is_valid_email, is_valid_webhook_url, password_strength, validate_password


@pytest.mark.parametrize("email,valid", [
    ("ann@example.com", True),
    ("first.last+tag@sub.example.org", True),
    ("no-at-sign.example.com", False),
    ("ann@localhost", False),
    ("", False),
])
def test_is_valid_email(email, valid):
    assert is_valid_email(email) is valid


def test_validate_password():
    assert validate_password("Str0ng!Passw0rd") == []
    assert validate_password("short") == [
        "At least 12 characters",
        "At least 1 uppercase letter",
        "At least 1 number",
        "At least 1 special character (!@#$%^&* etc.)",
    ]


def test_password_strength():
    assert password_strength("Str0ng!Passw0rd") == "strong"
    assert password_strength("longbutlowercase1") == "medium"
    assert password_strength("abc") == "weak"


@pytest.mark.parametrize("url,valid", [
    ("https://hooks.example.com/in", True),
    ("http://localhost:3000/hook", True),
    ("http://127.0.0.1/hook", True),
    ("http://hooks.example.com/in", False),
    ("ftp://hooks.example.com", False),
    ("not a url", False),
])
def test_is_valid_webhook_url(url, valid):
    assert is_valid_webhook_url(url) is valid


def test_paginate_list():
    page = paginate_list(list(range(45)), page=3, page_size=20, transform=str)
    assert page.items == ["40", "41", "42", "43", "44"]
    assert page.total_pages == 3
    assert page.has_next is False
    assert page.has_previous is True


def test_paginate_list_normalizes_bad_params():
    page = paginate_list([1, 2, 3], page=0, page_size=1000)
    assert page.page == 1
    assert page.page_size == 100


def test_sort_documents_puts_missing_last():
    docs = [{"name": "beta"}, {"name": None}, {"name": "Alpha"}]
    assert [d["name"] for d in sort_documents(docs, "name")] == ["Alpha", "beta", None]
    assert [d["name"] for d in sort_documents(docs, "name", descending=True)] == ["beta", "Alpha", None]


def test_matches_search():
    doc = {"name": "Harbour Fest", "city": None}
    assert matches_search(doc, "  harbour ", ("name", "city"))
    assert not matches_search(doc, "river", ("name", "city"))
    assert matches_search(doc, "", ("name",))
