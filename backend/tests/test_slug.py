# backend/tests/test_slug.py

import re

from app.core.slug import ensure_unique_slug, generate_slug


def test_generate_slug_strips_accents_and_spaces():
    assert generate_slug("Herramientas Eléctricas") == "herramientas-electricas"


def test_generate_slug_removes_punctuation_and_collapses_dashes():
    assert generate_slug("  Phones & Tablets!!  --  2024 ") == "phones-tablets-2024"


def test_generate_slug_truncates_without_trailing_dash():
    slug = generate_slug("abc def ghi", max_length=4)
    assert slug == "abc"


def test_generate_slug_empty_input_returns_random_token():
    for value in ("", "   ", None, "¡¡!!"):
        assert re.fullmatch(r"[0-9a-f]{8}", generate_slug(value))


async def test_ensure_unique_slug_appends_first_free_suffix():
    taken = {"phones", "phones-1"}

    async def exists(candidate):
        return candidate in taken

    assert await ensure_unique_slug("phones", exists) == "phones-2"
    assert await ensure_unique_slug("tablets", exists) == "tablets"


async def test_ensure_unique_slug_falls_back_to_random_suffix():
    async def always_taken(candidate):
        return True

    slug = await ensure_unique_slug("phones", always_taken, max_attempts=3)
    assert re.fullmatch(r"phones-[0-9a-f]{8}", slug)
