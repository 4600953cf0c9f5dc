"""Record normalization: coercion, flattening and field disambiguation."""

import pytest

from alternativeto_scraper.items import ITEM_FIELDS, ToolItem
from alternativeto_scraper.normalize import (
    clean_item,
    country_from_code,
    empty_item,
    float_val,
    int_val,
    is_noise_field_value,
    txt,
    uniq,
    uniq_urls,
)

URL = "https://alternativeto.net/software/gimp/"


class TestScalars:
    def test_txt_collapses_whitespace(self):
        assert txt("  GIMP \n  editor ") == "GIMP editor"
        assert txt(None) == ""
        assert txt({"a": 1}) == ""

    @pytest.mark.parametrize(
        "value,expected",
        [("1,234 likes", 1234), (56, 56), (12.9, 12), ("none", None), (True, None), (-3, None), (None, None)],
    )
    def test_int_val(self, value, expected):
        assert int_val(value) == expected

    @pytest.mark.parametrize(
        "value,expected",
        [("Rated 4.5 out of 5", 4.5), (3, 3.0), ("n/a", None), (float("nan"), None), (False, None)],
    )
    def test_float_val(self, value, expected):
        assert float_val(value) == expected


class TestUniq:
    def test_delimited_string(self):
        assert uniq("Windows, Mac | Linux; windows") == ["Windows", "Mac", "Linux"]

    def test_list_of_objects(self):
        assert uniq([{"name": "Web"}, {"title": "Android"}, "web", None, ""]) == ["Web", "Android"]

    def test_mapping_of_objects(self):
        assert uniq({"x": {"name": "Windows"}, "y": {"name": "iPhone"}}) == ["Windows", "iPhone"]

    def test_first_spelling_wins(self):
        assert uniq(["macOS", "MACOS", "MacOS"]) == ["macOS"]

    def test_uniq_urls_resolves_and_keeps_commas(self):
        values = ["/img/a.png", "https://cdn.example.com/b,c.png", "/img/a.png", None]
        assert uniq_urls(values, URL) == ["https://alternativeto.net/img/a.png", "https://cdn.example.com/b,c.png"]


class TestCountryFromCode:
    def test_known_codes(self):
        assert country_from_code("DE") == "Germany"
        assert country_from_code("us") == "United States"

    def test_unknown_code_kept(self):
        assert country_from_code("ZZ") == "ZZ"

    @pytest.mark.parametrize("code", [None, "", "USA", "1A"])
    def test_non_codes(self, code):
        assert country_from_code(code) is None


class TestCleanItem:
    def test_shape(self):
        item = clean_item({"url": "https://www.alternativeto.net/software/gimp/about"})
        assert set(item) == set(ITEM_FIELDS)
        assert item["url"] == URL
        assert item["platforms"] == [] and item["images"] == []
        assert item["title"] is None
        assert item["_source"] == "alternativeto"

    def test_rejects_non_tool_url(self):
        assert clean_item({"url": "https://alternativeto.net/category/x/", "title": "X"}) is None
        assert clean_item("not a dict") is None

    def test_category_falls_back_to_application_type(self):
        item = clean_item({"url": URL, "applicationTypes": "Image Editor, Photo Editor"})
        assert item["category"] == "Image Editor"

    def test_cost_synthesized_from_pricing_and_license(self):
        item = clean_item({"url": URL, "pricing": "Free", "license": "Open Source"})
        assert item["cost"] == "Free | Open Source"

    def test_pricing_and_license_promoted_from_cost(self):
        item = clean_item({"url": URL, "cost": "Freemium"})
        assert item["pricing"] == "Freemium"
        assert item["license"] is None

        item = clean_item({"url": URL, "cost": "Proprietary"})
        assert item["license"] == "Proprietary"
        assert item["pricing"] is None

    def test_pricing_never_restates_category(self):
        item = clean_item({
            "url": URL,
            "category": "Image Generator",
            "pricing": "image generator",
            "cost": "Image Generator",
            "applicationTypes": ["Image Generator"],
        })
        assert item["pricing"] is None
        assert item["cost"] is None
        assert item["license"] is None

    def test_heading_noise_dropped(self):
        item = clean_item({"url": URL, "platforms": ["Platforms", "Windows"], "origins": ["Origin", "Germany"]})
        assert item["platforms"] == ["Windows"]
        assert item["origins"] == ["Germany"]

    def test_relative_images_and_logo_resolved(self):
        item = clean_item({"url": URL, "images": ["/shots/1.png"], "logoUrl": "/icons/gimp.png"})
        assert item["images"] == ["https://alternativeto.net/shots/1.png"]
        assert item["logoUrl"] == "https://alternativeto.net/icons/gimp.png"

    def test_source_argument_beats_raw_tag(self):
        assert clean_item({"url": URL}, "json-ld")["_source"] == "json-ld"
        assert clean_item({"url": URL, "_source": "dom"}, "json-ld")["_source"] == "json-ld"
        assert clean_item({"url": URL, "_source": "dom"})["_source"] == "dom"

    def test_idempotent(self):
        raw = {
            "url": "https://www.alternativeto.net/software/gimp/reviews/",
            "title": " GIMP ",
            "description": "Free and open source  image editor",
            "rating": "4.6",
            "likes": "2,001",
            "cost": "Free | Open Source",
            "platforms": "Windows, Mac, Linux",
            "applicationTypes": [{"name": "Image Editor"}],
            "images": ["/shots/1.png"],
        }
        once = clean_item(raw, "html")
        assert clean_item(once) == once
        assert once["likes"] == 2001
        assert once["rating"] == 4.6


class TestItemShape:
    def test_empty_item(self):
        item = empty_item(URL)
        assert item["url"] == URL
        assert item["origins"] == []
        assert item["rating"] is None

    def test_tool_item_from_record(self):
        tool = ToolItem.from_record(clean_item({"url": URL, "title": "GIMP"}, "html"))
        assert tool["title"] == "GIMP"
        assert tool["_source"] == "html"
        assert set(tool.keys()) == set(ITEM_FIELDS)

    def test_noise_values(self):
        assert is_noise_field_value("Cost / License")
        assert is_noise_field_value("  ")
        assert not is_noise_field_value("Windows")
