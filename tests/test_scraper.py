"""
Tests for the Playwright scraper: locator generation, script generation
and artifact storage (browser replaced by a canned page).
"""

import ast

import pytest

from apps.services.artifact_gateway.services.scraper import (
    ScrapeOptions,
    Scraper,
    build_locators,
    generate_locator,
    generate_playwright_script,
    url_to_filename,
)

PAGE_CONTENT = {
    "headings": {
        "h1": [{"text": "Welcome", "id": None, "index": 0, "tag": "h1", "selector": "h1:nth-of-type(1)"}],
        "h2": [],
        "h3": [],
    },
    "paragraphs": [{"text": "Intro", "index": 0, "selector": "p:nth-of-type(1)"}],
    "images": [{"src": "https://example.com/img/logo.png", "alt": "", "index": 0, "selector": "img:nth-of-type(1)"}],
    "form_fields": [
        {"type": "input", "input_type": "email", "name": "email", "id": "email", "placeholder": "you@example.com"},
    ],
    "links": [{"text": "About", "href": "https://example.com/about", "id": None, "selector": "text=About"}],
    "buttons": [{"text": "Sign up", "id": None, "selector": 'button:has-text("Sign up")'}],
    "navigation": [],
}


def fake_page(title="Example Domain", screenshot=b"\x89PNG\r\n\x1a\nfake"):
    async def extract(url, options):
        if "broken" in url:
            raise RuntimeError("net::ERR_NAME_NOT_RESOLVED")
        return {
            "title": title,
            "screenshot": screenshot if options.screenshots else None,
            "meta_description": "An example page",
            "content": PAGE_CONTENT,
        }

    return extract


class TestUrlToFilename:

    def test_host_and_path(self):
        name = url_to_filename("https://example.com/docs/intro")
        assert name.startswith("example.comdocsintro_")
        assert name.endswith(".json")

    def test_long_names_truncated(self):
        name = url_to_filename("https://example.com/" + "a" * 200)
        assert len(name.split("_")[0]) == 50

    def test_unparseable_url(self):
        assert url_to_filename("not a url").startswith("scraped_data_")


class TestLocators:

    def test_link_prefers_href(self):
        locator = generate_locator({"text": "About", "href": "https://example.com/about"}, "link")
        assert locator == "page.locator('a[href=\"https://example.com/about\"]')"

    def test_button_by_role(self):
        assert generate_locator({"text": "Sign up"}, "button") == "page.get_by_role('button', name='Sign up')"

    def test_button_by_id(self):
        assert generate_locator({"id": "submit", "text": "Go"}, "button") == "page.locator('#submit')"

    def test_input_by_name_then_placeholder(self):
        assert generate_locator({"type": "input", "name": "q"}, "input") == "page.locator('input[name=\"q\"]')"
        assert generate_locator({"placeholder": "Search"}, "input") == "page.get_by_placeholder('Search')"

    def test_image_by_alt_then_src(self):
        assert generate_locator({"alt": "Logo"}, "image") == "page.get_by_alt_text('Logo')"
        assert generate_locator({"src": "https://x.test/a/logo.png"}, "image") == "page.locator('img[src*=\"logo.png\"]')"

    def test_falls_back_to_selector(self):
        assert generate_locator({"selector": "p:nth-of-type(2)"}, "paragraph") == "page.locator('p:nth-of-type(2)')"

    def test_text_with_quotes_is_escaped(self):
        locator = generate_locator({"text": "Don't \"click\""}, "button")
        assert ast.parse(locator)

    def test_build_locators_groups(self):
        locators = build_locators(PAGE_CONTENT)
        assert set(locators) == {"headings", "links", "buttons", "form_fields", "images"}
        assert locators["headings"][0]["description"] == "H1: Welcome"
        assert locators["form_fields"][0]["description"] == "Field: email"
        assert locators["images"][0]["description"] == "Image: https://example.com/img/logo.png"


class TestPlaywrightScript:

    def test_script_is_valid_python(self):
        script = generate_playwright_script("https://example.com/", "Example Domain", PAGE_CONTENT)
        ast.parse(script)
        assert "def test_example_com(page: Page):" in script
        assert "page.goto('https://example.com/')" in script
        assert "to_have_title" in script
        assert "page.get_by_role('heading', name='Welcome')" in script

    def test_script_without_title_or_elements(self):
        script = generate_playwright_script("https://example.com/", None, {})
        ast.parse(script)
        assert "to_have_title" not in script


class TestScraper:

    @pytest.mark.asyncio
    async def test_scrape_website_stores_artifacts(self, file_store, monkeypatch):
        scraper = Scraper(file_store)
        monkeypatch.setattr(scraper, "_extract", fake_page())

        data = await scraper.scrape_website("https://example.com/")

        assert data["title"] == "Example Domain"
        assert data["file_path"].startswith("scraped/example.com_")
        assert data["screenshot_path"].startswith("screenshots/example.com_")
        assert data["script_path"].startswith("playwright/test_example.com_")

        stored = await file_store.get_file("scraped", data["file_path"].split("/", 1)[1])
        assert stored["content"]["url"] == "https://example.com/"
        assert stored["content"]["playwright_locators"]["links"][0]["description"] == "Link: About"

    @pytest.mark.asyncio
    async def test_options_skip_screenshot_and_script(self, file_store, monkeypatch):
        scraper = Scraper(file_store)
        monkeypatch.setattr(scraper, "_extract", fake_page())

        options = ScrapeOptions(screenshots=False, save_playwright_script=False, category="reports")
        data = await scraper.scrape_website("https://example.com/", options)

        assert data["screenshot_path"] is None
        assert "script_path" not in data
        assert data["file_path"].startswith("reports/")

    @pytest.mark.asyncio
    async def test_scrape_many_collects_errors(self, file_store, monkeypatch):
        scraper = Scraper(file_store)
        monkeypatch.setattr(scraper, "_extract", fake_page())

        outcome = await scraper.scrape_many(
            ["https://example.com/", "https://broken.invalid/"],
            ScrapeOptions(concurrency=2, screenshots=False),
        )

        assert outcome["total_processed"] == 2
        assert outcome["success_count"] == 1
        assert outcome["error_count"] == 1
        assert outcome["errors"][0]["url"] == "https://broken.invalid/"
        assert "ERR_NAME_NOT_RESOLVED" in outcome["errors"][0]["error"]

    @pytest.mark.asyncio
    async def test_close_without_browser(self, file_store):
        await Scraper(file_store).close()
