"""
Playwright Scraper Service

Loads pages in headless Chromium, extracts page structure, derives
Playwright locators and a runnable pytest-playwright script, and stores
everything through the FileStore:

- scraped JSON     -> requested category (default "scraped")
- screenshots      -> "screenshots"
- generated tests  -> "playwright"

One browser is shared across requests; each scrape gets its own context.
"""

import asyncio
import logging
import re
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from playwright.async_api import Browser, Playwright, async_playwright
from pydantic import BaseModel, Field

from libs.core.config import BrowserSettings
from libs.core.logging_config import SUCCESS
from libs.storage import FileStore, sanitize_filename

logger = logging.getLogger(__name__)

SCREENSHOT_CATEGORY = "screenshots"
DEFAULT_CATEGORY = "scraped"
PLAYWRIGHT_CATEGORY = "playwright"

# Collected in one round trip; positions are rounded to whole pixels
EXTRACT_PAGE_JS = """
() => {
  const box = (el) => {
    const r = el.getBoundingClientRect();
    return {x: Math.round(r.x), y: Math.round(r.y), width: Math.round(r.width), height: Math.round(r.height)};
  };
  const headings = {};
  for (const tag of ["h1", "h2", "h3"]) {
    headings[tag] = Array.from(document.querySelectorAll(tag)).map((h, index) => ({
      text: h.innerText.trim(), id: h.id || null, index, tag, position: box(h),
      selector: h.id ? `#${h.id}` : `${tag}:nth-of-type(${index + 1})`,
    }));
  }
  const paragraphs = Array.from(document.querySelectorAll("p")).map((p, index) => ({
    text: p.innerText, index, position: box(p), selector: `p:nth-of-type(${index + 1})`,
  }));
  const images = Array.from(document.querySelectorAll("img")).map((img, index) => ({
    src: img.src, alt: img.alt || "", width: img.width, height: img.height, index,
    position: box(img), selector: `img:nth-of-type(${index + 1})`,
  }));
  const formFields = Array.from(document.querySelectorAll("input, textarea, select, button[type='submit']"))
    .map((el, index) => {
      const tag = el.tagName.toLowerCase();
      return {
        type: tag, input_type: tag === "input" ? el.type : null, name: el.name || null,
        id: el.id || null, placeholder: el.placeholder || null,
        label: el.labels && el.labels.length ? el.labels[0].textContent.trim() : null,
        index, position: box(el), selector: `${tag}[name="${el.name}"]`,
        required: !!el.required, disabled: !!el.disabled,
      };
    });
  const links = Array.from(document.querySelectorAll("a"))
    .filter((a) => a.href && !a.href.startsWith("javascript:"))
    .map((a, index) => {
      const text = a.innerText.trim();
      return {
        text, href: a.href, title: a.title || null, id: a.id || null, index, position: box(a),
        selector: a.id ? `#${a.id}` : text ? `text=${text}` : `a[href="${a.href}"]`,
      };
    });
  const buttons = [...document.querySelectorAll("button"), ...document.querySelectorAll('[role="button"]')]
    .map((btn, index) => {
      const text = btn.innerText.trim();
      return {
        text, type: btn.type || null, id: btn.id || null, name: btn.name || null, index,
        tag: btn.tagName.toLowerCase(), position: box(btn),
        selector: btn.id ? `#${btn.id}` : text ? `button:has-text("${text}")` : `button:nth-of-type(${index + 1})`,
      };
    });
  const navigation = Array.from(document.querySelectorAll('nav, [role="navigation"]')).map((nav, index) => ({
    id: nav.id || null, position: index,
    links: Array.from(nav.querySelectorAll("a")).map((a) => ({text: a.innerText.trim(), href: a.href})),
    selector: nav.id ? `#${nav.id}` : `nav:nth-of-type(${index + 1})`,
  }));
  const meta = document.querySelector('meta[name="description"]');
  return {
    meta_description: meta ? meta.content : null,
    content: {headings, paragraphs, images, form_fields: formFields, links, buttons, navigation},
  };
}
"""


class ScrapeOptions(BaseModel):
    """Per-request scrape options."""

    timeout_ms: Optional[int] = None
    wait_until: Optional[str] = None
    screenshots: bool = True
    category: str = DEFAULT_CATEGORY
    viewport_width: Optional[int] = None
    viewport_height: Optional[int] = None
    user_agent: Optional[str] = None
    save_playwright_script: bool = True
    concurrency: Optional[int] = Field(default=None, ge=1, le=10)


# =============================================================================
# Pure helpers
# =============================================================================


def url_to_filename(url: str, suffix: str = ".json") -> str:
    """Host + path, sanitized, truncated, with a millisecond timestamp."""
    stamp = int(time.time() * 1000)
    parsed = urlparse(url)
    if not parsed.hostname:
        return sanitize_filename(f"scraped_data_{stamp}{suffix}")

    base = sanitize_filename(f"{parsed.hostname}{parsed.path.replace('/', '')}") or "page"
    return f"{base[:50]}_{stamp}{suffix}"


def _quote(text: str) -> str:
    return repr(text or "")


def _css(selector: str) -> str:
    return "page.locator(%s)" % _quote(selector)


def _role(role: str, name: str) -> str:
    return "page.get_by_role(%s, name=%s)" % (_quote(role), _quote(name))


def generate_locator(element: Dict[str, Any], kind: str) -> str:
    """Python Playwright locator expression for an extracted element."""
    if kind == "link":
        if element.get("href"):
            return _css('a[href="%s"]' % element["href"])
        if element.get("text"):
            return _role("link", element["text"])
    elif kind == "button":
        if element.get("id"):
            return _css("#" + element["id"])
        if element.get("text"):
            return _role("button", element["text"])
    elif kind == "input":
        if element.get("name"):
            return _css('%s[name="%s"]' % (element.get("type") or "input", element["name"]))
        if element.get("placeholder"):
            return "page.get_by_placeholder(%s)" % _quote(element["placeholder"])
        if element.get("id"):
            return _css("#" + element["id"])
    elif kind == "heading":
        if element.get("text"):
            return _role("heading", element["text"])
    elif kind == "image":
        if element.get("alt"):
            return "page.get_by_alt_text(%s)" % _quote(element["alt"])
        if element.get("src"):
            name = urlparse(element["src"]).path.rsplit("/", 1)[-1]
            return _css('img[src*="%s"]' % name)

    return _css(element.get("selector") or "")


def build_locators(content: Dict[str, Any]) -> Dict[str, List[Dict[str, Any]]]:
    """Locator catalogue grouped by element kind."""
    headings = []
    for tag, elements in (content.get("headings") or {}).items():
        for heading in elements:
            headings.append({
                "description": f"{tag.upper()}: {heading.get('text')}",
                "locator": generate_locator(heading, "heading"),
                "element": heading,
            })

    def describe(kind: str, label: str, elements: List[Dict[str, Any]], name_keys: tuple) -> List[Dict[str, Any]]:
        out = []
        for element in elements:
            name = next((element[k] for k in name_keys if element.get(k)), "Unnamed")
            out.append({
                "description": f"{label}: {name}",
                "locator": generate_locator(element, kind),
                "element": element,
            })
        return out

    return {
        "headings": headings,
        "links": describe("link", "Link", content.get("links") or [], ("text", "href")),
        "buttons": describe("button", "Button", content.get("buttons") or [], ("text", "id")),
        "form_fields": describe("input", "Field", content.get("form_fields") or [], ("name", "placeholder", "id")),
        "images": describe("image", "Image", content.get("images") or [], ("alt", "src")),
    }


def generate_playwright_script(url: str, title: Optional[str], content: Dict[str, Any]) -> str:
    """pytest-playwright test that revisits the page and checks what was scraped."""
    test_name = re.sub(r"\W+", "_", urlparse(url).hostname or "page").strip("_") or "page"
    lines = [
        "import re",
        "",
        "from playwright.sync_api import Page, expect",
        "",
        "",
        f"def test_{test_name}(page: Page):",
        f"    page.goto({_quote(url)})",
        "",
    ]
    if title:
        lines.append(f"    expect(page).to_have_title(re.compile({_quote(re.escape(title))}))")

    h1 = (content.get("headings") or {}).get("h1") or []
    if h1 and h1[0].get("text"):
        lines.append(f"    expect({generate_locator(h1[0], 'heading')}).to_be_visible()")

    lines.append('    expect(page.locator("body")).to_be_visible()')

    # First available interactive element gets an active assertion
    for kind, key in (("link", "links"), ("button", "buttons"), ("input", "form_fields")):
        elements = content.get(key) or []
        if elements:
            lines.append(f"    expect({generate_locator(elements[0], kind)}).to_be_visible()")
            break

    return "\n".join(lines) + "\n"


# =============================================================================
# Scraper
# =============================================================================


class Scraper:
    """Shared-browser Playwright scraper writing into the FileStore."""

    def __init__(self, file_store: FileStore, settings: Optional[BrowserSettings] = None):
        self.file_store = file_store
        self.settings = settings or BrowserSettings()
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._lock = asyncio.Lock()

    def config(self) -> Dict[str, Any]:
        return {
            **self.settings.model_dump(),
            "screenshot_category": SCREENSHOT_CATEGORY,
            "default_category": DEFAULT_CATEGORY,
            "playwright_category": PLAYWRIGHT_CATEGORY,
        }

    async def _get_browser(self) -> Browser:
        async with self._lock:
            if self._browser is None or not self._browser.is_connected():
                if self._playwright is None:
                    self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(headless=self.settings.headless)
                logger.info(f"[Scraper] Chromium launched (headless={self.settings.headless})")
            return self._browser

    async def close(self) -> None:
        async with self._lock:
            if self._browser is not None:
                await self._browser.close()
                self._browser = None
            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None

    async def _extract(self, url: str, options: ScrapeOptions) -> Dict[str, Any]:
        """Load the page and return title, structure and optional screenshot bytes."""
        browser = await self._get_browser()
        context = await browser.new_context(
            viewport={
                "width": options.viewport_width or self.settings.viewport_width,
                "height": options.viewport_height or self.settings.viewport_height,
            },
            user_agent=options.user_agent,
        )
        try:
            page = await context.new_page()
            await page.goto(
                url,
                wait_until=options.wait_until or self.settings.wait_until,
                timeout=options.timeout_ms or self.settings.timeout_ms,
            )
            screenshot = await page.screenshot(full_page=True) if options.screenshots else None
            title = await page.title()
            extracted = await page.evaluate(EXTRACT_PAGE_JS)
            return {"title": title, "screenshot": screenshot, **extracted}
        finally:
            await context.close()

    async def scrape_website(self, url: str, options: Optional[ScrapeOptions] = None) -> Dict[str, Any]:
        """
        Scrape one URL and persist its artifacts.

        Raises RuntimeError when the scraped JSON cannot be stored; browser
        errors propagate as raised by Playwright.
        """
        options = options or ScrapeOptions()
        logger.info(f"[Scraper] Scraping: {url}")

        page = await self._extract(url, options)
        content = page["content"]
        filename = url_to_filename(url)

        screenshot_path = None
        if page.get("screenshot"):
            host = urlparse(url).hostname or "page"
            shot = await self.file_store.save_file(
                SCREENSHOT_CATEGORY,
                f"{host}_{int(time.time() * 1000)}.png",
                page["screenshot"],
                sanitize_filename=True,
            )
            if shot["success"]:
                screenshot_path = shot["relative_path"]
            else:
                logger.warning(f"[Scraper] Screenshot not saved for {url}: {shot['error']}")

        script = generate_playwright_script(url, page.get("title"), content)
        data = {
            "url": url,
            "title": page.get("title"),
            "meta_description": page.get("meta_description"),
            "screenshot_path": screenshot_path,
            "scrape_date": datetime.now(timezone.utc).isoformat(),
            "content": content,
            "playwright_locators": build_locators(content),
            "playwright_script": script,
        }

        saved = await self.file_store.save_file(options.category, filename, data, sanitize_filename=True)
        if not saved["success"]:
            raise RuntimeError(f"Could not store scraped data in '{options.category}': {saved['error']}")
        data["file_path"] = saved["relative_path"]

        if options.save_playwright_script:
            script_name = "test_" + filename[: -len(".json")] + ".py"
            stored = await self.file_store.save_file(PLAYWRIGHT_CATEGORY, script_name, script, sanitize_filename=True)
            if stored["success"]:
                data["script_path"] = stored["relative_path"]

        logger.log(SUCCESS, f"[Scraper] Scraped {url} -> {data['file_path']}")
        return data

    async def scrape_many(self, urls: List[str], options: Optional[ScrapeOptions] = None) -> Dict[str, Any]:
        """Scrape several URLs with bounded concurrency, collecting per-URL errors."""
        options = options or ScrapeOptions()
        semaphore = asyncio.Semaphore(options.concurrency or self.settings.max_concurrent_scrapes)
        errors: List[Dict[str, str]] = []

        async def one(url: str) -> Optional[Dict[str, Any]]:
            async with semaphore:
                try:
                    return await self.scrape_website(url, options)
                except Exception as e:
                    logger.error(f"[Scraper] Failed to scrape {url}: {e}")
                    errors.append({"url": url, "error": str(e)})
                    return None

        outcomes = await asyncio.gather(*(one(url) for url in urls))
        results = [r for r in outcomes if r is not None]
        return {
            "results": results,
            "errors": errors,
            "total_processed": len(urls),
            "success_count": len(results),
            "error_count": len(errors),
        }
