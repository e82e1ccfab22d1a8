"""
Artifact Gateway Service Modules

Collaborators that produce artifacts through the FileStore:

- scraper: Playwright page scraping, screenshots and generated tests
- formatter: external formatter/linter tool chains
- test_runner: Playwright/pytest runs with results kept in reports
"""

from apps.services.artifact_gateway.services.formatter import CodeFormatter, ToolRun, tools_for
from apps.services.artifact_gateway.services.scraper import (
    ScrapeOptions,
    Scraper,
    build_locators,
    generate_locator,
    generate_playwright_script,
    url_to_filename,
)
from apps.services.artifact_gateway.services.test_runner import (
    CaseResult,
    RunOptions,
    TestRunner,
    extract_playwright_results,
    parse_junit,
    summarize,
)

__all__ = [
    "CodeFormatter",
    "ToolRun",
    "tools_for",
    "ScrapeOptions",
    "Scraper",
    "build_locators",
    "generate_locator",
    "generate_playwright_script",
    "url_to_filename",
    "CaseResult",
    "RunOptions",
    "TestRunner",
    "extract_playwright_results",
    "parse_junit",
    "summarize",
]
