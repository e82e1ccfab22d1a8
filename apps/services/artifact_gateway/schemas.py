"""
Request bodies for the artifact gateway API.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field

from apps.services.artifact_gateway.services.scraper import ScrapeOptions
from apps.services.artifact_gateway.services.test_runner import RunOptions


class SaveFileRequest(BaseModel):
    category: str = ""
    file_name: str
    data: Any = None
    overwrite: bool = True
    append: bool = False
    sanitize_filename: bool = False
    encoding: Optional[str] = None


class CreateFolderRequest(BaseModel):
    category: str = ""
    folder_name: str


class CopyFileRequest(BaseModel):
    source_category: str = ""
    source_file_name: str
    target_category: str = ""
    target_file_name: Optional[str] = None
    overwrite: bool = True


class SetLogLevelRequest(BaseModel):
    level: Optional[str] = None


class ScrapeRequest(BaseModel):
    urls: List[str] = Field(default_factory=list)
    options: ScrapeOptions = Field(default_factory=ScrapeOptions)


class PlaywrightRequest(BaseModel):
    url: Optional[str] = None
    options: ScrapeOptions = Field(default_factory=ScrapeOptions)
    selector: Optional[str] = None
    include_script: bool = True


class FormatExistingRequest(BaseModel):
    category: str
    file_name: str
    tools: Optional[List[str]] = None
    output_file_name: Optional[str] = None


class RunTestsRequest(BaseModel):
    test_file: Optional[str] = None
    category: str = "playwright"
    reporter: str = "json"
    project: Optional[str] = None
    timeout: Optional[float] = None
    headed: bool = False
    debug: bool = False
    test_name: Optional[str] = None
    include_full_report: bool = False

    def run_options(self) -> RunOptions:
        return RunOptions(
            reporter=self.reporter,
            project=self.project,
            timeout=self.timeout,
            headed=self.headed,
            debug=self.debug,
            test_name=self.test_name,
            include_full_report=self.include_full_report,
        )


class RunAllTestsRequest(RunTestsRequest):
    pattern: Optional[str] = None
