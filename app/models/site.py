from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class StoredFile(BaseModel):
    name: str
    size: int
    modified: datetime


class UploadedFile(BaseModel):
    name: str
    size: int
    path: str


class UploadResult(BaseModel):
    success: bool = True
    message: str = "Files uploaded successfully!"
    subdomain: str
    url: str
    files: List[UploadedFile]


class SiteSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    url: str
    file_count: int = Field(alias="fileCount")
    files: List[str]


class FileList(BaseModel):
    files: List[StoredFile]


class SiteList(BaseModel):
    total: int
    sites: List[SiteSummary]


class DeleteResult(BaseModel):
    success: bool = True
    message: str


class HealthStatus(BaseModel):
    status: str
    timestamp: str
