"""Minimal Pydantic models for the GitHub releases API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class GitHubBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class ReleaseAsset(GitHubBaseModel):
    name: str
    digest: str | None = None
    browser_download_url: str | None = None


class Release(GitHubBaseModel):
    tag_name: str
    assets: list[ReleaseAsset] = Field(default_factory=list["ReleaseAsset"])

    def find_asset(self, name: str) -> ReleaseAsset | None:
        return next((asset for asset in self.assets if asset.name == name), None)
