"""Minimal Pydantic models for registry auth files and API payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class RegistryBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class AuthEntry(RegistryBaseModel):
    auth: str | None = None
    username: str | None = None
    password: str | None = None


class AuthFile(RegistryBaseModel):
    auths: dict[str, AuthEntry] = Field(default_factory=dict)


class TokenResponse(RegistryBaseModel):
    token: str | None = None
    access_token: str | None = None


class RegistryErrorDetail(RegistryBaseModel):
    code: str | None = None
    message: str | None = None


class RegistryErrorResponse(RegistryBaseModel):
    errors: list[RegistryErrorDetail] = Field(default_factory=list["RegistryErrorDetail"])
