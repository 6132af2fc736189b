"""Parsed ebuild facts."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

PackageType = Literal["github", "pypi", "npm", "crates", "generic"]


class EbuildMetadata(BaseModel):
    """Facts recovered from the selected ebuild of one package."""

    model_config = ConfigDict(str_strip_whitespace=True)

    package: str
    version: str
    homepage: str = ""
    src_uri: str = ""
    dependencies: list[str] = Field(default_factory=list)
    is_live: bool = False
    is_binary: bool = False

    @property
    def category(self) -> str:
        return self.package.split("/", 1)[0]

    @property
    def name(self) -> str:
        return self.package.rsplit("/", 1)[-1]
