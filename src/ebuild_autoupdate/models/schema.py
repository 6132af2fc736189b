"""Extraction schemas.

A schema pairs an endpoint URL with a primary extraction strategy and an
optional fallback strategy of the same union type. ``PackageConfig`` is the
flat record stored in ``packages.toml``; ``ExtractionSchema.from_config`` and
``ExtractionSchema.to_config`` convert between the two.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

ParserType = Literal["json", "html", "regex", "llm"]
KNOWN_PARSERS: tuple[ParserType, ...] = ("json", "html", "regex", "llm")
CONFIG_PARSERS: tuple[ParserType, ...] = ("json", "html", "regex")


class JsonStrategy(BaseModel):
    """Walk a parsed JSON document along ``path``."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["json"] = "json"
    path: str


class RegexStrategy(BaseModel):
    """First match of ``pattern`` against the raw text."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["regex"] = "regex"
    pattern: str


class HtmlStrategy(BaseModel):
    """CSS selector or XPath over parsed markup, optionally refined by ``pattern``."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["html"] = "html"
    selector: str | None = None
    xpath: str | None = None
    pattern: str | None = None

    @model_validator(mode="after")
    def _require_locator(self) -> HtmlStrategy:
        if not self.selector and not self.xpath:
            raise ValueError("html strategy needs a selector or an xpath")
        return self


class LlmStrategy(BaseModel):
    """Delegate extraction to the configured LLM provider."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["llm"] = "llm"
    prompt: str | None = None


AnyStrategy = JsonStrategy | RegexStrategy | HtmlStrategy | LlmStrategy
Strategy = Annotated[AnyStrategy, Field(discriminator="kind")]


class PackageConfig(BaseModel):
    """One ``[category/package]`` table of packages.toml."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    url: str = ""
    parser: str = ""
    path: str | None = None
    pattern: str | None = None
    selector: str | None = None
    xpath: str | None = None
    binary: bool = False
    fallback_url: str | None = None
    fallback_parser: str | None = None
    fallback_pattern: str | None = None
    llm_prompt: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    versions_path: str | None = None
    versions_selector: str | None = None


class ExtractionSchema(BaseModel):
    """Declarative recipe for pulling a version out of one endpoint's content."""

    model_config = ConfigDict(frozen=True)

    url: str
    primary: Strategy
    fallback: Strategy | None = None
    fallback_url: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    versions_path: str | None = None
    versions_selector: str | None = None
    binary: bool = False

    @property
    def parser(self) -> ParserType:
        return self.primary.kind

    @property
    def fallback_parser(self) -> ParserType | None:
        return self.fallback.kind if self.fallback is not None else None

    @property
    def llm_prompt(self) -> str | None:
        for strategy in (self.primary, self.fallback):
            if isinstance(strategy, LlmStrategy) and strategy.prompt:
                return strategy.prompt
        return None

    @property
    def has_version_history(self) -> bool:
        if self.versions_path or self.versions_selector:
            return True
        return isinstance(self.primary, HtmlStrategy) and bool(self.primary.xpath)

    def fallback_schema(self) -> ExtractionSchema | None:
        """Schema that treats the fallback strategy as primary, or None without one."""

        if self.fallback is None:
            return None
        return ExtractionSchema(
            url=self.fallback_url or self.url,
            primary=self.fallback,
            headers=self.headers,
            binary=self.binary,
        )

    @classmethod
    def from_config(cls, config: PackageConfig) -> ExtractionSchema:
        """Build a schema from a validated packages.toml record."""

        primary = _strategy_for(config.parser, config, pattern=config.pattern)
        fallback = None
        if config.fallback_parser:
            fallback = _strategy_for(config.fallback_parser, config, pattern=config.fallback_pattern)
        return cls(
            url=config.url,
            primary=primary,
            fallback=fallback,
            fallback_url=config.fallback_url,
            headers=dict(config.headers),
            versions_path=config.versions_path,
            versions_selector=config.versions_selector,
            binary=config.binary,
        )

    def to_config(self) -> PackageConfig:
        """Flatten back into the packages.toml record shape."""

        fields: dict[str, object] = {
            "url": self.url,
            "parser": self.parser,
            "binary": self.binary,
            "fallback_url": self.fallback_url,
            "headers": dict(self.headers),
            "versions_path": self.versions_path,
            "versions_selector": self.versions_selector,
        }
        _flatten_strategy(self.primary, fields, pattern_key="pattern")
        if self.fallback is not None:
            fields["fallback_parser"] = self.fallback.kind
            _flatten_strategy(self.fallback, fields, pattern_key="fallback_pattern")
        return PackageConfig.model_validate(fields)


def _strategy_for(parser: str, config: PackageConfig, *, pattern: str | None) -> AnyStrategy:
    match parser:
        case "json":
            return JsonStrategy(path=config.path or "")
        case "regex":
            return RegexStrategy(pattern=pattern or "")
        case "html":
            return HtmlStrategy(selector=config.selector, xpath=config.xpath, pattern=pattern)
        case "llm":
            return LlmStrategy(prompt=config.llm_prompt)
    raise ValueError(f"unknown parser type: {parser!r}")


def _flatten_strategy(
    strategy: AnyStrategy,
    fields: dict[str, object],
    *,
    pattern_key: str,
) -> None:
    match strategy:
        case JsonStrategy(path=path):
            fields.setdefault("path", path)
        case RegexStrategy(pattern=pattern):
            fields[pattern_key] = pattern
        case HtmlStrategy(selector=selector, xpath=xpath, pattern=pattern):
            fields.setdefault("selector", selector)
            fields.setdefault("xpath", xpath)
            if pattern:
                fields[pattern_key] = pattern
        case LlmStrategy(prompt=prompt):
            fields.setdefault("llm_prompt", prompt)
