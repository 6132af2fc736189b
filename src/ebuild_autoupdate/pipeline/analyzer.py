"""Per-package analysis: find an endpoint and a schema that agree with the ebuild.

metadata -> data sources -> cache -> fetch -> schema (configured or LLM
suggested) -> fallback enhancement -> validation -> cache write.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
from loguru import logger

from ebuild_autoupdate.clients.http import fetch_content
from ebuild_autoupdate.discovery.sources import detect_content_type, discover_data_sources
from ebuild_autoupdate.errors import AutoupdateError, ConfigError, LLMError, NoValidSchema
from ebuild_autoupdate.extraction.engine import as_text
from ebuild_autoupdate.extraction.fallback import enhance_schema_with_fallback
from ebuild_autoupdate.models.analysis import AnalysisResult, SourceAttempt
from ebuild_autoupdate.models.source import PRIORITY_PROVIDED, DataSource
from ebuild_autoupdate.overlay.ebuild_meta import extract_ebuild_metadata
from ebuild_autoupdate.pipeline.validation import validate_schema, validate_schema_with_fallback

if TYPE_CHECKING:
    from pathlib import Path

    from ebuild_autoupdate.clients.http import FetchedContent
    from ebuild_autoupdate.clients.llm import LLMProvider
    from ebuild_autoupdate.clients.ratelimit import RateLimiter
    from ebuild_autoupdate.config import PackagesConfig
    from ebuild_autoupdate.models.ebuild import EbuildMetadata
    from ebuild_autoupdate.models.schema import ExtractionSchema
    from ebuild_autoupdate.storage.analysis_cache import AnalysisCache


class Analyzer:
    """Runs the analysis pipeline for one overlay."""

    def __init__(
        self,
        overlay_path: Path,
        client: httpx.AsyncClient,
        limiter: RateLimiter,
        cache: AnalysisCache,
        *,
        llm: LLMProvider | None = None,
        packages: PackagesConfig | None = None,
    ) -> None:
        self.overlay_path = overlay_path
        self.client = client
        self.limiter = limiter
        self.cache = cache
        self.llm = llm
        self.packages = packages

    async def analyze(
        self,
        package: str,
        *,
        provided_url: str | None = None,
        hint: str = "",
        force: bool = False,
    ) -> AnalysisResult:
        """Find a validated schema for ``package``.

        A fresh cache entry is re-validated against its endpoint and returned
        unless ``force`` bypasses the cache. Otherwise data sources are tried
        in priority order until one validates.

        Raises:
            NoValidSchema: no source produced a schema matching the ebuild version.
        """
        meta = extract_ebuild_metadata(self.overlay_path, package)
        configured = self._configured_schema(package)
        if configured is not None and not provided_url:
            provided_url = configured.url

        cached = self.cache.get_with_bypass(package, force)
        if cached is not None:
            result = await self._try_cached(meta, cached.extraction_schema, cached.url)
            if result is not None:
                return result

        attempts: list[SourceAttempt] = []
        for source in discover_data_sources(meta, provided_url):
            attempt = SourceAttempt(source=source)
            attempts.append(attempt)
            try:
                result = await self._try_source(meta, source, configured, hint, attempt)
            except (httpx.HTTPError, AutoupdateError) as exc:
                attempt.error = str(exc)
                logger.warning("Skipping {} for {}: {}", source.url, package, exc)
                continue
            if result is not None:
                result.attempts = attempts
                self.cache.set(package, result.extraction_schema, source.url)
                self.cache.save()
                logger.info("Validated {} schema for {} from {}", result.extraction_schema.parser, package, source.url)
                return result

        raise NoValidSchema(f"no data source produced a valid schema for {package} ({len(attempts)} tried)")

    def _configured_schema(self, package: str) -> ExtractionSchema | None:
        if self.packages is None:
            return None
        try:
            return self.packages.schema_for(package)
        except ConfigError as exc:
            logger.warning("Ignoring invalid packages.toml entry: {}", exc)
            return None

    async def _fetch(self, url: str, headers: dict[str, str] | None = None) -> FetchedContent:
        return await fetch_content(self.client, self.limiter, url, headers=headers)

    async def _try_cached(self, meta: EbuildMetadata, schema: ExtractionSchema, url: str) -> AnalysisResult | None:
        source = DataSource(url=url, type="provided", priority=PRIORITY_PROVIDED, content_type=detect_content_type(url))
        try:
            fetched = await self._fetch(url, schema.headers)
        except httpx.HTTPError as exc:
            logger.warning("Cached endpoint {} for {} unreachable: {}", url, meta.package, exc)
            return None
        validation = await validate_schema(fetched.body, schema, meta.version, llm=self.llm, limiter=self.limiter)
        if not validation.valid:
            logger.info("Cached schema for {} no longer validates: {}", meta.package, validation.error)
            return None
        return AnalysisResult(
            package=meta.package,
            version=validation.extracted_version,
            extraction_schema=schema,
            source=source,
            validation=validation,
            from_cache=True,
        )

    async def _schema_for_source(
        self,
        meta: EbuildMetadata,
        source: DataSource,
        fetched: FetchedContent,
        configured: ExtractionSchema | None,
        hint: str,
    ) -> ExtractionSchema:
        if configured is not None and configured.url == source.url:
            return configured
        if self.llm is None:
            raise LLMError("no configured schema for this endpoint and no LLM provider to suggest one")
        await self.limiter.wait_llm()
        analysis = await self.llm.analyze_content(as_text(fetched.body), meta, hint)
        try:
            return analysis.to_schema(source.url)
        except ValueError as exc:
            raise LLMError(f"unusable schema suggestion: {exc}") from exc

    async def _try_source(
        self,
        meta: EbuildMetadata,
        source: DataSource,
        configured: ExtractionSchema | None,
        hint: str,
        attempt: SourceAttempt,
    ) -> AnalysisResult | None:
        headers = configured.headers if configured is not None and configured.url == source.url else None
        fetched = await self._fetch(source.url, headers)
        schema = enhance_schema_with_fallback(await self._schema_for_source(meta, source, fetched, configured, hint))

        fallback_body = None
        if schema.fallback_url and schema.fallback_url != source.url:
            try:
                fallback_body = (await self._fetch(schema.fallback_url, schema.headers)).body
            except httpx.HTTPError as exc:
                logger.warning("Fallback endpoint {} unreachable: {}", schema.fallback_url, exc)

        validation = await validate_schema_with_fallback(
            fetched.body, fallback_body, schema, meta.version, llm=self.llm, limiter=self.limiter
        )
        attempt.validation = validation
        if not validation.valid:
            attempt.error = str(validation.error)
            logger.info("Schema from {} did not validate for {}: {}", source.url, meta.package, validation.error)
            return None
        return AnalysisResult(
            package=meta.package,
            version=validation.extracted_version,
            extraction_schema=schema,
            source=source,
            validation=validation,
        )
