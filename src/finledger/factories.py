"""Wiring of the processing pipeline from settings."""

from typing import Optional

from finledger.config import PipelineSettings
from finledger.database.base import Database
from finledger.domain.categorization import AutoCategorizer
from finledger.domain.classifier import DocumentClassifier
from finledger.domain.content_parser import ContentParser, Decoder
from finledger.domain.currency import CurrencyNormalizer, RateSource
from finledger.domain.deduplication import DeduplicationGate
from finledger.domain.escalation import EnhancedExtractor, EscalationController
from finledger.domain.extraction import ExtractionEngine
from finledger.domain.pipeline import PipelineOrchestrator
from finledger.domain.quota import QuotaService
from finledger.integrations.ai_extractor import LLMStatementExtractor
from finledger.integrations.decoders import DefaultDecoder
from finledger.integrations.rate_source import DolarApiRateSource


def create_enhanced_extractor(settings: PipelineSettings) -> Optional[LLMStatementExtractor]:
    """Return the model-backed extractor, or None when no API key is configured."""
    if not settings.ai_api_key:
        return None
    return LLMStatementExtractor(
        api_key=settings.ai_api_key,
        api_url=settings.ai_api_url,
        models=settings.ai_models,
        timeout=settings.ai_timeout_seconds,
        max_tokens=settings.ai_max_tokens,
        default_currency=settings.default_currency,
    )


def create_rate_source(settings: PipelineSettings) -> DolarApiRateSource:
    return DolarApiRateSource(settings.rate_api_url, timeout=settings.rate_timeout_seconds)


def create_pipeline(
    db: Database,
    settings: Optional[PipelineSettings] = None,
    decoder: Optional[Decoder] = None,
    enhanced_extractor: Optional[EnhancedExtractor] = None,
    rate_source: Optional[RateSource] = None,
) -> PipelineOrchestrator:
    """Build a pipeline orchestrator.

    Args:
        db: Database instance
        settings: Pipeline settings, read from the environment if None
        decoder: Byte decoder, defaults to DefaultDecoder
        enhanced_extractor: Overrides the extractor built from settings
        rate_source: Overrides the rate source built from settings

    Returns:
        PipelineOrchestrator ready to process documents
    """
    settings = settings or PipelineSettings.from_env()
    if enhanced_extractor is None:
        enhanced_extractor = create_enhanced_extractor(settings)
    if rate_source is None:
        rate_source = create_rate_source(settings)

    quota_service = QuotaService(db, default_limit=settings.default_monthly_quota)
    return PipelineOrchestrator(
        db=db,
        parser=ContentParser(decoder or DefaultDecoder()),
        classifier=DocumentClassifier(),
        engine=ExtractionEngine(default_currency=settings.default_currency),
        escalation=EscalationController(
            quota_service,
            enhanced_extractor=enhanced_extractor,
            threshold=settings.escalation_threshold,
            review_all_ai_results=settings.review_all_ai_results,
        ),
        dedup_gate=DeduplicationGate(db),
        currency=CurrencyNormalizer(db, rate_source, reference_currency=settings.reference_currency),
        categorizer=AutoCategorizer(),
    )
