from typing import ClassVar

from manifest_ingest.config.settings import Settings
from manifest_ingest.extraction.base import BaseManifestExtractor
from manifest_ingest.extraction.client_base import BaseExtractionClient
from manifest_ingest.extraction.example_client_adapter import ExampleClientAdapter
from manifest_ingest.extraction.llm_extractor import LlmManifestExtractor
from manifest_ingest.extraction.openai_client_adapter import OpenAIClientAdapter
from manifest_ingest.pdf.factory import PdfExtractorFactory


class ExtractorFactory:
    """Creates the configured manifest extractor."""

    OPENAI_COMPATIBLE_BASE_URLS: ClassVar[dict[str, str]] = {
        "openrouter": "https://openrouter.ai/api/v1",
        "groq": "https://api.groq.com/openai/v1",
        "ollama": "http://localhost:11434/v1",
    }

    @classmethod
    def create(cls, settings: Settings) -> BaseManifestExtractor:
        provider = settings.extraction_provider.strip().lower()
        pdf_extractor = PdfExtractorFactory.create(settings)
        if provider == "example":
            return LlmManifestExtractor(
                pdf_extractor=pdf_extractor,
                client=ExampleClientAdapter(),
                model="example",
            )
        return LlmManifestExtractor(
            pdf_extractor=pdf_extractor,
            client=cls._create_client(provider, settings),
            model=cls._resolve_model_name(provider, settings),
            temperature=settings.extraction_openai_temperature if provider == "openai" else 0.0,
        )

    @classmethod
    def _create_client(cls, provider: str, settings: Settings) -> BaseExtractionClient:
        if provider == "openai":
            return OpenAIClientAdapter(
                api_key=settings.extraction_openai_api_key,
                timeout_seconds=settings.extraction_openai_timeout_seconds,
                base_url=None,
            )
        return OpenAIClientAdapter(
            api_key=settings.extraction_openai_compatible_api_key,
            timeout_seconds=settings.extraction_openai_timeout_seconds,
            base_url=cls._resolve_base_url(provider, settings),
        )

    @classmethod
    def _resolve_base_url(cls, provider: str, settings: Settings) -> str:
        configured = settings.extraction_openai_compatible_base_url.strip()
        if provider == "openai_compatible":
            if not configured:
                raise ValueError(
                    "extraction_openai_compatible_base_url is required for "
                    "extraction_provider=openai_compatible"
                )
            return configured
        default_base_url = cls.OPENAI_COMPATIBLE_BASE_URLS.get(provider)
        if default_base_url is None:
            supported = ["example", "openai", "openai_compatible", *sorted(cls.OPENAI_COMPATIBLE_BASE_URLS)]
            raise ValueError(
                f"Unknown extraction provider '{provider}'. Choose from: {supported}"
            )
        return configured or default_base_url

    @classmethod
    def _resolve_model_name(cls, provider: str, settings: Settings) -> str:
        if provider == "openai":
            return settings.extraction_openai_model_name
        return settings.extraction_openai_compatible_model_name
