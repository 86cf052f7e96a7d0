"""AI-assisted manifest extractor: PDF text in, structured manifest out."""

import json
from pathlib import Path

from manifest_ingest.extraction.base import BaseManifestExtractor
from manifest_ingest.extraction.client_base import BaseExtractionClient
from manifest_ingest.extraction.exceptions import ExtractionError
from manifest_ingest.extraction.models import ExtractedManifest
from manifest_ingest.extraction.prompt_loader import load_json_schema, load_prompt_template
from manifest_ingest.extraction.validator import validate_and_build
from manifest_ingest.logging.logger import Log
from manifest_ingest.pdf.base import BasePdfExtractor

DEFAULT_SYSTEM_PROMPT = (
    "You extract structured delivery manifest data from document text. "
    "Reply with JSON only."
)


class LlmManifestExtractor(BaseManifestExtractor):
    def __init__(
        self,
        *,
        pdf_extractor: BasePdfExtractor,
        client: BaseExtractionClient,
        model: str,
        temperature: float = 0.0,
        prompt_template_path: Path | None = None,
        json_schema_path: Path | None = None,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    ) -> None:
        self._pdf_extractor = pdf_extractor
        self._client = client
        self._model = model
        self._temperature = max(0.0, min(0.2, temperature))
        self._system_prompt = system_prompt
        self._prompt_template = load_prompt_template(prompt_template_path)
        self._json_schema = load_json_schema(json_schema_path)
        self._json_schema_dict = json.loads(self._json_schema)

    def extract(self, pdf_bytes: bytes) -> ExtractedManifest:
        text = self._pdf_extractor.extract(pdf_bytes)
        if not text:
            raise ExtractionError("Document contains no extractable text")
        Log.debug(f"Extracted {len(text)} chars of manifest text")

        prompt = self._prompt_template.format(
            document_text=text,
            json_schema=self._json_schema,
        )
        raw_response = self._client.create_chat_completion(
            model=self._model,
            temperature=self._temperature,
            system_prompt=self._system_prompt,
            user_prompt=prompt,
            json_schema=self._json_schema_dict,
        )
        Log.debug(f"AI raw response:\n{raw_response}")

        manifest = validate_and_build(self._parse_json(raw_response))
        Log.info(
            f"Extracted manifest {manifest.manifest_id!r} "
            f"with {manifest.delivery_count} deliveries"
        )
        return manifest

    @staticmethod
    def _parse_json(raw: str) -> dict[str, object]:
        cleaned = raw.strip()
        if cleaned.startswith("```"):
            lines = cleaned.splitlines()[1:]
            if lines and lines[-1].strip() == "```":
                lines = lines[:-1]
            cleaned = "\n".join(lines)

        try:
            parsed = json.loads(cleaned)
        except json.JSONDecodeError as exc:
            raise ExtractionError(f"Invalid JSON response: {exc}") from exc

        if not isinstance(parsed, dict):
            raise ExtractionError("JSON response must be an object")
        return parsed
