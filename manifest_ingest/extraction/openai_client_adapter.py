from typing import Any

import httpx
import openai

from manifest_ingest.extraction.client_base import BaseExtractionClient
from manifest_ingest.extraction.exceptions import ExtractionError, ExtractionNetworkError
from manifest_ingest.logging.logger import Log

RESPONSE_FORMAT_NAME = "delivery_manifest"


def manifest_response_format(json_schema: dict[str, object]) -> dict[str, Any]:
    """Strict structured-output request for one delivery manifest."""
    return {
        "type": "json_schema",
        "json_schema": {
            "name": RESPONSE_FORMAT_NAME,
            "description": "Manifest header fields and every delivery row in document order",
            "strict": True,
            "schema": json_schema,
        },
    }


class OpenAIClientAdapter(BaseExtractionClient):
    """Manifest extraction over any OpenAI-compatible chat completions endpoint.

    The provider is asked for a strict ``delivery_manifest`` JSON object. A
    reply cut off at the token limit or refused by the model is reported as
    an extraction error rather than handed on as partial JSON.
    """

    def __init__(
        self,
        *,
        api_key: str,
        timeout_seconds: int,
        base_url: str | None = None,
    ) -> None:
        self._client = openai.OpenAI(api_key=api_key, timeout=timeout_seconds, base_url=base_url)

    def create_chat_completion(
        self,
        *,
        model: str,
        temperature: float,
        system_prompt: str,
        user_prompt: str,
        json_schema: dict[str, object],
    ) -> str:
        try:
            response = self._client.chat.completions.create(
                model=model,
                temperature=temperature,
                response_format=manifest_response_format(json_schema),
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
            )
        except (openai.APIConnectionError, httpx.ConnectError, httpx.TimeoutException) as exc:
            raise ExtractionNetworkError(f"AI provider network error: {exc}") from exc
        except openai.APIError as exc:
            raise ExtractionNetworkError(f"AI provider API error: {exc}") from exc

        return self._manifest_json(response, model)

    @staticmethod
    def _manifest_json(response: Any, model: str) -> str:
        if not response.choices:
            raise ExtractionError("AI returned no choices")
        choice = response.choices[0]
        if choice.finish_reason == "length":
            # Long manifests can exceed the output limit; the JSON would be cut mid-delivery.
            raise ExtractionError(f"AI response from {model} was truncated before the manifest ended")
        refusal = getattr(choice.message, "refusal", None)
        if refusal:
            raise ExtractionError(f"AI refused to extract the manifest: {refusal}")
        content = choice.message.content
        if content is None:
            raise ExtractionError("AI returned empty response")
        if response.usage is not None:
            Log.debug(f"Manifest extraction with {model} used {response.usage.total_tokens} tokens")
        return content
