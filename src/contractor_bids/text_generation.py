from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Protocol

import vertexai
from vertexai.generative_models import GenerationConfig, GenerativeModel, Tool, grounding

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    def generate_json(self, prompt: str, *, schema: Mapping[str, Any]) -> dict[str, Any]:
        ...

    def generate_text(self, prompt: str, *, use_external_knowledge: bool = False) -> str:
        ...


def parse_json_response(response: str) -> dict[str, Any]:
    """Parse a model reply as a JSON object, tolerating markdown code fences."""
    text = response.strip()
    if text.startswith("```json"):
        text = text[7:]
    if text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    try:
        parsed = json.loads(text.strip())
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON response: {exc}") from exc
    if not isinstance(parsed, dict):
        raise ValueError("Expected a JSON object")
    return parsed


class VertexAITextGenerator:
    """Text and schema-constrained JSON generation with Vertex AI Gemini models."""

    def __init__(
        self,
        *,
        project_id: str,
        location: str = "asia-northeast1",
        model_name: str = "gemini-1.5-pro",
    ) -> None:
        """Initialize the Vertex AI client.

        Args:
            project_id: GCP project ID
            location: Vertex AI location
            model_name: Model name (e.g., "gemini-1.5-pro")
        """
        self.project_id = project_id
        self.location = location
        self.model_name = model_name

        vertexai.init(project=project_id, location=location)
        self.model = GenerativeModel(model_name)

    def generate_text(
        self,
        prompt: str,
        *,
        use_external_knowledge: bool = False,
        temperature: float = 0.7,
        max_output_tokens: int = 8192,
    ) -> str:
        """Generate free text.

        Args:
            prompt: Input prompt
            use_external_knowledge: Ground the answer with Google Search results
            temperature: Sampling temperature (0.0 - 1.0)
            max_output_tokens: Maximum output tokens

        Returns:
            Generated text
        """
        tools = None
        if use_external_knowledge:
            tools = [Tool.from_google_search_retrieval(grounding.GoogleSearchRetrieval())]

        response = self.model.generate_content(
            prompt,
            generation_config=GenerationConfig(temperature=temperature, max_output_tokens=max_output_tokens),
            tools=tools,
        )
        generated_text = response.text

        logger.info(
            "Generated text with Vertex AI",
            extra={
                "model": self.model_name,
                "grounded": use_external_knowledge,
                "input_length": len(prompt),
                "output_length": len(generated_text),
            },
        )
        return generated_text

    def generate_json(
        self,
        prompt: str,
        *,
        schema: Mapping[str, Any],
        temperature: float = 0.7,
        max_output_tokens: int = 8192,
    ) -> dict[str, Any]:
        """Generate a JSON object constrained by ``schema``.

        Raises:
            ValueError: the model did not return a JSON object
        """
        generation_config = GenerationConfig(
            temperature=temperature,
            max_output_tokens=max_output_tokens,
            response_mime_type="application/json",
            response_schema=dict(schema),
        )
        response = self.model.generate_content(prompt, generation_config=generation_config)

        try:
            result = parse_json_response(response.text)
        except ValueError:
            logger.error(
                "Failed to parse JSON response",
                exc_info=True,
                extra={"model": self.model_name, "response": response.text},
            )
            raise

        logger.info(
            "Generated JSON with Vertex AI",
            extra={"model": self.model_name, "keys": sorted(result)},
        )
        return result


__all__ = ["TextGenerator", "VertexAITextGenerator", "parse_json_response"]
