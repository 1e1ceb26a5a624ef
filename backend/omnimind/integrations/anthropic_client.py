"""Claude AI integration: prompt in, parsed JSON out."""

import json
import logging

import anthropic

logger = logging.getLogger(__name__)


class LLMError(Exception):
    pass


def _parse_json_response(text: str) -> dict | list | None:
    """Extract JSON from an AI response, handling markdown code blocks."""
    try:
        if "```json" in text:
            json_str = text.split("```json")[1].split("```")[0].strip()
        elif "```" in text:
            json_str = text.split("```")[1].split("```")[0].strip()
        else:
            json_str = text.strip()
            # Trim any prose around the outermost object or array
            starts = [i for i in (json_str.find("{"), json_str.find("[")) if i != -1]
            if starts:
                start = min(starts)
                closer = "}" if json_str[start] == "{" else "]"
                end = json_str.rindex(closer) + 1
                json_str = json_str[start:end]
        return json.loads(json_str)
    except (json.JSONDecodeError, ValueError, IndexError):
        return None


class LLMGateway:
    """Thin wrapper over the Anthropic Messages API.

    `model` is used for extraction, summarization, scheduling and conflict
    detection; `fast_model` for the cheaper analysis and drafting calls.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        fast_model: str,
        client: anthropic.AsyncAnthropic | None = None,
    ):
        self.model = model
        self.fast_model = fast_model
        self._client = client or anthropic.AsyncAnthropic(api_key=api_key)

    async def complete_json(
        self,
        system: str,
        prompt: str,
        *,
        temperature: float,
        max_tokens: int = 2000,
        fast: bool = False,
    ) -> dict | list:
        model = self.fast_model if fast else self.model
        try:
            response = await self._client.messages.create(
                model=model,
                max_tokens=max_tokens,
                temperature=temperature,
                system=system,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIError as e:
            logger.error("Anthropic request failed (model=%s): %s", model, e)
            raise LLMError(f"LLM request failed: {e}") from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        result = _parse_json_response(text)
        if result is None:
            logger.warning("LLM returned non-JSON output (model=%s): %.200s", model, text)
            raise LLMError("LLM returned a non-JSON response")
        return result
