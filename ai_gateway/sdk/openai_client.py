"""
OpenAI provider adapter.

Thin wrapper over the OpenAI SDK for the three provider calls the gateway
makes: inference, batch file upload and batch creation. SDK errors are
converted to UpstreamFailure at this boundary; nothing is retried.
"""

import logging
from typing import Any, Dict, List, Optional

import openai
from openai import OpenAI

from ..core.errors import ConfigurationError, UpstreamFailure

logger = logging.getLogger(__name__)


def extract_output_text(payload: Any) -> str:
    """Pull the answer text out of a Responses API result.

    Accepts SDK objects or plain dicts. Prefers the aggregated `output_text`
    field and falls back to the first `output_text` segment of the first
    output message.
    """
    if not payload:
        return ""

    def read(obj: Any, name: str, default: Any = None) -> Any:
        if isinstance(obj, dict):
            return obj.get(name, default)
        return getattr(obj, name, default)

    text = read(payload, "output_text")
    if isinstance(text, str) and text:
        return text

    outputs = read(payload, "output") or []
    if not outputs:
        return ""
    for segment in read(outputs[0], "content") or []:
        if read(segment, "type") == "output_text":
            return read(segment, "text") or ""
    return ""


class OpenAIProvider:
    """Provider client used by the gateway and the batch submitter."""

    def __init__(self, api_key: Optional[str], client: Optional[OpenAI] = None):
        """Initialize the provider.

        Args:
            api_key: OpenAI API key (required)
            client: Preconfigured SDK client, mainly for tests

        Raises:
            ConfigurationError: If api_key is missing/empty
        """
        if not api_key or not api_key.strip():
            raise ConfigurationError("OPENAI_API_KEY is not configured on the server.")
        self.client = client or OpenAI(api_key=api_key)

    def _call(self, operation: str, func, **kwargs: Any) -> Any:
        try:
            return func(**kwargs)
        except openai.APIStatusError as e:
            logger.warning("Provider %s failed with HTTP %s", operation, e.status_code)
            raise UpstreamFailure(
                f"OpenAI {operation} failed: {e.message}",
                operation=operation,
                status_code=e.status_code,
                details={"body": e.body},
            ) from e
        except openai.OpenAIError as e:
            logger.warning("Provider %s failed: %s", operation, e)
            raise UpstreamFailure(f"OpenAI {operation} failed: {e}", operation=operation) from e

    def respond(
        self,
        model: str,
        messages: List[Dict[str, str]],
        max_output_tokens: int
    ) -> str:
        """Run one inference call and return the answer text ("" if none)."""
        response = self._call(
            "inference",
            self.client.responses.create,
            model=model,
            input=messages,
            max_output_tokens=max_output_tokens,
        )
        return extract_output_text(response)

    def upload_batch_file(self, content: bytes, filename: str) -> str:
        """Upload a JSONL submission and return its file id."""
        uploaded = self._call(
            "file upload",
            self.client.files.create,
            file=(filename, content, "application/jsonl"),
            purpose="batch",
        )
        return uploaded.id

    def create_batch(
        self,
        input_file_id: str,
        endpoint: str,
        completion_window: str,
        metadata: Optional[Dict[str, str]] = None
    ) -> str:
        """Register an asynchronous batch job and return its id."""
        batch = self._call(
            "batch creation",
            self.client.batches.create,
            input_file_id=input_file_id,
            endpoint=endpoint,
            completion_window=completion_window,
            metadata=metadata or {},
        )
        return batch.id
