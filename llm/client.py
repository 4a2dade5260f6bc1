import logging

import openai
from openai import AsyncOpenAI

from core.config import LLMConfig
from core.errors import (
    RemoteCompletionError,
    RemoteMalformedResponseError,
    RemoteNetworkError,
    RemoteRejectedError,
)
from llm.prompts import build_messages

logger = logging.getLogger(__name__)

NETWORK_APOLOGY = "I couldn't connect to OpenAI. Please check your API key or network."
MALFORMED_APOLOGY = "I received an unexpected response from OpenAI."


class RemoteCompletionClient:
    def __init__(self, config: LLMConfig, api_key: str):
        self.config = config
        self.model = config.model
        # The SDK retries connection errors, 408/409/429 and 5xx with
        # exponential backoff, up to max_retries times.
        self.client = AsyncOpenAI(
            base_url=config.base_url,
            api_key=api_key,
            timeout=config.timeout,
            max_retries=config.max_retries,
        )

    async def complete(self, text: str, user_name: str = "") -> str:
        """Request a completion for one utterance.

        Raises RemoteNetworkError, RemoteRejectedError or
        RemoteMalformedResponseError.
        """
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=build_messages(text, user_name),
            )
        except (openai.APIConnectionError, openai.APITimeoutError) as e:
            raise RemoteNetworkError(str(e)) from e
        except openai.APIStatusError as e:
            raise RemoteRejectedError(_error_message(e), status_code=e.status_code) from e
        except openai.APIResponseValidationError as e:
            raise RemoteMalformedResponseError(str(e)) from e

        if not response.choices:
            raise RemoteMalformedResponseError("Response has no choices")
        content = response.choices[0].message.content
        if content is None:
            raise RemoteMalformedResponseError("First choice has no content")
        return content.strip()

    async def ask(self, text: str, user_name: str = "") -> str:
        """Like complete(), but always returns a reply string."""
        try:
            return await self.complete(text, user_name)
        except RemoteNetworkError as e:
            logger.warning("Remote completion unreachable: %s", e)
            return NETWORK_APOLOGY
        except RemoteRejectedError as e:
            logger.warning("Remote completion rejected (status %s): %s", e.status_code, e.message)
            return f"OpenAI error: {e.message}"
        except RemoteCompletionError as e:
            logger.warning("Remote completion malformed: %s", e)
            return MALFORMED_APOLOGY

    async def health(self) -> dict:
        """Check if the completion endpoint is reachable."""
        try:
            await self.client.models.list()
            return {"status": "ok", "model": self.model}
        except openai.OpenAIError as e:
            return {"status": "error", "error": str(e)}


def _error_message(error: openai.APIStatusError) -> str:
    body = error.body
    if isinstance(body, dict):
        nested = body.get("error", body)
        if isinstance(nested, dict) and nested.get("message"):
            return str(nested["message"])
    return error.message
