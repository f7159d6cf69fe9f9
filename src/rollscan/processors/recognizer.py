"""
Recognition client: the external service that turns a PDF chunk into
structured voter records.

The pipeline only relies on the ``RecognitionClient`` protocol. The default
implementation calls OpenAI chat completions with the chunk attached as a
file and a strict JSON schema as the response format.
"""

import base64
from typing import Any, Optional, Protocol, runtime_checkable

import structlog
from openai import AsyncOpenAI
from pydantic import BaseModel, Field

from rollscan.core.schemas import mask_credential

logger = structlog.get_logger(__name__)

NORMAL_COMPLETION = "stop"
REFUSAL = "refusal"


class RecognitionResponse(BaseModel):
    """Raw answer of the recognition service."""

    completion_status: Optional[str] = Field(
        None, description="Declared finish reason; 'stop' is the only normal one"
    )
    payload: str = Field(default="", description="Structured output as JSON text")
    detail: Optional[str] = Field(None, description="Explanation attached to an abnormal completion")


@runtime_checkable
class RecognitionClient(Protocol):
    """
    Protocol for recognition backends.

    Implementations perform exactly one remote call per invocation and
    never retry on their own; retry and failover live in the pipeline.
    """

    async def recognize(
        self,
        credential: str,
        instruction: str,
        payload: bytes,
        schema: dict[str, Any],
        filename: str = "chunk.pdf",
    ) -> RecognitionResponse:
        ...


class OpenAIRecognizer:
    """
    Recognition backend using OpenAI models with PDF file input.

    One ``AsyncOpenAI`` client is created per credential and reused.
    """

    def __init__(
        self,
        model: str = "gpt-4.1-mini",
        base_url: Optional[str] = None,
        temperature: float = 0.1,
    ):
        self.model = model
        self.base_url = base_url
        self.temperature = temperature
        self._clients: dict[str, AsyncOpenAI] = {}

        logger.info("OpenAIRecognizer initialized", model=self.model)

    def _client_for(self, credential: str) -> AsyncOpenAI:
        client = self._clients.get(credential)
        if client is None:
            # failover owns retrying
            client = AsyncOpenAI(
                api_key=credential,
                base_url=self.base_url,
                max_retries=0,
            )
            self._clients[credential] = client
            logger.debug("OpenAI client created", credential=mask_credential(credential))
        return client

    async def recognize(
        self,
        credential: str,
        instruction: str,
        payload: bytes,
        schema: dict[str, Any],
        filename: str = "chunk.pdf",
    ) -> RecognitionResponse:
        encoded = base64.b64encode(payload).decode("ascii")

        response = await self._client_for(credential).chat.completions.create(
            model=self.model,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": instruction},
                        {
                            "type": "file",
                            "file": {
                                "filename": filename,
                                "file_data": f"data:application/pdf;base64,{encoded}",
                            },
                        },
                    ],
                }
            ],
            response_format={
                "type": "json_schema",
                "json_schema": {
                    "name": "voter_roll",
                    "schema": schema,
                    "strict": True,
                },
            },
            temperature=self.temperature,
        )

        if not response.choices:
            return RecognitionResponse(completion_status=None, payload="")

        choice = response.choices[0]
        refusal = getattr(choice.message, "refusal", None)
        if refusal:
            # structured outputs report a refusal with finish_reason "stop"
            return RecognitionResponse(completion_status=REFUSAL, detail=refusal)

        return RecognitionResponse(
            completion_status=choice.finish_reason,
            payload=choice.message.content or "",
        )

    async def close(self) -> None:
        """Close every underlying HTTP client."""
        for client in self._clients.values():
            await client.close()
        self._clients.clear()
