"""
Clients for the language-model collaborators.

LLMClient wraps the OpenAI chat completions API (query rewrite, ranking).
PerplexityClient talks to the Perplexity chat completions endpoint over
httpx (classification). Both make a single bounded call; any transport,
status or decoding failure becomes UpstreamCollaboratorError.
"""

import json
import logging
import re
from typing import Any, Iterator, Optional, Type, TypeVar

import httpx
from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel, ValidationError

from .errors import UpstreamCollaboratorError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

PERPLEXITY_API_URL = 'https://api.perplexity.ai/chat/completions'

_FENCE = re.compile(r'^\s*```(?:json)?\s*(.*?)\s*```\s*$', re.DOTALL | re.IGNORECASE)
_JSON_START = re.compile(r'[\[{]')


def strip_code_fence(text: str) -> str:
    """Remove a surrounding ```json ... ``` fence if present."""
    match = _FENCE.match(text)
    return match.group(1) if match else text.strip()


def iter_json_values(text: str) -> Iterator[Any]:
    """
    Yield every JSON object or array embedded in free text, left to right.

    Examples:
        'Sure! {"a": 1} and [2]' -> {"a": 1}, [2]
    """
    decoder = json.JSONDecoder()
    position = 0
    while True:
        match = _JSON_START.search(text, position)
        if not match:
            return
        try:
            value, end = decoder.raw_decode(text, match.start())
        except json.JSONDecodeError:
            position = match.start() + 1
            continue
        yield value
        position = end


def extract_json(text: str) -> Any:
    """
    Decode a model reply that should be a JSON object.

    Accepts plain JSON, fenced JSON, or an object embedded in explanatory
    text. Embedded values that are not objects (citation markers such as
    ``[1]``) are skipped; the first embedded object wins.

    Raises:
        ValueError: If no JSON object can be found
    """
    body = strip_code_fence(text or '')
    try:
        return json.loads(body)
    except json.JSONDecodeError:
        pass
    for value in iter_json_values(body):
        if isinstance(value, dict):
            return value
    raise ValueError("No JSON object found in reply")


class LLMClient:
    """
    OpenAI chat client with JSON mode and Pydantic validation.

    One request per call, no client-side retries.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = 'gpt-4o',
        temperature: float = 0.3,
        max_tokens: Optional[int] = None,
        timeout: float = 30.0,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

        if client is not None:
            self.client = client
        elif not api_key:
            logger.warning("No OpenAI API key configured")
            self.client = None
        else:
            self.client = AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    async def complete(self, system_prompt: str, user_prompt: str, json_mode: bool = True) -> str:
        """
        Make one chat completion call and return the reply text.

        Raises:
            UpstreamCollaboratorError: On configuration, transport or empty replies
        """
        if not self.client:
            raise UpstreamCollaboratorError('openai', 'LLM client not configured')

        kwargs = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": self.temperature,
        }
        if self.max_tokens:
            kwargs["max_tokens"] = self.max_tokens
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self.client.chat.completions.create(**kwargs)
        except OpenAIError as e:
            logger.error(f"OpenAI request failed: {e}")
            raise UpstreamCollaboratorError('openai', str(e)) from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise UpstreamCollaboratorError('openai', 'Empty reply')
        return content

    async def call_with_schema(self, system_prompt: str, user_prompt: str, response_model: Type[T]) -> T:
        """
        Make a JSON-mode call and parse the reply into a Pydantic model.

        Args:
            system_prompt: System context
            user_prompt: User message
            response_model: Pydantic model class to parse into

        Returns:
            Validated Pydantic model instance

        Raises:
            UpstreamCollaboratorError: If the call fails or the reply doesn't match
        """
        text = await self.complete(system_prompt, user_prompt)
        try:
            return response_model.model_validate(extract_json(text))
        except (ValueError, ValidationError) as e:
            logger.error(f"Invalid JSON from LLM: {e}")
            raise UpstreamCollaboratorError('openai', f'Unexpected reply: {e}') from e


class PerplexityClient:
    """Perplexity chat completions over httpx."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = 'sonar-pro',
        url: str = PERPLEXITY_API_URL,
        temperature: float = 0.3,
        max_tokens: int = 500,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.url = url
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.transport = transport

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        """
        Make one chat completion call and return the reply text.

        Raises:
            UpstreamCollaboratorError: On configuration, HTTP or payload errors
        """
        if not self.api_key:
            raise UpstreamCollaboratorError('perplexity', 'API key not configured')

        payload = {
            'model': self.model,
            'messages': [
                {'role': 'system', 'content': system_prompt},
                {'role': 'user', 'content': user_prompt},
            ],
            'temperature': self.temperature,
            'max_tokens': self.max_tokens,
        }
        headers = {'Authorization': f'Bearer {self.api_key}'}

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.post(self.url, json=payload, headers=headers)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                logger.error(f"Perplexity returned HTTP {e.response.status_code}")
                raise UpstreamCollaboratorError('perplexity', f'HTTP {e.response.status_code}') from e
            except httpx.HTTPError as e:
                logger.error(f"Perplexity request failed: {e}")
                raise UpstreamCollaboratorError('perplexity', str(e) or type(e).__name__) from e

        try:
            content = response.json()['choices'][0]['message']['content']
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise UpstreamCollaboratorError('perplexity', f'Unexpected payload: {e}') from e
        if not content:
            raise UpstreamCollaboratorError('perplexity', 'Empty reply')
        return content
