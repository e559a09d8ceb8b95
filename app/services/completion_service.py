from openai import AsyncOpenAI, OpenAIError

from app.utils.config import DEFAULT_BASE_URL, DEFAULT_MODEL, Settings
from app.utils.errors import UpstreamError
from app.utils.logger import logger

SYSTEM_PROMPT = (
    "You are a chatbot assistant. Provide clear, concise replies that capture the key points "
    "and main ideas. Keep replies within 1000 tokens. Be direct and focus on the most important "
    "information."
)

USER_PREAMBLE = (
    "Give answer to the following question in a clear and concise manner, "
    "highlighting the key points:\n\n"
)


def build_messages(query: str) -> list[dict]:
    """The fixed system/user prompt pair sent for every question."""
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": f"{USER_PREAMBLE}{query}"},
    ]


class CompletionGateway:
    """Calls the hosted chat-completion endpoint and extracts the reply text."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = DEFAULT_BASE_URL,
        model: str = DEFAULT_MODEL,
        max_tokens: int = 2000,
        temperature: float = 0.3,
        client: AsyncOpenAI | None = None,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "CompletionGateway":
        return cls(
            api_key=settings.completion_api_key,
            base_url=settings.completion_base_url,
            model=settings.completion_model,
            max_tokens=settings.completion_max_tokens,
            temperature=settings.completion_temperature,
        )

    @property
    def client(self) -> AsyncOpenAI:
        # Created on first use so the app can start without credentials
        if self._client is None:
            if not self.api_key:
                raise UpstreamError(details="NEBIUS_API_KEY is not configured")
            self._client = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url, max_retries=0)
        return self._client

    async def complete(self, query: str) -> str:
        """Return the assistant's reply to `query` or raise UpstreamError."""
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=build_messages(query),
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except OpenAIError as e:
            logger.error(f"❌ Completion API error: {e}", exc_info=True)
            raise UpstreamError(details=str(e)) from e

        reply = None
        if response.choices:
            reply = response.choices[0].message.content
        if not reply or not reply.strip():
            logger.error("❌ Completion endpoint returned an empty reply")
            raise UpstreamError(details="Completion endpoint returned no reply text")

        logger.info(f"✅ Completion received ({len(reply)} chars)")
        return reply
