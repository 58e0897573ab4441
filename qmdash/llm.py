import logging

from openai import AsyncOpenAI

from qmdash.config import settings

log = logging.getLogger(__name__)

_client: AsyncOpenAI | None = None
_model: str = settings.llm.model

# Models served on the default provider that handle JSON mode reliably.
AVAILABLE_MODELS = [
    "llama-3.1-8b-instant",
    "llama-3.3-70b-versatile",
    "openai/gpt-oss-20b",
    "openai/gpt-oss-120b",
]


def get_client() -> AsyncOpenAI:
    global _client
    if _client is None:
        cfg = settings.llm
        _client = AsyncOpenAI(
            base_url=cfg.base_url,
            api_key=cfg.api_key,
            timeout=cfg.timeout_s,
            max_retries=0,
        )
    return _client


def get_model() -> str:
    return _model


def set_model(name: str) -> None:
    global _model
    _model = name
    log.info("Model changed to: %s", name)


async def chat_json(system_prompt: str, user_message: str, temperature: float | None = None) -> str:
    """Send a JSON-mode chat completion request and return the raw reply text.

    The request is bounded by settings.llm.timeout_s and is never retried.
    """
    client = get_client()
    cfg = settings.llm

    resp = await client.chat.completions.create(
        model=_model,
        messages=[
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_message},
        ],
        temperature=cfg.temperature if temperature is None else temperature,
        max_tokens=cfg.max_tokens,
        response_format={"type": "json_object"},
        timeout=cfg.timeout_s,
    )
    choice = resp.choices[0]
    if choice.finish_reason == "length":
        log.warning("Completion truncated at max_tokens=%d", cfg.max_tokens)
    return choice.message.content or ""
