"""Book recommendation assistant backed by an OpenRouter chat model."""
import logging

from flask import current_app
from openai import OpenAI

from errors import ActionError, InvalidInputError

logger = logging.getLogger(__name__)

# Free OpenRouter models, in order of preference
FREE_MODELS = [
    'meta-llama/llama-3.1-8b-instruct',
    'microsoft/phi-3-mini-128k-instruct',
    'google/gemini-flash-1.5',
    'meta-llama/llama-3.1-70b-instruct',
]

MAX_TOKENS = 1500
FALLBACK_MAX_TOKENS = 1000
TEMPERATURE = 0.7

SYSTEM_PROMPT = """You are an expert on books and literature. Your job is to help users find books they will enjoy.

INSTRUCTIONS:
- Reply in the language the user writes in
- Keep a friendly, conversational tone
- When the user mentions a genre, give specific book recommendations
- Include title, author and a short description for each recommendation
- Answer questions about literature in an informative way
- Be natural and adapt your answers to what the user tells you

FORMAT FOR RECOMMENDATIONS:
• **Book title** - Author
Short description of the book and why you recommend it.

Be helpful, friendly and give complete answers."""

GREETING = "Hi! I'm your book assistant. How can I help you? Are you looking for recommendations in a particular genre?"

ROLES = ('user', 'assistant')


class ChatUnavailableError(ActionError):
    status_code = 503


def get_client():
    config = current_app.config
    return OpenAI(
        api_key=config['OPENROUTER_API_KEY'],
        base_url=config['OPENROUTER_BASE_URL'],
        default_headers={
            'HTTP-Referer': config['CHAT_REFERER'],
            'X-Title': config['CHAT_TITLE'],
        },
    )


def validate_messages(messages):
    if not isinstance(messages, list) or not messages:
        raise InvalidInputError('messages must be a non-empty list')
    cleaned = []
    for message in messages:
        if not isinstance(message, dict) or message.get('role') not in ROLES:
            raise InvalidInputError('Each message needs a role of user or assistant')
        if not isinstance(message.get('content'), str):
            raise InvalidInputError('Each message needs text content')
        cleaned.append({'role': message['role'], 'content': message['content']})
    return cleaned


def _fallback_model(selected):
    for model in FREE_MODELS:
        if model != selected:
            return model
    return None


def _complete(client, model, messages, max_tokens):
    response = client.chat.completions.create(
        model=model,
        messages=[{'role': 'system', 'content': SYSTEM_PROMPT}] + messages,
        max_tokens=max_tokens,
        temperature=TEMPERATURE,
    )
    if not response.choices:
        return ''
    return (response.choices[0].message.content or '').strip()


def chat_reply(messages, user_preferences=None):
    """Return the assistant's reply to the conversation so far.

    An empty completion is retried once on another free model; if that also
    comes back empty or fails, a fixed greeting is returned instead.
    """
    config = current_app.config
    if not config.get('OPENROUTER_API_KEY'):
        raise ChatUnavailableError('Chat service is temporarily unavailable. Please try again later.')

    messages = validate_messages(messages)
    model = config.get('OPENROUTER_MODEL') or FREE_MODELS[0]
    client = get_client()

    logger.info("Sending chat request: model=%s messages=%d", model, len(messages) + 1)
    if user_preferences:
        logger.debug("Chat user preferences: %s", user_preferences)

    reply = _complete(client, model, messages, MAX_TOKENS)
    if reply:
        return reply

    fallback = _fallback_model(model)
    logger.error("Empty reply from %s, retrying with %s", model, fallback)
    if fallback:
        try:
            reply = _complete(client, fallback, messages, FALLBACK_MAX_TOKENS)
        except Exception:
            logger.exception("Fallback chat request failed")
            reply = ''
        if reply:
            logger.info("Fallback succeeded with model %s", fallback)
            return reply

    return GREETING
