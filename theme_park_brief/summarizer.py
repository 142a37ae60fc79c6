##########################################################################################
#
# Script name: summarizer.py
#
# Description: "Today at a Glance" narrative via OpenAI with a deterministic fallback.
#
##########################################################################################

import logging
import os

from openai import OpenAI

from .config import SUMMARY_MAX_TOKENS, SUMMARY_TIMEOUT_SECONDS
from .models import Article
from .utils import safe_sentence


# ****************************************************************************************
# Global data and configuration
# ****************************************************************************************

log = logging.getLogger(__name__)

NO_NEWS_MESSAGE = (
    'No significant theme park news was discovered in the last 24 hours. '
    'Check back tomorrow for the latest updates.'
)

DEFAULT_MODEL = 'gpt-5-mini'
PROMPT_STORY_COUNT = 5
FALLBACK_STORY_COUNT = 3

SYSTEM_PROMPT = 'You write short, factual daily briefings about the theme park industry.'


# ****************************************************************************************
# Functions
# ****************************************************************************************


def fallback_summary(top_stories: list[Article]) -> str:
    if not top_stories:
        return NO_NEWS_MESSAGE
    titles = [story.title.rstrip('.') for story in top_stories[:FALLBACK_STORY_COUNT]]
    headline_text = '. '.join(titles)
    return (
        "Today's theme park industry developments include several notable announcements and updates. "
        f'{headline_text}. '
        'These stories reflect ongoing trends in theme park operations, guest experiences, '
        'and industry innovation. More details are available in the full stories below.'
    )


def build_prompt(top_stories: list[Article]) -> str:
    lines = []
    for idx, story in enumerate(top_stories[:PROMPT_STORY_COUNT], start=1):
        lines.append(f'{idx}. {story.title} ({story.source}): {safe_sentence(story.summary, 200)}')
    stories = '\n'.join(lines)
    return (
        'Write a professional 3-paragraph "Today at a Glance" summary for these theme park '
        'news stories. Use a 6th grade reading level and a journalistic tone.\n\n'
        f'{stories}'
    )


def _request_summary(client, model: str, prompt: str, max_tokens: int) -> str:
    response = client.chat.completions.create(
        model=model,
        max_completion_tokens=max_tokens,
        messages=[
            {'role': 'system', 'content': SYSTEM_PROMPT},
            {'role': 'user', 'content': prompt},
        ],
    )
    content = response.choices[0].message.content
    if not content or not content.strip():
        raise ValueError('Summary response was empty')
    return content


def summarize_top_stories(
    top_stories: list[Article],
    client=None,
    model: str | None = None,
    max_tokens: int = SUMMARY_MAX_TOKENS,
    timeout: float = SUMMARY_TIMEOUT_SECONDS,
) -> str:
    if not top_stories:
        return NO_NEWS_MESSAGE

    model = model or os.getenv('OPENAI_MODEL') or DEFAULT_MODEL
    try:
        if client is None:
            api_key = os.getenv('OPENAI_API_KEY')
            if not api_key:
                raise RuntimeError('OPENAI_API_KEY is not set')
            client = OpenAI(api_key=api_key, timeout=timeout, max_retries=1)
        return _request_summary(client, model, build_prompt(top_stories), max_tokens)
    except Exception as exc:  # noqa: BLE001
        log.warning('Summary generation failed, using fallback: %s', exc)
        return fallback_summary(top_stories)
