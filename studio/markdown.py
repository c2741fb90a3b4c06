"""Markdown to HTML for streamed assistant replies.

A fixed sequence of regex substitutions, re-run in full on every refresh.
No state is kept between calls.
"""

import html
import re

from .chat.models import Message

_CODE_BLOCK = re.compile(r"```(\w+)?\n(.*?)```", re.S)
_INLINE_CODE = re.compile(r"`([^`]+)`")
_BOLD = re.compile(r"\*\*([^*]+)\*\*")
_ITALIC = re.compile(r"\*([^*]+)\*")
_H3 = re.compile(r"^### (.+)$", re.M)
_H2 = re.compile(r"^## (.+)$", re.M)
_H1 = re.compile(r"^# (.+)$", re.M)
_BULLET = re.compile(r"^- (.+)$", re.M)
_NUMBERED = re.compile(r"^(\d+)\. (.+)$", re.M)


def escape_html(text: str) -> str:
    return html.escape(text, quote=False)


def _code_block(match: re.Match) -> str:
    language = match.group(1) or "code"
    code = match.group(2).strip()
    return (
        '<div class="code-container">'
        '<div class="code-header">'
        f'<span class="code-lang">{language}</span>'
        '<button class="copy-btn" type="button">Copy code</button>'
        "</div>"
        f"<pre><code>{code}</code></pre>"
        "</div>"
    )


def render_markdown(text: str) -> str:
    if not text:
        return ""
    result = escape_html(text)
    result = _CODE_BLOCK.sub(_code_block, result)
    result = _INLINE_CODE.sub(r'<code class="inline-code">\1</code>', result)
    result = _BOLD.sub(r"<strong>\1</strong>", result)
    result = _ITALIC.sub(r"<em>\1</em>", result)
    result = _H3.sub(r"<h3>\1</h3>", result)
    result = _H2.sub(r"<h2>\1</h2>", result)
    result = _H1.sub(r"<h1>\1</h1>", result)
    result = _BULLET.sub(r"<li>\1</li>", result)
    result = _NUMBERED.sub(r"<li>\2</li>", result)
    return result.replace("\n", "<br>")


def render_stats(message: Message) -> str:
    stats = message.stats
    if stats is None:
        return ""
    return (
        '<div class="stats">'
        f'<span class="stats-model">{escape_html(stats.model)}</span>'
        f" · {stats.duration}s · {stats.tokens} tokens · {stats.speed} tok/s"
        "</div>"
    )


def render_message(message: Message) -> str:
    """Render one chat bubble."""
    if message.role == "user":
        body = escape_html(message.content)
        return f'<div class="message user"><div class="content">{body}</div></div>'

    if message.is_loading and not message.content:
        body = '<div class="typing-indicator"><span></span><span></span><span></span></div>'
    elif message.is_error:
        body = f'<div class="error-container">{render_markdown(message.content)}</div>'
    else:
        body = render_markdown(message.content)
    classes = "message assistant"
    if message.status == "stopped":
        classes += " stopped"
    return (
        f'<div class="{classes}"><div class="content">{body}</div>'
        f"{render_stats(message)}</div>"
    )
