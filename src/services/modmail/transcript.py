"""
Courier - Modmail Transcript
============================

Plain-text transcript generation for modmail threads.

DESIGN:
    Relayed DMs live in the staff channel as bot embeds, so an embed's
    author and description are rendered as if the author wrote them.
    Bot chrome (summary card, action row, close notice) is kept because
    it records when the thread opened and who closed it.

Author: Courier Maintainers
"""

import io
from datetime import datetime
from typing import Any, Dict, List, Optional

import discord

from src.core.config import NY_TZ
from src.core.constants import TRANSCRIPT_MESSAGE_LIMIT
from src.core.database import ModmailThreadRecord
from src.core.logger import logger


async def collect_transcript_messages(
    channel: discord.TextChannel,
    limit: int = TRANSCRIPT_MESSAGE_LIMIT,
) -> List[Dict[str, Any]]:
    """
    Collect messages from a thread channel, oldest first.

    Returns:
        List of {"author", "timestamp", "content", "attachments"} dicts.
        Empty when history can't be read.
    """
    messages: List[Dict[str, Any]] = []

    try:
        async for msg in channel.history(limit=limit, oldest_first=True):
            author = msg.author.display_name
            parts: List[str] = []

            if msg.content:
                parts.append(msg.content)

            for embed in msg.embeds:
                if embed.author and embed.author.name:
                    author = embed.author.name
                if embed.title:
                    parts.append(f"[{embed.title}]")
                if embed.description:
                    parts.append(embed.description)
                for embed_field in embed.fields:
                    parts.append(f"{embed_field.name}: {embed_field.value}")

            messages.append({
                "author": author,
                "timestamp": msg.created_at.astimezone(NY_TZ).strftime("%Y-%m-%d %H:%M:%S"),
                "content": "\n".join(parts),
                "attachments": [a.url for a in msg.attachments],
            })
    except discord.HTTPException as e:
        logger.warning("Transcript History Unavailable", [
            ("Channel", str(channel.id)),
            ("Error", str(e)[:100]),
        ])

    return messages


def render_transcript(
    thread: ModmailThreadRecord,
    messages: List[Dict[str, Any]],
    guild_name: Optional[str] = None,
) -> str:
    """Render collected messages as a plain-text transcript."""
    opened = datetime.fromtimestamp(thread["created_at"], NY_TZ).strftime("%Y-%m-%d %H:%M:%S")
    header = [
        f"Modmail Transcript - Thread #{thread['id']}",
        f"Server: {guild_name or thread['guild_id']}",
        f"User ID: {thread['user_id']}",
        f"Opened: {opened}",
    ]
    if thread.get("closed_at"):
        closed = datetime.fromtimestamp(thread["closed_at"], NY_TZ).strftime("%Y-%m-%d %H:%M:%S")
        header.append(f"Closed: {closed} ({thread.get('close_reason') or 'no reason'})")
    header.append(f"Messages: {len(messages)}")
    header.append("=" * 60)

    lines = list(header)
    for msg in messages:
        lines.append(f"[{msg['timestamp']}] {msg['author']}:")
        if msg["content"]:
            lines.extend(f"    {line}" for line in msg["content"].splitlines())
        for url in msg["attachments"]:
            lines.append(f"    [attachment] {url}")
        lines.append("")

    return "\n".join(lines)


async def create_transcript_file(
    thread: ModmailThreadRecord,
    channel: discord.TextChannel,
    guild_name: Optional[str] = None,
) -> discord.File:
    """Build the .txt transcript for a thread channel."""
    messages = await collect_transcript_messages(channel)
    text = render_transcript(thread, messages, guild_name)
    return discord.File(
        io.BytesIO(text.encode("utf-8")),
        filename=f"modmail-{thread['id']}-{thread['user_id']}.txt",
    )


__all__ = [
    "collect_transcript_messages",
    "render_transcript",
    "create_transcript_file",
]
