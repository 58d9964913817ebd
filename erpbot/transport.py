"""
Chat transport boundary.

Handlers only ever talk to a ChatTransport: four verbs taking
transport-neutral Reply objects. TelegramTransport maps them onto
python-telegram-bot, turning keyboards into InlineKeyboardMarkup and the
force-reply hint into ForceReply.
"""

import logging
from typing import Optional, Protocol, Union

from telegram import Bot, ForceReply, InlineKeyboardButton, InlineKeyboardMarkup
from telegram.error import TelegramError

from erpbot.schemas.reply_schema import Reply

logger = logging.getLogger(__name__)

ChatId = Union[int, str]
ReplyMarkup = Union[InlineKeyboardMarkup, ForceReply, None]


class ChatTransport(Protocol):
    """Outbound verbs the handlers rely on."""

    async def send_message(self, chat_id: ChatId, reply: Reply) -> Optional[int]:
        """Send a reply; returns the transport message id when known."""
        ...

    async def answer_callback(self, callback_id: str, text: Optional[str] = None) -> None:
        ...

    async def edit_message(self, chat_id: ChatId, message_id: int, reply: Reply) -> None:
        ...

    async def delete_message(self, chat_id: ChatId, message_id: int) -> bool:
        ...


def reply_markup(reply: Reply) -> ReplyMarkup:
    if reply.keyboard:
        return InlineKeyboardMarkup(
            [
                [InlineKeyboardButton(button.label, callback_data=button.action) for button in row]
                for row in reply.keyboard
            ]
        )
    if reply.force_reply:
        return ForceReply()
    return None


class TelegramTransport:
    """ChatTransport backed by a python-telegram-bot ``Bot``."""

    def __init__(self, bot: Bot) -> None:
        self.bot = bot

    async def send_message(self, chat_id: ChatId, reply: Reply) -> Optional[int]:
        message = await self.bot.send_message(
            chat_id=chat_id,
            text=reply.text,
            parse_mode=reply.parse_mode,
            reply_markup=reply_markup(reply),
        )
        return message.message_id

    async def answer_callback(self, callback_id: str, text: Optional[str] = None) -> None:
        await self.bot.answer_callback_query(callback_query_id=callback_id, text=text)

    async def edit_message(self, chat_id: ChatId, message_id: int, reply: Reply) -> None:
        markup = reply_markup(reply)
        await self.bot.edit_message_text(
            text=reply.text,
            chat_id=chat_id,
            message_id=message_id,
            parse_mode=reply.parse_mode,
            # Edited messages only accept inline keyboards
            reply_markup=markup if isinstance(markup, InlineKeyboardMarkup) else None,
        )

    async def delete_message(self, chat_id: ChatId, message_id: int) -> bool:
        try:
            return await self.bot.delete_message(chat_id=chat_id, message_id=message_id)
        except TelegramError as exc:
            logger.warning("Could not delete message %s: %s", message_id, exc)
            return False
