from __future__ import annotations

import html
from dataclasses import dataclass

DEFAULT_SUBJECT = "Secret Santa"

TEXT_TEMPLATE = "Dear {giver}!\nYou're giving a gift to: {receiver}"

HTML_TEMPLATE = (
    "🎅 <b>Secret Santa</b>\n"
    "\n"
    "Dear {giver}!\n"
    "You're giving a gift to: 🎁 <b>{receiver}</b>\n"
    "\n"
    "Happy holidays! 🎄"
)


@dataclass(frozen=True)
class Message:
    subject: str
    text: str
    html: str


def render_assignment(giver_name: str, receiver_name: str, subject: str = DEFAULT_SUBJECT) -> Message:
    return Message(
        subject=subject,
        text=TEXT_TEMPLATE.format(giver=giver_name, receiver=receiver_name),
        html=HTML_TEMPLATE.format(
            giver=html.escape(giver_name or ""),
            receiver=html.escape(receiver_name or ""),
        ),
    )
