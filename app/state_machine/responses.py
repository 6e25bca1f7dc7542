"""
Outbound reply produced by the bot's handlers
"""
from typing import Optional


class MessageResponse:
    """Response to be sent to user"""

    def __init__(self, text: str, keyboard: Optional[list] = None):
        self.text = text
        self.keyboard = keyboard
