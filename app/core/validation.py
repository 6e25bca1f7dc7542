"""
Input Validation and Sanitization

Free text from chat users (amounts, card descriptions, account details) is
stored as typed and escaped only when rendered into HTML messages.
"""
import html


class TextSanitizer:
    """Text sanitization for storage and display"""

    @staticmethod
    def sanitize_for_html(text: str | None) -> str:
        """Escape text for Telegram HTML parse mode"""
        if not text:
            return ""
        return html.escape(text, quote=False)

    @staticmethod
    def remove_control_characters(text: str) -> str:
        """Remove control characters, keeping newlines and tabs"""
        if not text:
            return ""
        return "".join(
            char for char in text
            if char >= " " or char in "\n\r\t"
        )
