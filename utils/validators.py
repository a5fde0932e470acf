from typing import Optional


class TextValidator:
    """Small helpers for free-text fields typed by the user."""

    @staticmethod
    def is_blank(text: Optional[str]) -> bool:
        return text is None or not str(text).strip()

    @staticmethod
    def clean(text: Optional[str]) -> str:
        if text is None:
            return ""
        return str(text).strip()


class InputParser:
    """Turn raw prompt answers into typed values, or None when they don't parse."""

    TRUE_WORDS = {"true", "yes", "y", "1"}
    FALSE_WORDS = {"false", "no", "n", "0"}

    @staticmethod
    def parse_int(raw: Optional[str]) -> Optional[int]:
        if raw is None:
            return None
        s = raw.strip()
        if s.startswith(("-", "+")):
            return int(s) if s[1:].isdigit() else None
        return int(s) if s.isdigit() else None

    @staticmethod
    def parse_bool(raw: Optional[str]) -> Optional[bool]:
        # Blank means "no preference"
        if raw is None:
            return None
        s = raw.strip().lower()
        if s in InputParser.TRUE_WORDS:
            return True
        if s in InputParser.FALSE_WORDS:
            return False
        return None
