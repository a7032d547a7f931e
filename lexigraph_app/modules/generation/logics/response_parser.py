"""
Response Parser - Pure functions to clean and parse generated outputs.
"""
import re
import json
from typing import Any, Dict, List, Optional


class ResponseParser:
    """Utility to clean and structure generated responses."""

    @staticmethod
    def clean_markdown(text: str) -> str:
        """
        Remove markdown code fences from text.
        Example: ```json ... ``` -> ...
        """
        if not text:
            return ""

        cleaned = re.sub(r'^```\w*\s*', '', text.strip())
        cleaned = re.sub(r'\s*```$', '', cleaned)
        return cleaned.strip()

    @staticmethod
    def extract_json(text: str) -> Optional[Dict[str, Any]]:
        """
        Attempt to extract and parse a JSON object from text.
        Text might be wrapped in ```json ... ``` or surrounded by prose.
        """
        if not text:
            return None

        for candidate in (text, ResponseParser.clean_markdown(text)):
            try:
                data = json.loads(candidate)
            except json.JSONDecodeError:
                continue
            if isinstance(data, dict):
                return data

        start = text.find('{')
        end = text.rfind('}')
        if start != -1 and end > start:
            try:
                data = json.loads(text[start:end + 1])
            except json.JSONDecodeError:
                return None
            if isinstance(data, dict):
                return data

        return None

    @staticmethod
    def extract_items(text: str) -> List[Any]:
        """The ``items`` array of a JSON object, or ``[]``."""
        data = ResponseParser.extract_json(text)
        if not data:
            return []
        items = data.get('items')
        return items if isinstance(items, list) else []
