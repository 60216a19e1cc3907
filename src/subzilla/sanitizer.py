from __future__ import annotations

import re
import string

from .models import StripOptions

URL_PLACEHOLDER = "[URL]"
TIMESTAMP_PLACEHOLDER = "[TIMESTAMP]"
EMOJI_PLACEHOLDER = "[EMOJI]"

_PLACEHOLDERS = (URL_PLACEHOLDER, TIMESTAMP_PLACEHOLDER, EMOJI_PLACEHOLDER)

_EMOJI_BASE = "(?:[\U0001F1E6-\U0001F1FF]{2}|[\U0001F300-\U0001FAFF\u2700-\u27BF])"
_EMOJI_MODIFIER = "[\uFE0F\U0001F3FB-\U0001F3FF]"


class FormattingStripper:
    """Removes presentation markup from subtitle text, one category at a time."""

    html_tag_re = re.compile(r"(?:</?[A-Za-z!][^<>]*>)+")
    word_re = re.compile(r"\w")
    color_re = re.compile(r"\{\\\d?c&H[0-9A-Fa-f]{6,8}&\}")
    style_re = re.compile(r"\{\\(?!\d?c(?:&H[0-9A-Fa-f]{6,8}&)?\})[^}]+\}")
    url_re = re.compile(r"https?://[^\s<>\"']+")
    timestamp_re = re.compile(r"\d{2}:\d{2}:\d{2},\d{3} --> \d{2}:\d{2}:\d{2},\d{3}")
    numbers_re = re.compile(r"\d+")
    punctuation_re = re.compile(f"[{re.escape(string.punctuation)}]")
    emoji_re = re.compile(
        f"{_EMOJI_BASE}{_EMOJI_MODIFIER}*(?:\u200D{_EMOJI_BASE}{_EMOJI_MODIFIER}*)*"
    )
    brackets_re = re.compile(r"[\[\](){}<>⟨⟩]")
    bidi_re = re.compile("[\u200E\u200F\u061C\u202A-\u202E\u2066-\u2069]")
    inline_space_re = re.compile(r"[ \t]+")

    def strip(self, content: str, options: StripOptions | None) -> str:
        if not content or options is None or not options.any():
            return content
        result = content
        if options.html:
            result = self.strip_html(result)
        if options.colors:
            result = self.color_re.sub("", result)
        if options.styles:
            result = self.style_re.sub("", result)
        if options.urls:
            result = self.url_re.sub(URL_PLACEHOLDER, result)
        if options.timestamps:
            result = self.timestamp_re.sub(TIMESTAMP_PLACEHOLDER, result)
        if options.numbers:
            result = self.numbers_re.sub("#", result)
        if options.punctuation:
            result = self.punctuation_re.sub("", result)
        if options.emojis:
            result = self.emoji_re.sub(EMOJI_PLACEHOLDER, result)
        if options.brackets:
            result = self.strip_brackets(result)
        if options.bidi_control:
            result = self.bidi_re.sub("", result)
        return result

    def strip_html(self, content: str) -> str:
        # A run of tags between two word characters becomes a space so that
        # "<b>a</b><i>b</i>" keeps two words; elsewhere it simply disappears.
        def _replace(match: re.Match[str]) -> str:
            before = content[match.start() - 1 : match.start()]
            after = content[match.end() : match.end() + 1]
            if self.word_re.match(before) and self.word_re.match(after):
                return " "
            return ""

        spaced = self.html_tag_re.sub(_replace, content)
        lines = spaced.split("\n")
        return "\n".join(self.inline_space_re.sub(" ", line).strip(" \t") for line in lines)

    def strip_brackets(self, content: str) -> str:
        markers = {placeholder: f"\uE000{index}\uE001" for index, placeholder in enumerate(_PLACEHOLDERS)}
        for placeholder, marker in markers.items():
            content = content.replace(placeholder, marker)
        content = self.brackets_re.sub("", content)
        for placeholder, marker in markers.items():
            content = content.replace(marker, placeholder)
        return content


__all__ = [
    "EMOJI_PLACEHOLDER",
    "FormattingStripper",
    "TIMESTAMP_PLACEHOLDER",
    "URL_PLACEHOLDER",
]
