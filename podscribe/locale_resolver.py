"""
Locale Resolver — Maps loose language tags to fully-qualified locales.

Podcast feeds and CLI users pass tags like "zh-tw", "en" or "ja". The
speech engine and the subtitle segmenter want a full "language_REGION"
identifier plus a few derived facts (script family, default subtitle
length). This module is a pure string transform: no network, no models.
"""

import re
from dataclasses import dataclass

CJK_LANGUAGES = frozenset({"zh", "ja", "ko"})

CJK_MAX_LENGTH = 18
DEFAULT_MAX_LENGTH = 40

# Default regions for language-only tags
DEFAULT_REGIONS = {
    "en": "US",
    "zh": "TW",
    "ja": "JP",
    "ko": "KR",
    "fr": "FR",
    "de": "DE",
    "es": "ES",
    "it": "IT",
    "pt": "BR",
    "ru": "RU",
    "ar": "SA",
    "hi": "IN",
    "th": "TH",
    "vi": "VN",
    "id": "ID",
    "ms": "MY",
    "nl": "NL",
    "pl": "PL",
    "tr": "TR",
    "uk": "UA",
    "cs": "CZ",
    "el": "GR",
    "he": "IL",
    "ro": "RO",
    "hu": "HU",
    "sv": "SE",
    "da": "DK",
    "fi": "FI",
    "nb": "NO",
    "sk": "SK",
    "ca": "ES",
    "hr": "HR",
}

_SEPARATORS = re.compile(r"[-_]")


@dataclass(frozen=True)
class LocaleInfo:
    """A resolved locale and the segmentation defaults derived from it."""
    identifier: str
    language: str
    is_cjk: bool
    default_max_length: int

    def __str__(self):
        return self.identifier


def resolve_locale(tag: str) -> str:
    """
    Convert a loose language tag into a locale identifier.

    Examples:
        "zh-tw" → "zh_TW"
        "en"    → "en_US"   (default region)
        "ja"    → "ja_JP"
        "xx"    → "xx"      (unknown language, kept bare)

    Already-resolved identifiers map to themselves, so the function is
    idempotent. Never raises.
    """
    tag = (tag or "").strip()
    parts = _SEPARATORS.split(tag.lower())

    if len(parts) == 2:
        language, region = parts
        return f"{language}_{region.upper()}"

    if len(parts) == 1:
        language = parts[0]
        region = DEFAULT_REGIONS.get(language)
        if region:
            return f"{language}_{region}"
        return language

    # Script subtags and other shapes are passed through untouched
    return tag


def language_code(locale: str) -> str:
    """Return the lowercase language subtag of a tag or locale identifier."""
    return _SEPARATORS.split((locale or "").strip().lower())[0]


def is_cjk(tag: str) -> bool:
    return language_code(resolve_locale(tag)) in CJK_LANGUAGES


def default_max_length(tag: str) -> int:
    return CJK_MAX_LENGTH if is_cjk(tag) else DEFAULT_MAX_LENGTH


def locale_info(tag: str) -> LocaleInfo:
    """Resolve a tag and derive everything downstream stages need."""
    identifier = resolve_locale(tag)
    cjk = language_code(identifier) in CJK_LANGUAGES
    return LocaleInfo(
        identifier=identifier,
        language=language_code(identifier),
        is_cjk=cjk,
        default_max_length=CJK_MAX_LENGTH if cjk else DEFAULT_MAX_LENGTH,
    )
