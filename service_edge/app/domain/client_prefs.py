"""
Client display preferences carried in a cookie.

The preference cookie holds a comma-separated list of CSS class names such as
``skin-theme-clientpref-night``. Each configured prefix selects at most one of
them. Preferences never influence cache eligibility; they are applied to the
shared page after it leaves the cache.
"""

import re
from dataclasses import dataclass
from typing import Iterable, List, Mapping, Sequence

from bs4 import BeautifulSoup, Tag
from bs4.dammit import EntitySubstitution, UnicodeDammit

from .cache_policy import CacheConfig

_SAFE_CLASS_NAME = re.compile(r"^[A-Za-z0-9_-]+$")


@dataclass(frozen=True)
class ClientPref:
    class_name: str
    class_prefix: str


def split_class_names(value: str) -> List[str]:
    return [class_name.strip() for class_name in value.split(",")]


def extract_client_prefs(cookies: Mapping[str, str], config: CacheConfig) -> List[ClientPref]:
    """Pick one class name per configured prefix, in prefix priority order."""
    raw_value = cookies.get(config.client_prefs_cookie_name)
    if not raw_value:
        return []

    class_names = split_class_names(raw_value)
    prefs: List[ClientPref] = []
    for class_prefix in config.client_prefs_class_prefixes:
        for class_name in class_names:
            if class_name.startswith(class_prefix):
                prefs.append(ClientPref(class_name=class_name, class_prefix=class_prefix))
                break

    return prefs


def merge_class_list(classes: Sequence[str], prefs: Iterable[ClientPref]) -> List[str]:
    """Swap each preference into a class list, appending it when no class has its prefix."""
    merged = list(classes)
    for pref in prefs:
        replaced = False
        for index, existing in enumerate(merged):
            if existing.startswith(pref.class_prefix):
                merged[index] = pref.class_name
                replaced = True
        if not replaced:
            merged.append(pref.class_name)

    # Replacement can introduce duplicates; keep first occurrences.
    return list(dict.fromkeys(merged))


def _start_tag_end(text: str, start: int) -> int:
    """Index just past the ``>`` closing the start tag that begins at ``start``."""
    quote_char = None
    for index in range(start + 1, len(text)):
        char = text[index]
        if quote_char:
            if char == quote_char:
                quote_char = None
        elif char in "\"'":
            quote_char = char
        elif char == ">":
            return index + 1
    return -1


def _render_start_tag(tag: Tag) -> str:
    attributes = []
    for name, value in tag.attrs.items():
        if isinstance(value, list):
            value = " ".join(value)
        attributes.append(f" {name}={EntitySubstitution.quoted_attribute_value(EntitySubstitution.substitute_xml(value))}")
    return f"<{tag.name}{''.join(attributes)}>"


def apply_client_prefs_to_html(body: bytes, prefs: Sequence[ClientPref]) -> bytes:
    """Rewrite the class attribute of the document's root ``<html>`` element.

    Class names that are not plain CSS identifiers are dropped, so a crafted
    cookie cannot inject markup. Only the root start tag changes; the rest of
    the body keeps its original bytes. Bodies without an ``<html>`` element, or
    whose encoding cannot be round-tripped, are returned untouched.
    """
    safe_prefs = [pref for pref in prefs if _SAFE_CLASS_NAME.match(pref.class_name)]
    if not safe_prefs:
        return body

    dammit = UnicodeDammit(body, is_html=True)
    text = dammit.unicode_markup
    if text is None or dammit.contains_replacement_characters:
        return body

    root = BeautifulSoup(text, "html.parser").find("html")
    if root is None or root.sourceline is None:
        return body

    lines = text.split("\n")
    start = sum(len(line) + 1 for line in lines[:root.sourceline - 1]) + root.sourcepos
    end = _start_tag_end(text, start)
    if end < 0:
        return body

    classes = root.get("class") or []
    if isinstance(classes, str):
        classes = classes.split()
    root["class"] = merge_class_list(classes, safe_prefs)

    rewritten = text[:start] + _render_start_tag(root) + text[end:]
    try:
        return rewritten.encode(dammit.original_encoding or "utf-8")
    except (LookupError, UnicodeEncodeError):
        return body
