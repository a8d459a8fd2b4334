"""
Text modifiers applied to placeholder results.

Modifiers are chained after a table name ({creatures.plural.capitalize}) and
applied left to right. The inflection rules are simple English suffix
heuristics, not a full morphology.
"""

from typing import Callable, Optional
import logging

logger = logging.getLogger(__name__)

VOWELS = "aeiou"
SIBILANT_ENDINGS = ("s", "x", "z", "ch", "sh")


def is_vowel(char: str) -> bool:
    return bool(char) and char.lower() in VOWELS


def capitalize(text: str) -> str:
    """First character upper case, the rest lower case."""
    return text[:1].upper() + text[1:].lower()


def pluralize(text: str) -> str:
    """
    Pluralize a word.

    Sibilant endings take 'es', consonant + 'y' becomes 'ies', 'f' and 'fe'
    become 'ves', anything else takes 's'.
    """
    word = text.strip()
    if word.endswith(SIBILANT_ENDINGS):
        return word + "es"
    if word.endswith("y") and len(word) > 1 and not is_vowel(word[-2]):
        return word[:-1] + "ies"
    if word.endswith("f"):
        return word[:-1] + "ves"
    if word.endswith("fe"):
        return word[:-2] + "ves"
    return word + "s"


def singularize(text: str) -> str:
    """Inverse of pluralize for the same suffix families."""
    word = text.strip()
    if word.endswith("ies"):
        return word[:-3] + "y"
    if word.endswith("ves"):
        return word[:-3] + "f"
    if word.endswith(("ses", "xes", "zes", "ches", "shes")):
        return word[:-2]
    if word.endswith("s") and not word.endswith("ss"):
        return word[:-1]
    return word


def add_indefinite_article(text: str) -> str:
    article = "an" if is_vowel(text[:1]) else "a"
    return f"{article} {text}"


def add_definite_article(text: str) -> str:
    return f"the {text}"


MODIFIERS: dict[str, Callable[[str], str]] = {
    "capitalize": capitalize,
    "uppercase": str.upper,
    "lowercase": str.lower,
    "plural": pluralize,
    "pluralize": pluralize,
    "singular": singularize,
    "singularize": singularize,
    "article": add_indefinite_article,
    "the": add_definite_article,
}


def get_modifier(name: str) -> Optional[Callable[[str], str]]:
    return MODIFIERS.get(name.strip().lower())


def apply_modifier(text: str, modifier: str) -> str:
    """Apply one named modifier; unknown names leave the text unchanged."""
    func = get_modifier(modifier)
    if func is None:
        logger.debug(f"Ignoring unknown modifier '{modifier}'")
        return text
    return func(text)


def apply_modifiers(text: str, modifiers: list[str]) -> str:
    """Apply modifiers in order."""
    for modifier in modifiers:
        text = apply_modifier(text, modifier)
    return text
