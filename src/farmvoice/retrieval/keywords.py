"""Static section-to-trigger-term table used by the context filter."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

# Hand-authored trigger terms. Tamil entries include common speech-to-text
# misspellings of the crop names.
DEFAULT_SECTION_KEYWORDS: dict[str, tuple[str, ...]] = {
    "TNAU CERTIFIED FERTILIZER RECOMMENDATIONS (KG/ACRE)": (
        "fertilizer", "npk", "nitrogen", "phosphate", "potassium", "urea",
        "kg/acre", "dosage", "split", "basal", "manure", "compost",
        "rice", "paddy", "நெல்", "நெல்லு", "நெல்லூ",
        "coconut", "thengai", "தென்னை", "தேங்காய்", "தென்ன", "தென்னமரம்",
        "banana", "வாழை", "வாழ்க்கை", "வாழைப்பழம்", "வழ", "வாழைமரம்",
        "sugarcane", "கரும்பு", "கரும்ப", "கரும்பூ",
        "turmeric", "மஞ்சள்", "மஞ்ச", "மஞ்சள",
        "cotton", "பருத்தி", "பருத்த", "groundnut", "நிலக்கடலை",
        "tea", "தேயிலை", "pepper", "மிளகு", "rubber", "றப்பர்",
        "coffee", "காப்பி", "cardamom", "ஏலக்காய்",
    ),
    "MICRONUTRIENT DEFICIENCY CORRECTIONS": (
        "zinc", "boron", "iron", "manganese", "calcium", "deficiency",
        "chlorosis", "khaira", "micronutrient", "foliar", "spray",
        "துத்தநாகம்", "போரான்", "இரும்பு", "பற்றாக்குறை",
        "yellow", "leaf", "tip burn",
    ),
    "COIMBATORE (KONGU) SOIL + CLIMATE PROFILE": (
        "coimbatore", "kongu", "red loam", "noyyal", "borewell",
        "water table", "pink bollworm", "fall armyworm",
        "கோயம்பத்தூர்", "கொங்கு", "நொய்யல்", "சிவப்பு மண்",
        "கோவை", "கொங்குநாடு",
    ),
    "KERALA (WAYANAD) SOIL + CLIMATE PROFILE": (
        "kerala", "wayanad", "laterite", "monsoon", "landslide",
        "coffee berry", "pollinator", "rain-fed",
        "கேரளா", "வயநாட்",
    ),
    "HIDDEN RISK DETECTION RULES": (
        "risk", "rainfall", "deviation", "ph", "organic carbon",
        "water table", "slope", "continuous cropping", "depletion",
        "ஆபத்து", "மழை", "மழையளவு",
    ),
    "INTEGRATED PEST MANAGEMENT (IPM)": (
        "pest", "borer", "beetle", "weevil", "wilt", "armyworm",
        "trichogramma", "pheromone", "trap", "bio-control", "ipm",
        "பூச்சி", "பூச்சிகொல்லி", "பூச்சிக்கொல்லி", "பூச்சிமருந்து",
        "bug", "insect", "disease", "fungus",
    ),
}


class SectionKeywordTable:
    """Maps section titles to trigger terms, preserving declaration order.

    Matching is a substring test against the lowercased query, so a hit on
    any single term selects the whole section.
    """

    def __init__(self, keywords: Mapping[str, Iterable[str]] | None = None) -> None:
        source = DEFAULT_SECTION_KEYWORDS if keywords is None else keywords
        self._keywords: dict[str, tuple[str, ...]] = {
            title.upper(): tuple(term.lower() for term in terms)
            for title, terms in source.items()
        }

    def titles(self) -> list[str]:
        return list(self._keywords)

    def terms(self, title: str) -> tuple[str, ...]:
        return self._keywords.get(title.upper(), ())

    def match(self, query: str) -> list[str]:
        """Return titles of every section with at least one term in `query`."""
        lowered = (query or "").lower()
        return [
            title
            for title, terms in self._keywords.items()
            if any(term in lowered for term in terms)
        ]
