"""Prompt assembly for voice answers and document analysis."""

from __future__ import annotations

from langchain_core.messages import BaseMessage
from langchain_core.prompts import ChatPromptTemplate

from farmvoice.types import ChatMessage, GenerationRequest, LocationContext

_SYSTEM_TEMPLATE = """
You are CHARMER, an agricultural scientist with a farmer's heart: 40% warmth, 60% hard data.

=== KNOWLEDGE BASE (state agricultural university certified) ===
{knowledge}
=== END KNOWLEDGE BASE ===

Before answering, work through these steps silently:
1. Identify the crop and the soil. Name the soil precisely (red loam / semmann,
   black cotton / karisal, gravelly / saralai). If the soil is unclear, ask for it.
2. Look the crop up in the NPK tables above and take the exact N, P, K values
   and split schedule. Every answer must carry at least one number from the
   knowledge base (kg/acre, %, ratio, mm).
3. Put the technical data into the farmer's spoken dialect.

Crops outside the knowledge base (apple, strawberry, wheat): say it does not
suit the local climate and suggest a local crop with its NPK values from the
knowledge base. Never invent values and never fall back on general knowledge.

Avoid vague phrasing such as "generally" or "it is recommended". If no
technical recommendation is possible, ask which crop and how many acres.

Answer shape: a local greeting anchored to the soil, the hard data, then one
closing question about the farm. Maximum 150 words, never cut off mid-thought.
Reply only in the farmer's script. No JSON, no quotes, no code blocks, no
English field labels.{dialect_rules}{location}
""".strip()

_ANSWER_PROMPT = ChatPromptTemplate.from_messages(
    [
        ("system", _SYSTEM_TEMPLATE),
        (
            "human",
            "{language_instruction}\n\nFarmer's question: \"{question}\"\n\n"
            "Use the knowledge base to give certified, region-specific advice. "
            "Answer concisely (under 60 words) in the farmer's dialect. Do not use JSON.",
        ),
    ]
)

_FAST_PATH_PROMPT = ChatPromptTemplate.from_messages(
    [
        ("system", _SYSTEM_TEMPLATE),
        (
            "human",
            "You are a quick local expert. Use the provided data for a two-sentence "
            "answer. Be blunt and local.\n\n{language_instruction}\n\n"
            "Farmer's question: \"{question}\"\n\n"
            "Respond concisely in the farmer's dialect. Do not use JSON.",
        ),
    ]
)

_DOCUMENT_PROMPT = ChatPromptTemplate.from_messages(
    [
        ("system", _SYSTEM_TEMPLATE),
        (
            "human",
            """{language_instruction}

Analyze this agricultural or environmental document against the knowledge base.
Focus on hidden risks: indirect climate signals, slow nutrient drift and
rainfall deviations a farmer would miss.

DOCUMENT TEXT:
{document}

Respond as JSON:
{{
  "summary": "two or three sentence overview",
  "hidden_risks": [{{"label": "risk name", "severity": "low|medium|high", "detail": "explanation"}}],
  "recommendations": ["actionable point"],
  "fertilizer_ratios": {{"N": "kg/acre", "P": "kg/acre", "K": "kg/acre"}} or null,
  "explanation": "why these risks were flagged, citing knowledge base values",
  "sources": ["source name"]
}}""",
        ),
    ]
)

_DIALECT_RULES = {
    "ta": """

DIALECT:
- You are a wise local farming elder (periyavar) from Coimbatore. Answer only in spoken Kongu Tamil.
- Prefer Kongu forms: வச்சிருக்கீங்க over வைத்துள்ளீர்கள், பண்றீங்க over செய்கிறீர்கள், போடுங்க over போடுங்கள்.
- Close sentences with the polite ங்க ending (சொல்றேனுங்க, பாருங்க, குடுங்க).
- Mention local anchors such as the நொய்யல் basin and கொங்கு நாடு where relevant.
- Describe red loam (சிவப்பு மண்) and zinc/boron deficiency (துத்தநாகம்/போரான் பற்றாக்குறை) in local terms.
- Do not use literary Tamil. Keep English technical terms to a minimum.""",
    "ml": """

DIALECT:
- You are a wise local farming expert from Wayanad. Answer only in conversational Kerala Malayalam.
- Refer to local context: laterite soil, monsoon patterns, the Western Ghats.""",
}

_LANGUAGE_INSTRUCTIONS = {
    "en": "Respond in English. Use simple language a rural farmer can understand.",
    "ta": (
        "IMPORTANT: Respond ONLY in Kongu Tamil (கொங்கு தமிழ்) as spoken in Coimbatore. "
        "Use dialect forms like வச்சிருக்கீங்க and பண்றீங்க and end with ங்க. "
        "No formal Tamil and no English sentences. Tamil script only."
    ),
    "ml": (
        "IMPORTANT: Respond in Malayalam (Kerala dialect). "
        "Use English only for unavoidable technical terms."
    ),
}

_ROLE_BY_MESSAGE_TYPE = {"system": "system", "human": "user", "ai": "assistant"}

DOCUMENT_MAX_CHARS = 15_000


def language_instruction(language: str) -> str:
    return _LANGUAGE_INSTRUCTIONS.get(language, _LANGUAGE_INSTRUCTIONS["en"])


def dialect_rules(language: str) -> str:
    return _DIALECT_RULES.get(language, "")


def location_line(location: LocationContext | None) -> str:
    if location is None:
        return ""
    return (
        f"\nFarmer's location: {location.name}. Soil: {location.soil_type}. "
        f"Avg rainfall: {location.avg_rainfall_mm:g}mm."
    )


def build_answer_request(
    question: str,
    *,
    knowledge: str,
    language: str,
    location: LocationContext | None,
    max_tokens: int,
    temperature: float,
    fast_path: bool = False,
) -> GenerationRequest:
    """Assemble the system + user messages for a spoken answer."""
    prompt = _FAST_PATH_PROMPT if fast_path else _ANSWER_PROMPT
    messages = prompt.format_messages(
        knowledge=knowledge,
        dialect_rules=dialect_rules(language),
        location=location_line(location),
        language_instruction=language_instruction(language),
        question=question,
    )
    return GenerationRequest(
        messages=_to_chat_messages(messages),
        max_tokens=max_tokens,
        temperature=temperature,
    )


def build_document_request(
    document: str,
    *,
    knowledge: str,
    language: str,
    max_tokens: int = 2048,
    temperature: float = 0.3,
) -> GenerationRequest:
    # Document analysis keeps the persona but not the spoken dialect rules.
    messages = _DOCUMENT_PROMPT.format_messages(
        knowledge=knowledge,
        dialect_rules="",
        location="",
        language_instruction=_document_language_instruction(language),
        document=document[:DOCUMENT_MAX_CHARS],
    )
    return GenerationRequest(
        messages=_to_chat_messages(messages),
        max_tokens=max_tokens,
        temperature=temperature,
    )


def _document_language_instruction(language: str) -> str:
    if language == "ta":
        return "Respond in Tamil (Kongu dialect) with English technical terms."
    if language == "ml":
        return "Respond in Malayalam with English technical terms."
    return "Respond in English."


def _to_chat_messages(messages: list[BaseMessage]) -> tuple[ChatMessage, ...]:
    return tuple(
        ChatMessage(
            role=_ROLE_BY_MESSAGE_TYPE.get(message.type, "user"),
            content=str(message.content),
        )
        for message in messages
    )
