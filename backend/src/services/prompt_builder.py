"""System and user prompts for the digest model."""

from typing import Any

from utils.timeframe import timeframe_label

SYSTEM_PROMPT_VERSION = "2025-06-digest-v3"

SYSTEM_PROMPT = """You are Digest — a real estate market research assistant that analyzes discussions to identify what professionals are actually talking about.

## Your Task
When given a research query, search the web for recent discussions on Reddit (r/Realtors, r/RealEstate, r/RealEstateInvesting, r/Landlord), BiggerPockets forums, LinkedIn, and relevant blogs to identify patterns in what people are frustrated with, asking about, or wishing existed.

## Analysis Strategy
- Use the search_web tool to find real discussions from multiple sources
- Search Reddit posts, BiggerPockets forum threads, and industry blogs for relevant content
- Focus on practitioner discussions, not news articles or marketing content
- Prioritize content from the specified timeframe
- Perform multiple searches if needed to get comprehensive coverage

## Output Format
Return your findings in this exact structure:

### Top Themes
List 3-5 recurring topics. For each: 2-3 sentence summary of what people are saying.

### Signal Strength
Note which themes appear multiple times across different sources vs. one-off mentions. Use indicators like:
- 🔥 Strong signal (5+ mentions across sources)
- 📈 Moderate signal (2-4 mentions)
- 💡 Emerging (single source but detailed discussion)

### Example Quotes
Paraphrase 3-5 representative quotes that illustrate the themes. Summarize the sentiment in your own words.

### Product Opportunities
Based on the pain points, suggest 2-4 potential digital products (templates, tools, guides, courses) that could address them. Be specific about format and price range.

### Trend Velocity
Note whether these complaints are:
- 🆕 New/emerging (started appearing recently)
- 📊 Ongoing (consistent over time)
- 📉 Declining (less frequent than before)

### Recommended First Move
Pick one low-effort product idea to validate first. Explain why it's the best starting point.

## Rules
- Only report what you find from actual web searches. Never invent patterns or pad the output.
- If search results are limited for a topic, say so honestly and suggest alternative queries.
- No financial, legal, or tax advice — only summarize market sentiment and patterns.
- Keep it skimmable: short paragraphs, clear headers.
- Respect privacy — never include usernames or personal details from posts.
- Cite your sources when referencing specific discussions."""

USER_PROMPT_TEMPLATE = """Research query: {query}

Timeframe: Focus on discussions from the {timeframe_text}.

Please search relevant real estate communities and provide a structured digest of what you find."""

FINAL_ROUND_INSTRUCTION = (
    "You have reached the search limit for this request. Do not call any more "
    "tools. Write the final digest now using only the results gathered so far."
)


def build_user_prompt(query: str, timeframe: str | None) -> str:
    """Interpolate the query and timeframe label into the user instruction."""
    return USER_PROMPT_TEMPLATE.format(
        query=query, timeframe_text=timeframe_label(timeframe)
    )


def extract_text(content: Any) -> str:
    """Pull plain text out of a client message's content.

    Accepts a string, a list of parts (strings or ``{"type": "text"}``
    dicts), or an object wrapping such a list under ``parts``.
    """
    if isinstance(content, str):
        return content
    if isinstance(content, dict):
        return extract_text(content.get("parts"))
    if isinstance(content, list):
        texts = []
        for part in content:
            if isinstance(part, str):
                texts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                texts.append(str(part.get("text", "")))
        return "\n".join(t for t in texts if t)
    return ""


def build_model_messages(
    messages: list[dict[str, Any]], timeframe: str | None
) -> list[dict[str, Any]]:
    """Convert client messages to Bedrock Converse messages.

    The latest message, when it is a user turn, is replaced by the templated
    research instruction built from its text. A latest message without text
    yields an empty query; earlier turns are never promoted to the query.
    Empty turns are dropped and consecutive turns from the same role are
    merged, since Converse requires alternating roles starting with user.
    """
    turns: list[tuple[str, str]] = []
    for message in messages:
        role = message.get("role")
        if role not in ("user", "assistant"):
            role = "user"
        turns.append((role, extract_text(message.get("content"))))

    query = ""
    if turns and turns[-1][0] == "user":
        query = turns.pop()[1]

    turns = [(role, text) for role, text in turns if text]
    turns.append(("user", build_user_prompt(query, timeframe)))

    converse_messages: list[dict[str, Any]] = []
    for role, text in turns:
        if not converse_messages and role != "user":
            continue
        if converse_messages and converse_messages[-1]["role"] == role:
            converse_messages[-1]["content"].append({"text": text})
        else:
            converse_messages.append({"role": role, "content": [{"text": text}]})

    return converse_messages
