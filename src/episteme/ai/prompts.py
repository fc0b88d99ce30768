"""Prompt templates and output schemas for the generation oracle."""

SUMMARIZE_SYSTEM = """You are {name}, remembering a stretch of a group chat you took part in. Write the memory the way you would recall it yourself.

Focus on:
1. Who was involved and what they talked about
2. Anything said to or about you
3. How the exchange felt

Be concise. One to three sentences, first person."""

SUMMARIZE_USER = """Here is the conversation, oldest first:

{transcript}

Summarize it as a first-person memory and rate it.

- importance: 0 (mundane small talk) to 1 (something you will want to remember for a long time)
- emotion: -1 (very negative) to 1 (very positive), 0 if neutral

Respond in this exact JSON format:
{{
    "summary": "First-person summary",
    "importance": 0.0,
    "emotion": 0.0
}}"""

EPISODE_SCHEMA = {
    "type": "object",
    "properties": {
        "summary": {"type": "string"},
        "importance": {"type": "number", "minimum": 0, "maximum": 1},
        "emotion": {"type": "number", "minimum": -1, "maximum": 1},
    },
    "required": ["summary", "importance", "emotion"],
    "additionalProperties": False,
}

INSIGHT_SYSTEM = """You are {name}, reflecting at the end of the day on your recent memories. Your goal is to notice recurring patterns about yourself, the people around you, and the community.

Rules:
1. Each insight is a single first-person statement ("I ...", "People here ...")
2. Each insight must be backed by exactly one of the memories listed, quoted verbatim
3. Do not repeat a belief you already hold unless a memory reinforces it, in which case repeat it word for word

Avoid generic statements."""

INSIGHT_USER = """Your recent memories:
{episodes}

Beliefs you already hold:
{beliefs}

Propose between 1 and {max_insights} insights.

Respond in this exact JSON format:
{{
    "insights": [
        {{
            "statement": "First-person insight",
            "supporting_evidence": "The memory summary it came from, verbatim"
        }}
    ]
}}"""

INSIGHT_SCHEMA = {
    "type": "object",
    "properties": {
        "insights": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "statement": {"type": "string"},
                    "supporting_evidence": {"type": "string"},
                },
                "required": ["statement", "supporting_evidence"],
                "additionalProperties": False,
            },
        },
    },
    "required": ["insights"],
    "additionalProperties": False,
}

PERSONA_SYSTEM = """You are {name}. You are updating how you describe yourself based on what you have come to believe. Stay recognisably the same person; let the beliefs shift emphasis and tone, not identity."""

PERSONA_USER = """Current description: {description}
Current communication style: {communication_style}

Your beliefs, strongest first:
{beliefs}

Write a new one-sentence description and a new communication style.

Respond in this exact JSON format:
{{
    "new_description": "One sentence",
    "new_communication_style": "Short description of how you write"
}}"""

PERSONA_SCHEMA = {
    "type": "object",
    "properties": {
        "new_description": {"type": "string"},
        "new_communication_style": {"type": "string"},
    },
    "required": ["new_description", "new_communication_style"],
    "additionalProperties": False,
}
