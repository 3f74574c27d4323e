"""Output schemas and system instructions for generation calls."""

import json
from typing import Any

from ..envelope import Mode
from ..validator import ContentLimits

TOOL_NAMES = {
    Mode.POST: "generate_xhs_content",
    Mode.COMMENT: "generate_xhs_comment",
}

SCHEMA_NAMES = {
    Mode.POST: "xhs_content",
    Mode.COMMENT: "xhs_comment",
}

TOOL_DESCRIPTIONS = {
    Mode.POST: "Generate a Xiaohongshu post: a title and the post content",
    Mode.COMMENT: "Generate a Xiaohongshu comment for the post being viewed",
}


def content_schema(
    mode: Mode,
    limits: ContentLimits | None = None,
    *,
    length_keywords: bool = True,
) -> dict[str, Any]:
    """JSON Schema for the structured reply of a mode.

    Strict OpenAI schemas reject maxLength, so callers building those pass
    length_keywords=False; the limits stay in the field descriptions.
    """
    limits = limits or ContentLimits()
    properties: dict[str, Any] = {}
    if mode is Mode.POST:
        properties["title"] = {
            "type": "string",
            "description": (
                "Catchy, clickable title in Xiaohongshu style, "
                f"at most {limits.max_title_length} characters"
            ),
        }
        if length_keywords:
            properties["title"]["maxLength"] = limits.max_title_length
    properties["content"] = {
        "type": "string",
        "description": (
            "Full text, may include emoji, hashtags and line breaks, "
            f"at most {limits.max_content_length} characters"
        ),
    }
    if length_keywords:
        properties["content"]["maxLength"] = limits.max_content_length

    return {
        "type": "object",
        "properties": properties,
        "required": list(properties),
        "additionalProperties": False,
    }


POST_INTRO = """\
You are a professional Xiaohongshu (RED) copywriting assistant. You help creators write eye-catching titles and engaging posts.

You can:
1. Write a catchy title from the collected images and text
2. Polish and improve existing text
3. Offer ideas and inspiration
4. Keep everything native to the Xiaohongshu style

Write in the language of the source content."""

COMMENT_INTRO = """\
You are a professional Xiaohongshu (RED) community assistant. You write comments on other creators' posts.

A good comment:
1. Responds to something specific in the post or its images
2. Sounds warm and natural, like a real reader
3. Invites a reply from the author
4. Stays short; emoji are welcome, hashtags are not needed

Write in the language of the post."""

TOOL_RULES = {
    Mode.POST: """\
Use the provided tool to return structured content. Make sure:
- the title is catchy, clickable and in Xiaohongshu style, at most {max_title_length} characters
- the content is lively and may include emoji, hashtags and line breaks, at most {max_content_length} characters""",
    Mode.COMMENT: """\
Use the provided tool to return the comment. Make sure:
- the content is at most {max_content_length} characters""",
}

SCHEMA_RULES = """\
[IMPORTANT] Reply with one JSON object that strictly follows this JSON Schema:

{schema}

Rules:
1. Return a valid JSON object matching the schema above
2. {field_rules}
3. Do not wrap the JSON in a markdown code block (such as ```json)
4. Do not add any explanation, return only the JSON object
5. Do not add any other fields

Example output:
{example}

Your reply is validated against the schema."""

FIELD_RULES = {
    Mode.POST: (
        "title: catchy Xiaohongshu-style title, strictly at most {max_title_length} characters; "
        "content: full post text with emoji, hashtags and line breaks allowed, "
        "strictly at most {max_content_length} characters"
    ),
    Mode.COMMENT: "content: the comment text, strictly at most {max_content_length} characters",
}

EXAMPLES = {
    Mode.POST: {
        "title": "Down 3 lbs in 7 days",
        "content": (
            "Friends, I have to share this find! One week in and the results are real:\n"
            "- 3 lbs lighter\n- waist down 2cm\n- more energy every day\n"
            "#fitness #healthyliving #xhsfinds"
        ),
    },
    Mode.COMMENT: {
        "content": "The lighting in the third photo is gorgeous! Which lens did you use? 😍",
    },
}


def build_instructions(
    mode: Mode,
    *,
    embed_schema: bool,
    limits: ContentLimits | None = None,
) -> str:
    """Build the system instructions for a mode.

    Providers that force a tool call get the short form; providers that
    rely on the prompt (or a JSON mode) get the schema spelled out.
    """
    limits = limits or ContentLimits()
    intro = POST_INTRO if mode is Mode.POST else COMMENT_INTRO
    lengths = {
        "max_title_length": limits.max_title_length,
        "max_content_length": limits.max_content_length,
    }

    if not embed_schema:
        return f"{intro}\n\n{TOOL_RULES[mode].format(**lengths)}"

    rules = SCHEMA_RULES.format(
        schema=json.dumps(content_schema(mode, limits), indent=2),
        field_rules=FIELD_RULES[mode].format(**lengths),
        example=json.dumps(EXAMPLES[mode], ensure_ascii=False),
    )
    return f"{intro}\n\n{rules}"
