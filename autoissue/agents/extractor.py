"""
Intent Extractor

Asks the model for a fixed `KEY: VALUE` block and parses it into an
Intent right away. No output, or a failed call, yields the degraded
low-confidence Intent rather than an error; the gate flags it.
"""

from __future__ import annotations

from loguru import logger

from autoissue.agents import BaseAgent
from autoissue.context import context_block
from autoissue.intent import Intent, parse_intent_lines

EXTRACTOR_PROMPT = """Analyze this GitHub issue request and extract ALL parameters and intent.

User input: {request}{context}

Respond with ONLY these lines in this exact format:
OPERATION: [create|edit|comment|view|close|reopen]
ISSUE_NUMBER: [number or NONE]
CONTENT: [main topic/description]
CONFIDENCE: [high|medium|low]
REQUESTED_LABELS: [comma-separated labels or NONE]
REQUESTED_ASSIGNEES: [comma-separated usernames or NONE]
REQUESTED_MILESTONE: [milestone name or NONE]
PRIORITY_INDICATORS: [urgent|high|medium|low|NONE]
TONE_PREFERENCE: [formal|casual|technical|NONE]
SPECIAL_INSTRUCTIONS: [any specific formatting/content requests or NONE]

IMPORTANT:
- Extract ALL mentioned parameters, even if implied
- For labels: look for keywords like 'bug', 'feature', 'urgent', 'security', 'mobile'
- For assignees: look for names, usernames, or team references
- For priority: look for words like 'urgent', 'critical', 'high priority', 'asap'
- For tone: detect if user wants formal, casual, or technical language
- If the request names an issue but says nothing about what to do with it, use CONFIDENCE: low
- Output as plain text only, no code blocks or markdown formatting

Examples:

Input: "create urgent bug report about login timeout, tag as security and mobile, assign to sarah"
{example_create}

Input: "add comment to issue 8 about login fix with formal tone"
{example_comment}

Input: "edit issue 13 title to say Bug: Login timeout and add steps to reproduce"
{example_edit}

Input: "close issue 21 as a duplicate of 19"
{example_close}

Be precise and extract everything mentioned, including implied parameters from context."""

# Few-shot examples are rendered from real Intents so they always match
# the parser.
_EXAMPLES = {
    "example_create": Intent(
        operation="create", content="login timeout", confidence="high",
        labels=("urgent", "bug", "security", "mobile"), assignees=("sarah",), priority="urgent",
    ),
    "example_comment": Intent(
        operation="comment", target_id=8, content="login fix", confidence="high", tone="formal",
    ),
    "example_edit": Intent(
        operation="edit", target_id=13, content="title to say Bug: Login timeout",
        confidence="high", special_instructions="add steps to reproduce",
    ),
    "example_close": Intent(
        operation="close", target_id=21, content="duplicate of #19", confidence="high",
    ),
}


class IntentExtractor(BaseAgent):
    role = "extractor"

    def build_prompt(self, request: str, context: str = "") -> str:
        return EXTRACTOR_PROMPT.format(
            request=request,
            context=context_block(context),
            **{key: intent.to_lines() for key, intent in _EXAMPLES.items()},
        )

    def parse_response(self, content: str, request: str) -> Intent:
        intent = parse_intent_lines(content)
        if intent.operation == "unknown" and not intent.content:
            intent = intent.model_copy(update={"content": request})
        logger.info(
            f"[EXTRACTOR] operation={intent.operation} "
            f"target={intent.target_id} confidence={intent.confidence}"
        )
        return intent

    def fallback(self, request: str, error: Exception) -> Intent:
        logger.warning(f"[EXTRACTOR] Extraction failed, degraded intent: {error}")
        return Intent.degraded(request)

    def extract(self, command: str, repo_context: str = "") -> Intent:
        return self.run(command, repo_context)
