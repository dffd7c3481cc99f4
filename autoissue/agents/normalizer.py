"""
Question Normalizer

Rewrites conversational requests ("can you...", "please...") into direct
commands. Direct commands come back unchanged. If the model fails the
raw input is used as-is; this stage never stops the pipeline.
"""

from __future__ import annotations

from loguru import logger

from autoissue.agents import BaseAgent

NORMALIZER_PROMPT = """Analyze this input and determine if it's a question/polite request or already a direct command.

User input: {request}

DETECTION RULES:
1. QUESTION/POLITE REQUEST (convert to direct command):
   - Contains question words: "can you", "would you", "could you", "help me", "please"
   - Contains polite phrases: "would you mind", "if you could", "I need you to"
   - Starts with question words: "how do I", "what should I", "why is"

2. DIRECT COMMAND (return unchanged):
   - Starts with action verbs: "add", "edit", "create", "comment", "view", "close", "reopen"
   - Contains imperative instructions without polite qualifiers
   - Already in command format

Examples of CONVERSION (questions -> commands):
Input: "can you generate a clear description of issue 16 based on the title"
Output: edit issue 16 body to generate a clear description based on the title

Input: "help me add a comment to issue 8 about the fix"
Output: add comment to issue 8 about the fix

Input: "please create an issue about dark mode"
Output: create issue about dark mode

Input: "would you mind commenting on issue 12 that this is resolved"
Output: comment on issue 12 that this is resolved

Input: "could you close issue 4 since it was fixed in the last release"
Output: close issue 4 because it was fixed in the last release

Examples of NO CHANGE (already direct commands):
Input: "edit issue 5 title to say Bug: Login timeout"
Output: edit issue 5 title to say Bug: Login timeout

Input: "create issue about login timeout"
Output: create issue about login timeout

Input: "comment on issue 15 about deployment status"
Output: comment on issue 15 about deployment status

CRITICAL: If input starts with action verbs (add, edit, create, comment, view, close, reopen) and does NOT contain polite/question phrases, return it EXACTLY as provided. Do NOT add "create" or modify direct commands.

Only output the converted/unchanged command on a single line, no additional text.
Output as plain text only, no code blocks or formatting."""


class QuestionNormalizer(BaseAgent):
    role = "normalizer"

    def build_prompt(self, request: str, context: str = "") -> str:
        return NORMALIZER_PROMPT.format(request=request)

    def parse_response(self, content: str, request: str) -> str:
        lines = [l.strip() for l in content.splitlines() if l.strip()]
        if not lines:
            return request
        command = lines[-1]
        # Tolerate the model echoing the example layout.
        if command.lower().startswith("output:"):
            command = command[len("output:"):].strip()
        if len(command) >= 2 and command[0] == command[-1] and command[0] in "\"'":
            command = command[1:-1].strip()
        if not command:
            return request
        if command != request:
            logger.info(f"[NORMALIZER] Converted request: {command}")
        return command

    def fallback(self, request: str, error: Exception) -> str:
        logger.warning(f"[NORMALIZER] Using request unchanged: {error}")
        return request

    def normalize(self, request: str) -> str:
        return self.run(request)
