"""
Composer: prompts and parsers for generated issue content.

Structured content (new issues, field edits) is requested as a JSON
object and validated with pydantic before the user ever sees it. Free
text (comments, close/reopen reasons) is used as generated.
"""

from __future__ import annotations

import json
import re

from loguru import logger
from pydantic import BaseModel, Field, ValidationError, field_validator

from autoissue.context import context_block
from autoissue.errors import ValidationFailure
from autoissue.intent import Intent
from autoissue.tracker import IssueEdit, IssueSnapshot, TrackerContext


# ---------------------------------------------------------------------------
# Output Schemas
# ---------------------------------------------------------------------------

class IssueDraft(BaseModel):
    title: str = Field(min_length=1)
    body: str = Field(min_length=1)
    labels: list[str] = Field(default_factory=list)
    assignees: list[str] = Field(default_factory=list)
    milestone: str | None = None

    @field_validator("labels", "assignees", mode="before")
    @classmethod
    def _null_is_empty(cls, value):
        return value or []


# ---------------------------------------------------------------------------
# Prompt fragments
# ---------------------------------------------------------------------------

_TONE_LINES = {
    "formal": "- Use formal, professional language",
    "casual": "- Use casual, friendly language",
    "technical": "- Use technical, precise language with specific details",
}


def _style_lines(intent: Intent, default: str = "- Professional in tone") -> str:
    lines = [_TONE_LINES.get(intent.tone or "", default)]
    if intent.priority:
        lines.append(f"- Priority indicated by the user: {intent.priority}")
    if intent.special_instructions:
        lines.append(f"- Special instructions: {intent.special_instructions}")
    return "\n".join(lines)


def _allowed(name: str, values: list[str] | None) -> str:
    if not values:
        return f"Available {name}: none (omit this field)"
    return f"Available {name}: {', '.join(values)}"


def create_prompt(intent: Intent, tracker: TrackerContext, repo_context: str = "") -> str:
    requested = ""
    if intent.labels or intent.assignees or intent.milestone:
        requested = f"""

User's requested parameters:
- Requested labels: {', '.join(intent.labels) or 'none'}
- Requested assignees: {', '.join(intent.assignees) or 'none'}
- Requested milestone: {intent.milestone or 'none'}

Map requested labels to available labels when possible (e.g. 'urgent' might map to
'priority:high'). If a requested value doesn't exist, use the closest available one or omit it."""

    return f"""You are helping to create a GitHub issue. Based ONLY on the user's description below, write the issue.

Do not make assumptions about project structure, file locations, or other details not mentioned by the user.

Repository metadata (only use values from these lists):
{_allowed('labels', tracker.labels)}
{_allowed('milestones', tracker.milestones)}
{_allowed('collaborators for assignment', tracker.collaborators)}{context_block(repo_context)}

User's description: {intent.content}{requested}

Writing style:
{_style_lines(intent)}

For the body, write a well-structured markdown description:
- Feature requests: summary, ## Motivation, ## Proposed Solution, ## Acceptance Criteria
- Bug reports: summary, ## Steps to Reproduce, ## Expected Behavior, ## Actual Behavior
- General issues: problem statement, ## Background, ## Proposed Approach, ## Success Criteria

Respond with a single JSON object ONLY, no commentary:
{{"title": "Issue title", "body": "Markdown body", "labels": ["label"], "assignees": ["login"], "milestone": "name or null"}}"""


def edit_prompt(intent: Intent, issue: IssueSnapshot, repo_context: str = "") -> str:
    return f"""You are helping to edit GitHub issue #{issue.number}. Based on the user's request, decide which fields to change.

Current issue:
{issue.as_text()}

User's edit request: {intent.content or '(no details given)'}
{_style_lines(intent, default="- Keep the existing tone")}{context_block(repo_context)}

Respond with a single JSON object ONLY, no commentary. Include only the fields that change:
{{"title": "new title or null", "body": "full new body or null", "add_labels": [], "remove_labels": [],
 "add_assignees": [], "remove_assignees": [], "milestone": "name or null"}}

For body edits that append or prepend text, return the complete new body combined with the existing content."""


def comment_prompt(intent: Intent, issue: IssueSnapshot, repo_context: str = "") -> str:
    return f"""Generate a GitHub issue comment based on the user's request.

Current issue context:
{issue.as_text()}

User's comment request: {intent.content}{context_block(repo_context)}

The comment should be:
- Clear and concise
- Relevant to the issue context
- Properly formatted with markdown if needed
{_style_lines(intent)}

Only output the comment content, without any additional text or explanation."""


_PAST_TENSE = {"close": "closed", "reopen": "reopened"}


def state_change_prompt(verb: str, intent: Intent, issue: IssueSnapshot, repo_context: str = "") -> str:
    return f"""Write a short comment explaining why GitHub issue #{issue.number} is being {_PAST_TENSE.get(verb, verb)}.

Current issue context:
{issue.as_text()}

User's reason: {intent.content}{context_block(repo_context)}

Keep it to one to three sentences.
{_style_lines(intent)}

Only output the comment content, without any additional text or explanation."""


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def _load_json(content: str) -> dict:
    try:
        data = json.loads(content)
    except json.JSONDecodeError:
        match = re.search(r"\{.*\}", content, re.DOTALL)
        if not match:
            raise ValidationFailure("Response is not a JSON object")
        try:
            data = json.loads(match.group())
        except json.JSONDecodeError as e:
            raise ValidationFailure(f"Response is not valid JSON: {e.msg}") from e
    if not isinstance(data, dict):
        raise ValidationFailure("Response is not a JSON object")
    return data


def parse_draft(content: str) -> IssueDraft:
    try:
        return IssueDraft(**_load_json(content))
    except ValidationError as e:
        logger.debug(f"[COMPOSER] Draft rejected: {e}")
        raise ValidationFailure(f"Issue draft is incomplete: {_first_error(e)}") from e


def parse_edit(content: str) -> IssueEdit:
    try:
        fields = IssueEdit(**_load_json(content))
    except ValidationError as e:
        logger.debug(f"[COMPOSER] Edit rejected: {e}")
        raise ValidationFailure(f"Edit is malformed: {_first_error(e)}") from e
    if fields.is_empty:
        raise ValidationFailure("Edit contains no changes")
    return fields


def _first_error(error: ValidationError) -> str:
    first = error.errors()[0]
    where = ".".join(str(p) for p in first.get("loc", ())) or "response"
    return f"{where}: {first.get('msg', 'invalid')}"
