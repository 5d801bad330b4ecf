"""Commit message suggestions and rebase conflict explanations from the Gemini API."""

from typing import Optional

import httpx

from worktree_hub.exceptions import CommitMessageError
from worktree_hub.logging_config import get_logger
from worktree_hub.services.secret_store import SecretStore

logger = get_logger(__name__)

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
DEFAULT_MODEL = "gemini-2.0-flash"
MAX_DIFF_CHARS = 30_000
REQUEST_TIMEOUT = 30.0

PROMPT_TEMPLATE = """You are an expert developer. Generate a short, concise, professional \
conventional commit message based on the following git diff and branch name.
Follow the format: <type>(<scope>): <description>
Do not include any conversational filler, markdown blocks, or explanations. Just the message.

Branch: {branch}

Diff:
{diff}"""

CONFLICT_PROMPT_TEMPLATE = """You are an expert developer. A git rebase stopped on the conflicts \
below. In a few short sentences, explain what each side changed and how the conflict could be \
resolved. Do not repeat the diff.

Conflicts:
{diff}"""

COMMIT_GENERATION = {"temperature": 0.2, "topP": 0.8, "topK": 40, "maxOutputTokens": 100}
EXPLAIN_GENERATION = {"temperature": 0.3, "topP": 0.8, "topK": 40, "maxOutputTokens": 400}


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence, if the model added one."""
    lines = text.strip().splitlines()
    if lines and lines[0].startswith("```"):
        lines = lines[1:]
    if lines and lines[-1].strip() == "```":
        lines = lines[:-1]
    return "\n".join(lines).strip()


class CommitMessageService:
    """Sends diffs to the text-generation service and returns its text."""

    def __init__(
        self,
        secret_store: Optional[SecretStore] = None,
        client: Optional[httpx.Client] = None,
        model: str = DEFAULT_MODEL,
    ):
        self.secret_store = secret_store or SecretStore()
        self.client = client
        self.model = model

    def _post(self, url: str, api_key: str, payload: dict) -> httpx.Response:
        params = {"key": api_key}
        if self.client is not None:
            return self.client.post(url, params=params, json=payload, timeout=REQUEST_TIMEOUT)
        return httpx.post(url, params=params, json=payload, timeout=REQUEST_TIMEOUT)

    def _complete(self, prompt: str, generation: dict) -> str:
        api_key = self.secret_store.get_api_key()
        if not api_key:
            raise CommitMessageError("no API key configured (set GEMINI_API_KEY or run 'config set-key')")

        payload = {"contents": [{"parts": [{"text": prompt}]}], "generationConfig": generation}
        try:
            response = self._post(GEMINI_URL.format(model=self.model), api_key, payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise CommitMessageError(f"service returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise CommitMessageError(f"request failed: {e}") from e
        except ValueError as e:
            raise CommitMessageError("response was not valid JSON") from e

        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise CommitMessageError("no message text in response") from e

        text = strip_code_fences(text)
        if not text:
            raise CommitMessageError("service returned an empty message")
        return text

    @staticmethod
    def _truncate(diff: str) -> str:
        if len(diff) > MAX_DIFF_CHARS:
            logger.debug(f"Truncating diff from {len(diff)} to {MAX_DIFF_CHARS} characters")
            return diff[:MAX_DIFF_CHARS]
        return diff

    def generate(self, diff: str, branch: str) -> str:
        """Ask the service for a commit message.

        Raises:
            CommitMessageError: no key, empty diff, network or HTTP failure, or a malformed response
        """
        if not diff.strip():
            raise CommitMessageError("nothing staged to describe")
        prompt = PROMPT_TEMPLATE.format(branch=branch, diff=self._truncate(diff))
        return self._complete(prompt, COMMIT_GENERATION)

    def suggest(self, diff: str, branch: str) -> Optional[str]:
        """Like ``generate`` but returns None on failure so the caller asks for a message."""
        try:
            return self.generate(diff, branch)
        except CommitMessageError as e:
            logger.warning(f"Commit message generation failed: {e}")
            return None

    def explain_conflict(self, conflict_diff: str) -> str:
        """Ask the service to explain a rebase conflict.

        Raises:
            CommitMessageError: as for ``generate``
        """
        if not conflict_diff.strip():
            raise CommitMessageError("no conflicts to explain")
        prompt = CONFLICT_PROMPT_TEMPLATE.format(diff=self._truncate(conflict_diff))
        return self._complete(prompt, EXPLAIN_GENERATION)

    def explain(self, conflict_diff: str) -> Optional[str]:
        """Like ``explain_conflict`` but returns None on failure."""
        try:
            return self.explain_conflict(conflict_diff)
        except CommitMessageError as e:
            logger.warning(f"Conflict explanation failed: {e}")
            return None
