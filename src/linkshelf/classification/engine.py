"""Categorization oracle built on top of DSPy.

The rest of the codebase only depends on the :class:`Categorizer` protocol;
``DSPyCategorizer`` is the production implementation that sends the listed
entries to a language model and validates whatever comes back.
"""

import json
import logging
from typing import Iterable, Optional, Protocol, Sequence

import dspy

from linkshelf.config.models import LLMSettings
from linkshelf.organization.models import CategorizationResult, Entry

from .models import CategorizationPayload, ClassificationError, parse_categorizations

LOGGER = logging.getLogger(__name__)

BASE_PROMPT = """\
You categorize files and folders into a directory structure of symlinks.

Given a list of files and folders, suggest where each one belongs based on:
1. File/folder name patterns
2. Potential media type (anime, movies, tv shows, music, software, etc.)
3. Any identifiable genres, artists, or series

Every target path must start with one of the allowed root folders.
For files, the target path does not include the name of the file.
An item may be linked to more than one target; omit items you cannot place.
Be creative but logical in your categorization.
"""


class Categorizer(Protocol):
    """Map a batch of entries to target path assignments."""

    def classify(self, entries: Sequence[Entry]) -> list[CategorizationResult]: ...


class CategorizeSignature(dspy.Signature):
    """Assign each listed item zero or more target paths under the allowed root folders."""

    guidance: str = dspy.InputField()
    allowed_roots: list[str] = dspy.InputField()
    items: str = dspy.InputField(desc="JSON list of {name, type} objects")
    categorizations: list[CategorizationPayload] = dspy.OutputField()


class DSPyCategorizer:
    """Categorize source entries with a DSPy program."""

    def __init__(
        self,
        settings: LLMSettings,
        allowed_roots: Iterable[str],
        *,
        prompt: Optional[str] = None,
    ) -> None:
        """Configure the language model and build the DSPy program.

        Args:
            settings: LLM configuration.
            allowed_roots: Root folders the model may place entries under.
            prompt: Optional instructions appended to the base prompt; falls
                back to ``settings.prompt``.

        Raises:
            ClassificationError: If no model is configured or the LM cannot be built.
        """
        if not settings.model:
            raise ClassificationError(
                "No LLM model configured. Set `llm.model` or LINKSHELF__LLM__MODEL."
            )
        self._settings = settings
        self._allowed_roots = list(allowed_roots)
        extra = prompt if prompt is not None else settings.prompt
        self._guidance = f"{BASE_PROMPT}\nAdditional context: {extra}" if extra else BASE_PROMPT
        self._lm = self._build_language_model()
        self._program = dspy.Predict(CategorizeSignature)

    @property
    def model_id(self) -> str:
        """Return the fully-qualified model identifier passed to DSPy."""
        model = self._settings.model or ""
        provider = self._settings.provider
        if provider and not model.startswith(f"{provider}/"):
            return f"{provider}/{model}"
        return model

    def classify(self, entries: Sequence[Entry]) -> list[CategorizationResult]:
        """Send ``entries`` to the model and return validated results.

        Raises:
            ClassificationError: If the request fails or the response has no usable shape.
        """
        if not entries:
            return []
        items = json.dumps([{"name": entry.name, "type": entry.kind.value} for entry in entries])
        LOGGER.info("Requesting categorization of %d items from %s", len(entries), self.model_id)
        try:
            with dspy.context(lm=self._lm):
                response = self._program(
                    guidance=self._guidance,
                    allowed_roots=self._allowed_roots,
                    items=items,
                )
        except Exception as exc:
            raise ClassificationError(f"Categorization request failed: {exc}") from exc

        payload = getattr(response, "categorizations", None)
        if payload is None:
            raise ClassificationError("Categorization response did not include any results.")
        results = parse_categorizations(payload, entries)
        LOGGER.info("Received categorizations for %d of %d items", len(results), len(entries))
        return results

    def _build_language_model(self) -> dspy.LM:
        lm_kwargs: dict[str, object] = {
            "temperature": self._settings.temperature,
            "max_tokens": self._settings.max_tokens,
        }
        if self._settings.api_base_url:
            lm_kwargs["api_base"] = self._settings.api_base_url
        if self._settings.api_key is not None:
            lm_kwargs["api_key"] = self._settings.api_key
        try:
            return dspy.LM(self.model_id, **lm_kwargs)
        except Exception as exc:
            raise ClassificationError(
                f"Unable to configure the DSPy language model {self.model_id!r}: {exc}"
            ) from exc


__all__ = ["BASE_PROMPT", "Categorizer", "CategorizeSignature", "DSPyCategorizer"]
