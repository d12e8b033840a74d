"""
Extraction Engine (netshell/variables/extractor.py)

PURPOSE:
Pulls variables out of script output with ordered regex lists.

MODES:
- Cascade (default): each pattern runs on the previous pattern's captured
  text; the last capture becomes the value. Any miss fails the rule.
- Fallback (cascade: false): patterns are alternatives tried in order on the
  original text; the first match wins.

A pattern contributes capture group 1 when it has one, otherwise the full
match (with a warning). A rule that fails leaves its variable unset; it never
fails the step.
"""

import functools
import logging
import re
from typing import Dict, Iterable, Optional, Pattern

from netshell.config.schema import ExtractRule, ExtractSource
from netshell.engine.models import ExecutionResult
from netshell.errors import ErrorCode, ExtractionError
from netshell.variables.store import VariableStore

logger = logging.getLogger(__name__)


@functools.lru_cache(maxsize=512)
def _compile(pattern: str) -> Pattern[str]:
    return re.compile(pattern)


def select_source(rule: ExtractRule, result: ExecutionResult) -> str:
    if rule.source is ExtractSource.STDERR:
        return result.stderr
    if rule.source is ExtractSource.EXIT_CODE:
        return str(result.exit_code)
    return result.stdout


class Extractor:
    """Applies ExtractRules to ExecutionResults."""

    def extract(self, rule: ExtractRule, result: ExecutionResult) -> str:
        """
        Evaluate one rule.

        Returns:
            The extracted string

        Raises:
            ExtractionError: no match, or a pattern that does not compile
        """
        text = select_source(rule, result)
        if rule.cascade:
            return self._cascade(rule, text)
        return self._fallback(rule, text)

    def _cascade(self, rule: ExtractRule, text: str) -> str:
        current = text
        for idx, pattern in enumerate(rule.patterns):
            captured = self._capture(rule, pattern, current)
            if captured is None:
                raise ExtractionError(
                    ErrorCode.EXTRACT_NO_MATCH,
                    f"Rule '{rule.name}': cascade pattern {idx} {pattern!r} did not match",
                    details={"rule": rule.name, "pattern": pattern, "index": idx},
                )
            current = captured
        return current

    def _fallback(self, rule: ExtractRule, text: str) -> str:
        for pattern in rule.patterns:
            captured = self._capture(rule, pattern, text)
            if captured is not None:
                return captured
        raise ExtractionError(
            ErrorCode.EXTRACT_NO_MATCH,
            f"Rule '{rule.name}': none of {len(rule.patterns)} pattern(s) matched",
            details={"rule": rule.name, "patterns": list(rule.patterns)},
        )

    def _capture(self, rule: ExtractRule, pattern: str, text: str) -> Optional[str]:
        try:
            regex = _compile(pattern)
        except re.error as exc:
            raise ExtractionError(
                ErrorCode.EXTRACT_BAD_PATTERN,
                f"Rule '{rule.name}': invalid regex {pattern!r}: {exc}",
                details={"rule": rule.name, "pattern": pattern},
            ) from exc

        match = regex.search(text)
        if match is None:
            return None
        if regex.groups == 0:
            logger.warning(
                f"[Extractor] Rule '{rule.name}': pattern {pattern!r} has no capture group, "
                f"using the full match"
            )
            return match.group(0)
        # None when group 1 did not participate; counts as a miss
        return match.group(1)

    def apply(
        self,
        rules: Iterable[ExtractRule],
        result: ExecutionResult,
        store: VariableStore,
        target_name: str = "",
    ) -> Dict[str, str]:
        """
        Run every rule against one target's result and commit the matches.

        Returns:
            The variables that were set, by name
        """
        committed: Dict[str, str] = {}
        for rule in rules:
            try:
                value = self.extract(rule, result)
            except ExtractionError as exc:
                logger.warning(f"[Extractor] {target_name or 'target'}: {exc.message}")
                continue
            store.set(rule.name, value)
            committed[rule.name] = value
            logger.debug(f"[Extractor] {target_name or 'target'}: {rule.name} = {value!r}")
        return committed
