"""Verification agent: asks the judgment oracle whether an edit did its job."""

from __future__ import annotations

import logging

from models.timeline_models import Clip
from operators.timeline_editor import format_clips

from .cancellation import CancellationToken, PlanCancelledError, run_cancellable
from .oracles import Judge
from .types import JudgmentRequest, VerificationResult

logger = logging.getLogger(__name__)


class VerifierAgent:
    """Stateless wrapper around a Judge with a fail-open policy.

    A verdict is advisory only. When the judge itself fails, the edit is
    reported as passed with an issue saying verification did not run, so a
    verifier outage never blocks or rolls back the user's timeline.
    """

    def __init__(self, judge: Judge):
        self.judge = judge

    async def verify(
        self,
        intent: str,
        operation: str,
        pre_state: list[Clip],
        post_state: list[Clip],
        cancel_token: CancellationToken | None = None,
    ) -> VerificationResult:
        request = JudgmentRequest(
            intent=intent,
            operation=operation,
            before=format_clips(pre_state),
            after=format_clips(post_state),
        )

        try:
            result = await run_cancellable(self.judge.judge(request), cancel_token)
        except PlanCancelledError:
            raise
        except Exception as e:
            logger.warning(f"Verification failed for {operation}: {e}")
            return VerificationResult(
                passed=True,
                issues=[f"Verification AI failed: {e}"],
                suggestion=None,
            )

        logger.info(
            f"Verification for {operation}: passed={result.passed}"
            + (f" issues={result.issues}" if result.issues else "")
        )
        return result
