"""
Turn-level judgment: decide whether to follow up, advance or wrap up.
"""
import logging

from ..config import TURN_TEMPERATURE, TURN_MAX_OUTPUT_TOKENS, INTERVIEW_DURATION_SECONDS
from ..errors import InterviewSystemError, JudgmentError, RateLimitError
from .prompts import InterviewPrompts
from .schemas import EvaluationState, TurnDecision, TurnAction

logger = logging.getLogger("turn_evaluator")


class TurnEvaluator:
    """
    Sends one answer plus interview state to the judgment service.

    evaluate() never raises: transport failures, rate limiting and malformed
    output all produce the safe default decision (incomplete / next). The
    elapsed-time ceiling and the no-questions-remaining rule are applied on
    top of whatever the service said.
    """

    def __init__(self, llm_client=None, duration_ceiling_sec: float = INTERVIEW_DURATION_SECONDS):
        self.llm_client = llm_client
        self.duration_ceiling_sec = duration_ceiling_sec
        self.call_count = 0

    def evaluate(self, transcript: str, state: EvaluationState) -> TurnDecision:
        transcript = (transcript or "").strip()
        if not transcript:
            logger.warning("Empty transcript passed to evaluator; using default decision")
            decision = TurnDecision()
        elif self.llm_client is None:
            decision = TurnDecision()
        else:
            decision = self._ask(transcript, state)
        return self.apply_policy(decision, state)

    def _ask(self, transcript: str, state: EvaluationState) -> TurnDecision:
        prompt = InterviewPrompts.turn_decision_prompt(transcript, state)
        self.call_count += 1
        logger.debug(f"Evaluating answer to question {state.question_index + 1}/{state.total_questions}")

        try:
            data = self.llm_client.generate_json(
                prompt,
                temperature=TURN_TEMPERATURE,
                max_output_tokens=TURN_MAX_OUTPUT_TOKENS,
            )
        except RateLimitError as e:
            logger.warning(f"Turn evaluation rate limited: {e}")
            return TurnDecision()
        except JudgmentError as e:
            logger.warning(f"Evaluator output unparseable, using default decision: {e} (raw={e.raw!r})")
            return TurnDecision()
        except InterviewSystemError as e:
            logger.error(f"Turn evaluation request failed: {e}")
            return TurnDecision()
        except Exception as e:
            logger.error(f"Unexpected turn evaluation failure: {e}")
            return TurnDecision()

        decision = TurnDecision.from_payload(data)
        logger.info(f"Evaluator decision: {decision.response_quality.value}/{decision.action.value}")
        return decision

    def apply_policy(self, decision: TurnDecision, state: EvaluationState) -> TurnDecision:
        """Force wrap_up past the time ceiling or when no questions remain."""
        if state.time_elapsed_sec > self.duration_ceiling_sec or state.questions_remaining <= 0:
            if decision.action != TurnAction.WRAP_UP:
                logger.info(
                    f"Forcing wrap_up (elapsed={state.time_elapsed_sec}s, remaining={state.questions_remaining})"
                )
            decision.action = TurnAction.WRAP_UP
            closing = InterviewPrompts.fixed_messages()["wrap_up_suffix"]
            lowered = decision.message.lower()
            if "wrap" not in lowered and "complete" not in lowered:
                decision.message = f"{decision.message} {closing}".strip()
        return decision


def evaluation_state(question_text: str, elapsed_sec: float, index: int, total: int) -> EvaluationState:
    """Build the evaluator state for the question at `index`."""
    return EvaluationState(
        current_question_text=question_text,
        time_elapsed_sec=int(elapsed_sec),
        questions_remaining=max(0, total - index - 1),
        question_index=index,
        total_questions=total,
    )
