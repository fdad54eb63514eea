"""
Interview prompt templates and generation.

This module contains all the prompt templates used throughout the interview system,
keeping them separate from the business logic for easier maintenance and editing.
"""

from typing import List, Sequence

from .models import InterviewQuestion
from .schemas import EvaluationState


class InterviewPrompts:
    """Collection of all interview-related prompts."""

    @staticmethod
    def interviewer_context() -> str:
        """Base context describing the interviewer role."""
        return """
You are an expert interviewer conducting a screening for an SDR (Sales Development Representative) position.

Your role:
- Ask questions clearly and professionally
- Listen for complete answers
- Ask follow-ups when responses are vague or incomplete
- Keep the interview moving (aim for 10 minutes total)
- Be encouraging but maintain professional standards

Guidelines:
- Wait for candidate to finish speaking
- Maximum 1 follow-up per question
- If candidate rambles, politely redirect
- Track time and adjust pace accordingly
- Be supportive but assess honestly

Assessment criteria for SDR responses:
- Communication skills and clarity
- Sales knowledge and experience
- Enthusiasm and motivation
- Problem-solving approach
- Ability to handle objections
- Professional demeanor
        """.strip()

    @staticmethod
    def turn_decision_prompt(transcript: str, state: EvaluationState) -> str:
        """Prompt asking the judge what to do with one candidate answer."""
        return f"""
{InterviewPrompts.interviewer_context()}

Response quality levels:
- "complete": Answer directly addresses the question with relevant details
- "incomplete": Answer is too brief, vague, or missing key elements
- "off-topic": Answer doesn't relate to the question asked

Actions you can take:
- "follow_up": Ask a clarifying question to get more complete response
- "next": Move to next question (acknowledge current response positively)
- "wrap_up": End the interview professionally

CRITICAL: You must respond with valid JSON only. No additional text before or after the JSON.

Example responses:
{{"responseQuality":"complete","action":"next","message":"Great answer! That shows good understanding of the sales process. Let's move to our next question."}}
{{"responseQuality":"incomplete","action":"follow_up","message":"Could you give me a specific example of how you would handle that situation?"}}

Current interview state:
- Question: {state.current_question_text}
- Time elapsed: {state.time_elapsed_sec} seconds
- Questions remaining: {state.questions_remaining}
- Question {state.question_index + 1} of {state.total_questions}

Candidate's response: "{transcript}"

Based on this response, provide your assessment as valid JSON:
        """.strip()

    @staticmethod
    def scoring_prompt(transcript: str, questions: Sequence[InterviewQuestion]) -> str:
        """Prompt asking the judge for a structured score of the whole interview."""
        question_list = "\n".join(f"- {q.question}" for q in questions)
        return f"""
You are an expert interviewer evaluating responses for an SDR (Sales Development Representative) position.

CRITICAL INSTRUCTION: Respond with valid JSON only, matching this shape:

{{
  "overallScore": number,
  "categoryScores": {{
    "communication": number,
    "salesKnowledge": number,
    "problemSolving": number,
    "professionalism": number
  }},
  "questionScores": [{{
    "questionId": string,
    "question": string,
    "response": string,
    "score": number,
    "feedback": string
  }}],
  "summary": string,
  "recommendations": [string],
  "decision": "hire" | "maybe" | "no_hire"
}}

Scoring Rules:
- Communication (25%), Sales Knowledge (30%), Problem Solving (25%), Professionalism (20%)
- Question scores: 1-10
- Overall decision: hire (>=7.5), maybe (6.0-7.4), no_hire (<6.0)

Transcript:
{transcript}

Questions:
{question_list}
        """.strip()

    @staticmethod
    def fixed_messages() -> dict:
        """Lines the orchestrator speaks without consulting the judge."""
        return {
            "follow_up_acknowledgment": "Thank you for that additional detail. Let's move on.",
            "closing": "Thank you for your time. Let me prepare your interview report...",
            "wrap_up_suffix": "Thank you for your time. Let's wrap up the interview.",
        }

    @staticmethod
    def fallback_recommendations() -> List[str]:
        return [
            "Provide concise concrete examples where possible.",
            "Expand short answers to include challenges you faced and the outcome.",
        ]
