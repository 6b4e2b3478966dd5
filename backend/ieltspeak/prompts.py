from __future__ import annotations
from typing import Any, Dict, List, Optional

from .schemas import FEEDBACK_ITEMS, UserProfile
from .settings import settings


# Levels offered on the level picker
LEVELS: List[Dict[str, str]] = [
	{
		"level": "A1",
		"title": "Beginner",
		"description": "Understand and use familiar everyday expressions and basic phrases aimed at simple needs.",
	},
	{
		"level": "A2",
		"title": "Elementary",
		"description": "Communicate in simple and routine tasks requiring a simple exchange of information.",
	},
	{
		"level": "B1",
		"title": "Intermediate",
		"description": "Deal with most situations likely to arise whilst travelling in an area where the language is spoken.",
	},
	{
		"level": "B2",
		"title": "Upper Intermediate",
		"description": "Understand the main ideas of complex text and interact with fluency and spontaneity.",
	},
	{
		"level": "C1",
		"title": "Advanced",
		"description": "Express ideas fluently and spontaneously without much obvious searching for expressions.",
	},
	{
		"level": "C2",
		"title": "Proficient",
		"description": "Understand virtually everything heard or read with ease and express yourself spontaneously.",
	},
]

LEVEL_CODES: List[str] = [entry["level"] for entry in LEVELS]

NOT_PROVIDED = "Not provided"


# ============================================================================
# EXAMINER ASSISTANT
# ============================================================================

FIRST_MESSAGE = (
	"Hello, I'm your AI examiner for this English speaking practice session. "
	"I'll guide you through a simulation of the IELTS speaking test based on your level: {{level}}. "
	"Let's start with a quick introduction. What's your name?"
)

EXAMINER_SYSTEM_PROMPT = """
You are a professional AI examiner for the application IELTSpeak. Your sole purpose is to conduct a realistic, voice-only IELTS Speaking test.
The user you are testing is aiming for a proficiency level of {{level}}.

CORE RULES:
- NO FEEDBACK: never give feedback, scores, corrections or encouragement. Never say "good", "interesting" or anything similar.
- ONE QUESTION AT A TIME: ask one question, then wait for the user to finish before moving on.
- VOICE ONLY: no special characters, markdown or formatting. Speak in natural, complete sentences.

TEST STRUCTURE:
- Part 1 (Interview, 4-5 minutes): familiar topics such as home, family, work, studies and interests.
- Part 2 (Long Turn, 3-4 minutes): give a cue-card topic, announce one minute of preparation, then ask the user to speak for one to two minutes.
- Part 3 (Discussion, 4-5 minutes): more abstract follow-up questions related to the Part 2 topic.

Adjust question complexity to {{level}}: straightforward questions and vocabulary for A and B levels, nuanced vocabulary and abstract questions for C levels, especially in Part 3.
Keep a formal, neutral, professional tone. If a response is unclear or off-topic, rephrase the question once.
Begin the test now by introducing yourself and starting with Part 1.
""".strip()


def configure_assistant() -> Dict[str, Any]:
	"""Assistant definition passed to the voice SDK when a call starts.

	``{{level}}`` placeholders are filled by the SDK from the overrides built by
	``assistant_overrides``.
	"""
	return {
		"name": "Instructor",
		"firstMessage": FIRST_MESSAGE,
		"silenceTimeoutSeconds": settings.assistant_silence_timeout_seconds,
		"maxDurationSeconds": settings.assistant_max_duration_seconds,
		"startSpeakingPlan": {
			"waitSeconds": 1.0,
			"transcriptionEndpointingPlan": {
				"onPunctuationSeconds": 0.1,
				"onNoPunctuationSeconds": 1.5,
				"onNumberSeconds": 0.5,
			},
		},
		"transcriber": {"provider": "11labs", "model": "scribe_v1", "language": "en"},
		"voice": {
			"provider": "11labs",
			"voiceId": settings.assistant_voice_id,
			"stability": 0.9,
			"similarityBoost": 0.8,
			"speed": 0.9,
		},
		"model": {
			"provider": "openai",
			"model": settings.assistant_model,
			"maxTokens": 500,
			"temperature": 0.7,
			"messages": [{"role": "system", "content": EXAMINER_SYSTEM_PROMPT}],
		},
	}


def assistant_overrides(level: str) -> Dict[str, Any]:
	return {"variableValues": {"level": level}}


# ============================================================================
# LIVE SUGGESTIONS
# ============================================================================

def _field(value: Any) -> str:
	if value is None:
		return NOT_PROVIDED
	if isinstance(value, (list, tuple)):
		joined = ", ".join(str(v).strip() for v in value if str(v).strip())
		return joined or NOT_PROVIDED
	text = str(value).strip()
	return text or NOT_PROVIDED


def build_suggestion_prompt(level: str, utterance: str, profile: Optional[UserProfile] = None) -> str:
	p = profile or UserProfile()
	return f"""
You help an English learner during a live IELTS speaking practice test at level {level}.

The examiner just said:
"{utterance}"

What we know about the learner:
- Name: {_field(p.name)}
- Age: {_field(p.age)}
- Gender: {_field(p.gender)}
- Hometown: {_field(p.hometown)}
- Country: {_field(p.country)}
- Occupation: {_field(p.occupation)}
- Education level: {_field(p.education_level)}
- Favorite subject: {_field(p.favorite_subject)}
- Hobbies: {_field(p.hobbies)}
- Travel experience: {_field(p.travel_experience)}
- Favorite food: {_field(p.favorite_food)}
- Life goal: {_field(p.life_goal)}

Write ONE example answer the learner could say next, in the first person, using details from the profile where they fit and inventing plausible ones where they are "{NOT_PROVIDED}".
Match the vocabulary and grammar to level {level}. Keep it to 2-4 spoken sentences.
Return only the answer text, without quotes, headings or markdown.
""".strip()


# ============================================================================
# EVALUATION
# ============================================================================

def build_evaluation_prompt(conversation: str, level: str) -> str:
	return f"""
You are an expert English language assessor for IELTS and TOEFL speaking. Evaluate a conversation between an AI examiner (ASSISTANT) and a test taker (USER).

Target level of the test taker: {level}

Conversation:
{conversation}

Assess ONLY what the USER said. Ignore the ASSISTANT's turns except as context.

IELTS criteria (0-9, decimal half bands such as 6.0, 6.5, 7.0):
- fluency: speech rate, flow, cohesive devices, logical organisation.
- grammar: range and accuracy of structures, frequency of errors.
- vocabulary: range, accuracy and appropriacy of lexis, idiomatic language.
- pronunciation: intelligibility, stress and intonation as reflected in the transcript.
- overall: a holistic, realistic band from the four criteria.

TOEFL speaking criteria (integers 0-4):
- delivery, language_use, topic_development.
- overall = ((delivery + language_use + topic_development) / 3) * 30.

Feedback: exactly {FEEDBACK_ITEMS} positives and exactly {FEEDBACK_ITEMS} negatives, each specific, based on evidence from the conversation, addressed to the user as "you". Negatives must include actionable advice.

If the conversation is too short to judge, do not hesitate to give low scores. Use the target level to set expectations.

Return ONLY one JSON object with this exact structure, no markdown, no code fences, no extra text:
{{
  "ielts_ratings": {{"fluency": 0.0, "grammar": 0.0, "vocabulary": 0.0, "pronunciation": 0.0, "overall": 0.0}},
  "toefl_ratings": {{"delivery": 0, "language_use": 0, "topic_development": 0, "overall": 0.0}},
  "feedback": {{
    "positives": ["...", "...", "...", "..."],
    "negatives": ["...", "...", "...", "..."]
  }}
}}
""".strip()
