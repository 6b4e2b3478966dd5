from __future__ import annotations
import math
from enum import Enum
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


Role = Literal["user", "assistant"]

# Number of feedback bullets required on each side
FEEDBACK_ITEMS = 4


class CallStatus(str, Enum):
	INACTIVE = "INACTIVE"
	CONNECTING = "CONNECTING"
	ACTIVE = "ACTIVE"
	FINISHED = "FINISHED"


class SuggestionStatus(str, Enum):
	WAITING = "waiting"
	GENERATING = "generating"
	READY = "ready"


class SavedMessage(BaseModel):
	model_config = ConfigDict(frozen=True)

	role: Role
	content: str = Field(min_length=1)


class UserProfile(BaseModel):
	"""Optional learner details used to personalise suggestions."""
	name: Optional[str] = None
	age: Optional[int] = None
	gender: Optional[str] = None
	hometown: Optional[str] = None
	country: Optional[str] = None
	occupation: Optional[str] = None
	education_level: Optional[str] = None
	favorite_subject: Optional[str] = None
	hobbies: Optional[List[str]] = None
	travel_experience: Optional[str] = None
	favorite_food: Optional[str] = None
	life_goal: Optional[str] = None


def snap_to_half_band(value: float) -> float:
	return math.floor(value * 2 + 0.5) / 2


def toefl_overall(delivery: float, language_use: float, topic_development: float) -> float:
	return ((delivery + language_use + topic_development) / 3) * 30


class IeltsRatings(BaseModel):
	fluency: float = Field(ge=0, le=9)
	grammar: float = Field(ge=0, le=9)
	vocabulary: float = Field(ge=0, le=9)
	pronunciation: float = Field(ge=0, le=9)
	overall: float = Field(ge=0, le=9)

	@field_validator("fluency", "grammar", "vocabulary", "pronunciation", "overall")
	@classmethod
	def _half_band(cls, v: float) -> float:
		return snap_to_half_band(v)


class ToeflRatings(BaseModel):
	delivery: int = Field(ge=0, le=4)
	language_use: int = Field(ge=0, le=4)
	topic_development: int = Field(ge=0, le=4)
	# Whatever the model claims, overall is derived from the three sub-scores
	overall: Optional[float] = None

	@model_validator(mode="after")
	def _derive_overall(self) -> "ToeflRatings":
		self.overall = toefl_overall(self.delivery, self.language_use, self.topic_development)
		return self


class Feedback(BaseModel):
	positives: List[str]
	negatives: List[str]

	@field_validator("positives", "negatives")
	@classmethod
	def _exactly_four(cls, items: List[str]) -> List[str]:
		cleaned = [str(item).strip() for item in items]
		if len(cleaned) != FEEDBACK_ITEMS:
			raise ValueError(f"expected exactly {FEEDBACK_ITEMS} items, got {len(cleaned)}")
		if not all(cleaned):
			raise ValueError("feedback items must not be empty")
		return cleaned


class Evaluation(BaseModel):
	ielts_ratings: IeltsRatings
	toefl_ratings: ToeflRatings
	feedback: Feedback


# ---- Request bodies ----

class RatingRequest(BaseModel):
	# Kept loose so a missing or empty list can be reported with a precise message
	messages: Optional[List[Any]] = None
	level: Optional[str] = None


class SuggestionRequest(BaseModel):
	prompt: Optional[str] = None


class CreateSessionRequest(BaseModel):
	level: str
	mode: Literal["exam", "practice"] = "practice"
	user_id: Optional[str] = None
