"""
Study Records

Key Records:
- QuizItem: One multiple-choice question with the topic it covers
- Flashcard: Front/back pair
- QnaMessage: One turn of the document chat
- VideoSuggestion: Related video for the document
- QuizResult: Outcome of scoring a submitted quiz

Records only live inside a StudySession; nothing here is persisted.
"""
import enum
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional


class Role(enum.Enum):
    USER = "user"
    AI = "ai"


class NoteLength(enum.Enum):
    SHORT = "short"
    LONG = "long"


class Dialog(enum.Enum):
    SUMMARY = "summary"
    QUIZ = "quiz"
    QNA = "qna"
    FLASHCARDS = "flashcards"
    SMART_NOTES = "smart-notes"
    VIDEOS = "videos"


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


@dataclass
class QuizItem:
    question: str
    options: List[str]
    answer: str
    topic: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Optional["QuizItem"]:
        """Build an item from model output, or None if it is unusable."""
        if not isinstance(data, Mapping):
            return None
        question = _text(data.get("question"))
        raw_options = data.get("options")
        if not isinstance(raw_options, list):
            return None
        options = [_text(o) for o in raw_options if _text(o)]
        if not question or not options:
            return None
        return cls(
            question=question,
            options=options,
            answer=_text(data.get("answer")),
            topic=_text(data.get("topic")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Flashcard:
    front: str
    back: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Optional["Flashcard"]:
        if not isinstance(data, Mapping):
            return None
        front, back = _text(data.get("front")), _text(data.get("back"))
        if not front or not back:
            return None
        return cls(front=front, back=back)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class QnaMessage:
    role: Role
    content: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "QnaMessage":
        """Strict parse for client-supplied history; raises ValueError."""
        if not isinstance(data, Mapping):
            raise ValueError("history entries must be objects")
        try:
            role = Role(_text(data.get("role")))
        except ValueError:
            raise ValueError("history role must be 'user' or 'ai'")
        content = data.get("content")
        if not isinstance(content, str):
            raise ValueError("history content must be a string")
        return cls(role=role, content=content)

    def to_dict(self) -> Dict[str, Any]:
        return {"role": self.role.value, "content": self.content}


@dataclass
class VideoSuggestion:
    title: str
    url: str
    description: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Optional["VideoSuggestion"]:
        if not isinstance(data, Mapping):
            return None
        title, url = _text(data.get("title")), _text(data.get("url"))
        if not title or not url.lower().startswith(("http://", "https://")):
            return None
        return cls(title=title, url=url, description=_text(data.get("description")))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class QuizResult:
    score: int
    total: int
    review_topics: List[str] = field(default_factory=list)
    duration_seconds: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def score_quiz(quiz: List[QuizItem], user_answers: Mapping[int, str]) -> QuizResult:
    """Count correct answers and collect topics to review.

    An unanswered question counts as incorrect. Review topics are distinct,
    non-empty, and keep the order in which they were first missed.
    """
    score = 0
    review_topics: List[str] = []
    for i, item in enumerate(quiz):
        if user_answers.get(i) == item.answer:
            score += 1
        elif item.topic and item.topic not in review_topics:
            review_topics.append(item.topic)
    return QuizResult(score=score, total=len(quiz), review_topics=review_topics)
