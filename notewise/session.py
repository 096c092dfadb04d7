"""
Study sessions

A StudySession holds everything one browser session has produced for the
current document: extracted text, summary, quiz and answers, flashcards,
notes, chat history and which features have a call in flight. Sessions live
in a process-local SessionStore and are dropped after a period of inactivity.
"""
import threading
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Set

from notewise.errors import InvalidInput
from notewise.models import (
    Dialog,
    Flashcard,
    NoteLength,
    QnaMessage,
    QuizItem,
    QuizResult,
    Role,
    VideoSuggestion,
    score_quiz,
)


class FeatureBusy(RuntimeError):
    """A call for this feature is already outstanding in the session."""

    def __init__(self, feature: str):
        super().__init__(f"{feature} is already loading")
        self.feature = feature


class StaleResult(RuntimeError):
    """The session was reset while a call was in flight."""


class StudySession:
    def __init__(self, session_id: str):
        self.id = session_id
        self.lock = threading.RLock()
        self.loading: Set[str] = set()
        self.generation = 0
        self.touched_at = time.monotonic()
        self.reset()

    def reset(self) -> None:
        with self.lock:
            self.generation += 1
            self.file_name: Optional[str] = None
            self.page_count = 0
            self.pdf_text: Optional[str] = None
            self.summary: Optional[str] = None
            self.quiz: Optional[List[QuizItem]] = None
            self.num_questions = 5
            self.note_length = NoteLength.SHORT
            self.user_answers: Dict[int, str] = {}
            self.quiz_started_at: Optional[float] = None
            self.quiz_result: Optional[QuizResult] = None
            self.qna_messages: List[QnaMessage] = []
            self.flashcards: Optional[List[Flashcard]] = None
            self.current_card_index = 0
            self.card_flipped = False
            self.smart_notes: Optional[str] = None
            self.video_suggestions: Optional[List[VideoSuggestion]] = None
            self.active_dialog: Optional[Dialog] = None

    def touch(self) -> None:
        self.touched_at = time.monotonic()

    # ============ Call bookkeeping ============

    @contextmanager
    def call(self, feature: str) -> Iterator[int]:
        """Mark ``feature`` as loading for the duration of one provider call.

        Yields the session generation at the start of the call; pass it to
        ``apply`` (or the setters that take ``generation``) to store the result.
        """
        with self.lock:
            if feature in self.loading:
                raise FeatureBusy(feature)
            self.loading.add(feature)
            generation = self.generation
        try:
            yield generation
        finally:
            with self.lock:
                self.loading.discard(feature)

    def check_generation(self, generation: Optional[int]) -> None:
        with self.lock:
            if generation is not None and generation != self.generation:
                raise StaleResult("session was reset during the call")

    def apply(self, generation: Optional[int], **fields: Any) -> None:
        """Store a call result unless the session was reset while it ran."""
        with self.lock:
            self.check_generation(generation)
            for name, value in fields.items():
                setattr(self, name, value)

    def require_document(self) -> str:
        if not self.pdf_text:
            raise InvalidInput("Please upload a PDF first.", title="No document loaded")
        return self.pdf_text

    def open_dialog(self, dialog: Optional[Dialog]) -> None:
        with self.lock:
            self.active_dialog = dialog

    # ============ Document ============

    def set_document(
        self, file_name: str, pdf_text: str, page_count: int = 0, generation: Optional[int] = None,
    ) -> None:
        with self.lock:
            self.check_generation(generation)
            self.file_name = file_name
            self.pdf_text = pdf_text
            self.page_count = page_count

    # ============ Quiz ============

    def clear_quiz(self, num_questions: int) -> None:
        with self.lock:
            self.num_questions = num_questions
            self.quiz = None
            self.user_answers = {}
            self.quiz_started_at = None
            self.quiz_result = None

    def start_quiz(
        self, quiz: List[QuizItem], now: Optional[float] = None, generation: Optional[int] = None,
    ) -> None:
        with self.lock:
            self.check_generation(generation)
            self.quiz = quiz
            self.user_answers = {}
            self.quiz_result = None
            self.quiz_started_at = time.time() if now is None else now

    def _check_answer(self, index: Any, option: Any) -> None:
        if not self.quiz:
            raise InvalidInput("There is no quiz to answer.")
        if self.quiz_result is not None:
            raise InvalidInput("This quiz has already been submitted.")
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(self.quiz):
            raise InvalidInput("Question index is out of range.")
        if option not in self.quiz[index].options:
            raise InvalidInput("Please pick one of the listed options.")

    def answer(self, index: Any, option: Any) -> None:
        with self.lock:
            self._check_answer(index, option)
            self.user_answers[index] = option

    def answer_many(self, answers: Mapping[Any, Any]) -> None:
        """Record several answers at once; nothing is recorded if any is invalid."""
        parsed: Dict[int, str] = {}
        for key, option in answers.items():
            try:
                parsed[int(key)] = option
            except (TypeError, ValueError):
                raise InvalidInput("Answer keys must be question indexes.")
        with self.lock:
            for index, option in parsed.items():
                self._check_answer(index, option)
            self.user_answers.update(parsed)

    def submit_quiz(self, now: Optional[float] = None) -> QuizResult:
        with self.lock:
            if not self.quiz:
                raise InvalidInput("There is no quiz to submit.")
            if self.quiz_result is not None:
                return self.quiz_result
            result = score_quiz(self.quiz, self.user_answers)
            if self.quiz_started_at is not None:
                end = time.time() if now is None else now
                result.duration_seconds = round(end - self.quiz_started_at)
            self.quiz_result = result
            return result

    @property
    def review_topics(self) -> List[str]:
        return list(self.quiz_result.review_topics) if self.quiz_result else []

    # ============ Flashcards ============

    def clear_flashcards(self) -> None:
        with self.lock:
            self.flashcards = None
            self.current_card_index = 0
            self.card_flipped = False

    def navigate(self, direction: str) -> int:
        with self.lock:
            n = len(self.flashcards or []) or 1
            if direction == "next":
                self.current_card_index = (self.current_card_index + 1) % n
            elif direction == "prev":
                self.current_card_index = (self.current_card_index - 1 + n) % n
            else:
                raise InvalidInput("direction must be 'prev' or 'next'")
            self.card_flipped = False
            return self.current_card_index

    def flip(self) -> bool:
        with self.lock:
            self.card_flipped = not self.card_flipped
            return self.card_flipped

    # ============ Chat ============

    def add_message(self, role: Role, content: str, generation: Optional[int] = None) -> List[QnaMessage]:
        """Append a message and return the history as it was before it."""
        with self.lock:
            self.check_generation(generation)
            before = list(self.qna_messages)
            self.qna_messages.append(QnaMessage(role=role, content=content))
            return before

    def to_dict(self) -> Dict[str, Any]:
        with self.lock:
            result = self.quiz_result
            return {
                "file_name": self.file_name,
                "page_count": self.page_count,
                "has_document": bool(self.pdf_text),
                "text_length": len(self.pdf_text or ""),
                "summary": self.summary,
                "quiz": [q.to_dict() for q in self.quiz] if self.quiz is not None else None,
                "num_questions": self.num_questions,
                "user_answers": {str(k): v for k, v in self.user_answers.items()},
                "quiz_score": result.score if result else None,
                "quiz_duration": result.duration_seconds if result else None,
                "review_topics": self.review_topics,
                "qna_messages": [m.to_dict() for m in self.qna_messages],
                "flashcards": [c.to_dict() for c in self.flashcards] if self.flashcards is not None else None,
                "current_card_index": self.current_card_index,
                "card_flipped": self.card_flipped,
                "smart_notes": self.smart_notes,
                "note_length": self.note_length.value,
                "video_suggestions": (
                    [v.to_dict() for v in self.video_suggestions] if self.video_suggestions is not None else None
                ),
                "active_dialog": self.active_dialog.value if self.active_dialog else None,
                "loading": sorted(self.loading),
            }


class SessionStore:
    """Process-local registry of study sessions, keyed by session id."""

    def __init__(self, idle_seconds: int = 7200):
        self.idle_seconds = idle_seconds
        self._sessions: Dict[str, StudySession] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def get(self, session_id: str) -> Optional[StudySession]:
        with self._lock:
            return self._sessions.get(session_id)

    def get_or_create(self, session_id: str) -> StudySession:
        self.sweep()
        with self._lock:
            sess = self._sessions.get(session_id)
            if sess is None:
                sess = StudySession(session_id)
                self._sessions[session_id] = sess
        sess.touch()
        return sess

    def sweep(self, now: Optional[float] = None) -> int:
        """Drop idle sessions that have no call in flight. Returns how many."""
        now = time.monotonic() if now is None else now
        with self._lock:
            stale = [
                sid for sid, sess in self._sessions.items()
                if now - sess.touched_at > self.idle_seconds and not sess.loading
            ]
            for sid in stale:
                del self._sessions[sid]
        return len(stale)
