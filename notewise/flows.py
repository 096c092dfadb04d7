"""
LLM flows

Each flow validates its input, fills a prompt template, calls the provider and
repairs the structured reply into typed records. Flow functions return
``(result, error)``; bad input raises ``InvalidInput`` before any call is made.

``run_flow`` exposes the same flows through their JSON contracts (camelCase
field names such as ``pdfText`` and ``numberOfQuestions``).
"""
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from flask import current_app

from notewise import prompts
from notewise.errors import InvalidInput
from notewise.models import Flashcard, NoteLength, QnaMessage, QuizItem, VideoSuggestion
from notewise.services import pdf_service
from notewise.services.openai_service import llm_json, synthesize_speech


def _limit() -> int:
    return int(current_app.config.get("PROMPT_TEXT_LIMIT", 120000))


def _require_text(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput(f"{field} is required")
    return value


def _output_text(obj: Dict[str, Any], field: str) -> Tuple[str, str]:
    value = obj.get(field)
    if not isinstance(value, str) or not value.strip():
        return "", "Empty output"
    return value.strip(), ""


def parse_question_count(value: Any) -> int:
    lo = current_app.config.get("QUIZ_MIN_QUESTIONS", 1)
    hi = current_app.config.get("QUIZ_MAX_QUESTIONS", 20)
    if value is None or value == "":
        return current_app.config.get("QUIZ_DEFAULT_QUESTIONS", 5)
    if isinstance(value, bool):
        count = None
    elif isinstance(value, int):
        count = value
    elif isinstance(value, float) and value.is_integer():
        count = int(value)
    elif isinstance(value, str) and value.strip().isdecimal():
        try:
            count = int(value.strip())
        except ValueError:
            count = None
    else:
        count = None
    if count is None or count < lo or count > hi:
        raise InvalidInput(f"Please enter a number of questions between {lo} and {hi}.")
    return count


def parse_note_length(value: Any) -> NoteLength:
    if value is None or value == "":
        return NoteLength.SHORT
    try:
        return NoteLength(str(value).strip().lower())
    except ValueError:
        raise InvalidInput("noteLength must be 'short' or 'long'")


def parse_history(value: Any) -> List[QnaMessage]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise InvalidInput("history must be a list")
    try:
        return [QnaMessage.from_dict(item) for item in value]
    except ValueError as e:
        raise InvalidInput(str(e))


# ============ Flows ============

def extract_text_from_pdf(pdf_data_uri: str) -> Tuple[str, str]:
    try:
        mime, payload = pdf_service.parse_data_uri(pdf_data_uri)
    except ValueError as e:
        raise InvalidInput(f"pdfDataUri is invalid: {e}")

    if current_app.config.get("PDF_TEXT_LAYER_FIRST") and mime == pdf_service.PDF_MIME:
        text, pages = pdf_service.try_extract_pdf_text(payload)
        if pdf_service.text_is_meaningful(text):
            current_app.logger.debug("Using PDF text layer (%d pages)", pages)
            return text, ""

    obj, err = llm_json(prompts.extract_text_prompt(), temperature=0.0, files=[("document.pdf", pdf_data_uri)])
    if err or not obj:
        return "", err or "Extraction failed"
    return _output_text(obj, "pdfText")


def pdf_upload_and_summarize(pdf_text: str) -> Tuple[str, str]:
    _require_text(pdf_text, "pdfText")
    obj, err = llm_json(prompts.summarize_prompt(pdf_text, _limit()))
    if err or not obj:
        return "", err or "Summary failed"
    return _output_text(obj, "summary")


def validate_and_repair_quiz(obj: Dict[str, Any]) -> List[QuizItem]:
    raw = obj.get("quiz") if isinstance(obj, dict) else None
    if not isinstance(raw, list):
        return []
    items = (QuizItem.from_dict(x) for x in raw)
    return [item for item in items if item is not None]


def generate_mcq_quiz(pdf_text: str, number_of_questions: int = 5) -> Tuple[List[QuizItem], str]:
    _require_text(pdf_text, "pdfText")
    obj, err = llm_json(prompts.quiz_prompt(pdf_text, number_of_questions, _limit()), temperature=0.4)
    if err or not obj:
        return [], err or "Quiz generation failed"
    quiz = validate_and_repair_quiz(obj)
    if not quiz:
        return [], "Empty output"
    return quiz, ""


def validate_and_repair_flashcards(obj: Dict[str, Any]) -> List[Flashcard]:
    raw = obj.get("flashcards") if isinstance(obj, dict) else None
    if not isinstance(raw, list):
        return []
    cards = (Flashcard.from_dict(x) for x in raw)
    return [card for card in cards if card is not None]


def generate_flashcards(pdf_text: str) -> Tuple[List[Flashcard], str]:
    _require_text(pdf_text, "pdfText")
    count = current_app.config.get("FLASHCARD_COUNT", 10)
    obj, err = llm_json(prompts.flashcards_prompt(pdf_text, count, _limit()), temperature=0.4)
    if err or not obj:
        return [], err or "Flashcard generation failed"
    cards = validate_and_repair_flashcards(obj)
    if not cards:
        return [], "Empty output"
    return cards, ""


def generate_smart_notes(pdf_text: str, note_length: NoteLength = NoteLength.SHORT) -> Tuple[str, str]:
    _require_text(pdf_text, "pdfText")
    obj, err = llm_json(prompts.smart_notes_prompt(pdf_text, note_length, _limit()), temperature=0.3)
    if err or not obj:
        return "", err or "Notes generation failed"
    return _output_text(obj, "notes")


def ask_question(pdf_content: str, question: str) -> Tuple[str, str]:
    _require_text(pdf_content, "pdfContent")
    _require_text(question, "question")
    obj, err = llm_json(prompts.ask_question_prompt(pdf_content, question.strip(), _limit()))
    if err or not obj:
        return "", err or "Question failed"
    return _output_text(obj, "answer")


def real_time_ai_interaction(
    pdf_content: str,
    user_input: str,
    history: Optional[List[QnaMessage]] = None,
) -> Tuple[str, str]:
    _require_text(pdf_content, "pdfContent")
    _require_text(user_input, "userInput")
    prompt = prompts.chat_prompt(pdf_content, user_input.strip(), history or [], _limit())
    obj, err = llm_json(prompt, temperature=0.5)
    if err or not obj:
        return "", err or "Chat failed"
    return _output_text(obj, "aiResponse")


def validate_and_repair_videos(obj: Dict[str, Any]) -> List[VideoSuggestion]:
    raw = obj.get("videoSuggestions") if isinstance(obj, dict) else None
    if not isinstance(raw, list):
        return []
    videos = (VideoSuggestion.from_dict(x) for x in raw)
    return [v for v in videos if v is not None]


def topic_related_video_suggestions(pdf_content: str) -> Tuple[List[VideoSuggestion], str]:
    _require_text(pdf_content, "pdfContent")
    count = current_app.config.get("VIDEO_SUGGESTION_COUNT", 3)
    obj, err = llm_json(prompts.video_suggestions_prompt(pdf_content, count, _limit()), temperature=0.4)
    if err or not obj:
        return [], err or "Video suggestions failed"
    videos = validate_and_repair_videos(obj)
    if not videos:
        return [], "Empty output"
    return videos, ""


def text_to_speech(text: str) -> Tuple[str, str]:
    _require_text(text, "text")
    return synthesize_speech(text.strip())


# ============ JSON contracts ============

def _extract_contract(payload: Mapping[str, Any]) -> Tuple[Dict[str, Any], str]:
    text, err = extract_text_from_pdf(_require_text(payload.get("pdfDataUri"), "pdfDataUri"))
    return {"pdfText": text}, err


def _summary_contract(payload: Mapping[str, Any]) -> Tuple[Dict[str, Any], str]:
    summary, err = pdf_upload_and_summarize(payload.get("pdfText"))
    return {"summary": summary}, err


def _quiz_contract(payload: Mapping[str, Any]) -> Tuple[Dict[str, Any], str]:
    count = parse_question_count(payload.get("numberOfQuestions"))
    quiz, err = generate_mcq_quiz(payload.get("pdfText"), count)
    return {"quiz": [q.to_dict() for q in quiz]}, err


def _flashcards_contract(payload: Mapping[str, Any]) -> Tuple[Dict[str, Any], str]:
    cards, err = generate_flashcards(payload.get("pdfText"))
    return {"flashcards": [c.to_dict() for c in cards]}, err


def _notes_contract(payload: Mapping[str, Any]) -> Tuple[Dict[str, Any], str]:
    length = parse_note_length(payload.get("noteLength"))
    notes, err = generate_smart_notes(payload.get("pdfText"), length)
    return {"notes": notes}, err


def _ask_contract(payload: Mapping[str, Any]) -> Tuple[Dict[str, Any], str]:
    answer, err = ask_question(payload.get("pdfContent"), payload.get("question"))
    return {"answer": answer}, err


def _chat_contract(payload: Mapping[str, Any]) -> Tuple[Dict[str, Any], str]:
    history = parse_history(payload.get("history"))
    reply, err = real_time_ai_interaction(payload.get("pdfContent"), payload.get("userInput"), history)
    return {"aiResponse": reply}, err


def _videos_contract(payload: Mapping[str, Any]) -> Tuple[Dict[str, Any], str]:
    videos, err = topic_related_video_suggestions(payload.get("pdfContent"))
    return {"videoSuggestions": [v.to_dict() for v in videos]}, err


def _tts_contract(payload: Mapping[str, Any]) -> Tuple[Dict[str, Any], str]:
    media, err = text_to_speech(payload.get("text"))
    return {"media": media}, err


# flow name -> (feature used for notifications, handler)
FLOWS: Dict[str, Tuple[str, Callable[[Mapping[str, Any]], Tuple[Dict[str, Any], str]]]] = {
    "extractTextFromPdf": ("upload", _extract_contract),
    "pdfUploadAndSummarize": ("summary", _summary_contract),
    "generateMcqQuiz": ("quiz", _quiz_contract),
    "generateFlashcards": ("flashcards", _flashcards_contract),
    "generateSmartNotes": ("smart-notes", _notes_contract),
    "askQuestion": ("qna", _ask_contract),
    "realTimeAIInteraction": ("qna", _chat_contract),
    "topicRelatedVideoSuggestions": ("videos", _videos_contract),
    "textToSpeech": ("tts", _tts_contract),
}


def run_flow(name: str, payload: Mapping[str, Any]) -> Tuple[Dict[str, Any], str]:
    """Run a flow by its contract name. Raises KeyError for unknown flows."""
    _, handler = FLOWS[name]
    return handler(payload)
