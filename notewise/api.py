"""
API Blueprint

Study page, per-session study actions under /api, and the raw LLM flows under
/flows/<name> using their JSON contracts.
"""
import io
import uuid
from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, render_template, request, send_file, session

from notewise import flows
from notewise.errors import (
    CHAT_REPLIES,
    InvalidInput,
    classify_error,
    failure_response,
    invalid_response,
    notification,
)
from notewise.models import Dialog, Role
from notewise.services import export_service, pdf_service
from notewise.session import FeatureBusy, SessionStore, StaleResult, StudySession

api_bp = Blueprint("api", __name__)

SESSION_KEY = "study_session_id"


# ============ Helper Functions ============

def session_store() -> SessionStore:
    return current_app.extensions["notewise_sessions"]


def current_study_session() -> StudySession:
    sid = session.get(SESSION_KEY)
    if not sid:
        sid = uuid.uuid4().hex
        session[SESSION_KEY] = sid
    return session_store().get_or_create(sid)


def ok(**data: Any):
    return jsonify({"ok": True, **data}), 200


def feature_enabled(flag: str) -> bool:
    return bool(current_app.config.get(flag, True))


def disabled_response():
    return jsonify({"ok": False, "error": "Feature disabled"}), 404


def log_failure(feature: str, err: str) -> None:
    current_app.logger.warning("%s failed (%s): %s", feature, classify_error(err), err)


@api_bp.errorhandler(InvalidInput)
def handle_invalid_input(exc: InvalidInput):
    return invalid_response(exc)


@api_bp.errorhandler(FeatureBusy)
def handle_feature_busy(exc: FeatureBusy):
    return jsonify({
        "ok": False,
        "error": str(exc),
        "kind": "busy",
        "feature": exc.feature,
    }), 409


@api_bp.errorhandler(StaleResult)
def handle_stale_result(exc: StaleResult):
    return jsonify({"ok": False, "error": "The session was reset. Please try again.", "kind": "stale"}), 409


# ============ Page ============

@api_bp.route("/", methods=["GET"])
def index():
    sess = current_study_session()
    return render_template(
        "index.html",
        state=sess.to_dict(),
        app_version=current_app.config.get("APP_VERSION", ""),
        quiz_min=current_app.config.get("QUIZ_MIN_QUESTIONS", 1),
        quiz_max=current_app.config.get("QUIZ_MAX_QUESTIONS", 20),
        max_upload_mb=current_app.config.get("MAX_UPLOAD_BYTES", 0) // (1024 * 1024),
        features={
            "videos": feature_enabled("FEATURE_VIDEO_SUGGESTIONS"),
            "tts": feature_enabled("FEATURE_TTS"),
        },
    )


# ============ Study Session ============

@api_bp.route("/api/session", methods=["GET"])
def session_state():
    return ok(state=current_study_session().to_dict())


@api_bp.route("/api/reset", methods=["POST"])
def reset():
    sess = current_study_session()
    sess.reset()
    return ok(state=sess.to_dict())


@api_bp.route("/api/dialog", methods=["POST"])
def open_dialog():
    payload = request.get_json(silent=True) or {}
    name = payload.get("dialog")
    try:
        dialog = Dialog(name) if name else None
    except ValueError:
        raise InvalidInput("Unknown dialog")
    sess = current_study_session()
    sess.open_dialog(dialog)
    return ok(active_dialog=name or None)


@api_bp.route("/api/upload", methods=["POST"])
def upload():
    file = request.files.get("file") or request.files.get("pdf")
    if not file:
        raise InvalidInput("No file uploaded", title="Invalid File Type")

    filename = getattr(file, "filename", "") or "document.pdf"
    data = file.read()
    pdf_service.check_pdf_upload(filename, file.mimetype, data, current_app.config["MAX_UPLOAD_BYTES"])

    sess = current_study_session()
    with sess.call("upload"):
        sess.reset()
        generation = sess.generation
        text, err = flows.extract_text_from_pdf(pdf_service.to_data_uri(data))
        if err:
            log_failure("upload", err)
            sess.reset()
            return failure_response("upload", err)
        pages = pdf_service.count_pages(data)
        sess.set_document(filename, text, pages, generation=generation)

    current_app.logger.info("Loaded %s: %d pages, %d chars", filename, pages, len(text))
    return ok(file_name=filename, page_count=pages, text_length=len(text))


@api_bp.route("/api/summary", methods=["POST"])
def summary():
    sess = current_study_session()
    sess.open_dialog(Dialog.SUMMARY)
    if sess.summary or not sess.pdf_text:
        return ok(summary=sess.summary)

    with sess.call("summary") as generation:
        result, err = flows.pdf_upload_and_summarize(sess.pdf_text)
        if err:
            log_failure("summary", err)
            return failure_response("summary", err)
        sess.apply(generation, summary=result)
    return ok(summary=result)


@api_bp.route("/api/quiz", methods=["POST"])
def generate_quiz():
    payload = request.get_json(silent=True) or {}
    sess = current_study_session()
    pdf_text = sess.require_document()
    count = flows.parse_question_count(payload.get("numberOfQuestions"))

    with sess.call("quiz") as generation:
        sess.clear_quiz(count)
        quiz, err = flows.generate_mcq_quiz(pdf_text, count)
        if err:
            log_failure("quiz", err)
            return failure_response("quiz", err)
        sess.start_quiz(quiz, generation=generation)
    return ok(quiz=[q.to_dict() for q in quiz])


@api_bp.route("/api/quiz/answer", methods=["POST"])
def answer_question():
    payload = request.get_json(silent=True) or {}
    sess = current_study_session()
    sess.answer(payload.get("index"), payload.get("option"))
    return ok(user_answers={str(k): v for k, v in sess.user_answers.items()})


@api_bp.route("/api/quiz/submit", methods=["POST"])
def submit_quiz():
    payload = request.get_json(silent=True) or {}
    sess = current_study_session()
    answers = payload.get("answers")
    if answers:
        if not isinstance(answers, dict):
            raise InvalidInput("answers must map question indexes to options")
        if sess.quiz_result is None:
            sess.answer_many(answers)

    result = sess.submit_quiz()
    return ok(
        **result.to_dict(),
        notification=notification(
            "Quiz Submitted!",
            f"You scored {result.score} out of {result.total}.",
            variant="default",
        ),
    )


@api_bp.route("/api/flashcards", methods=["POST"])
def generate_flashcards():
    sess = current_study_session()
    pdf_text = sess.require_document()

    with sess.call("flashcards") as generation:
        sess.clear_flashcards()
        cards, err = flows.generate_flashcards(pdf_text)
        if err:
            log_failure("flashcards", err)
            return failure_response("flashcards", err)
        sess.apply(generation, flashcards=cards, current_card_index=0, card_flipped=False)
    return ok(flashcards=[c.to_dict() for c in cards], current_card_index=0, card_flipped=False)


@api_bp.route("/api/flashcards/nav", methods=["POST"])
def navigate_flashcards():
    payload = request.get_json(silent=True) or {}
    sess = current_study_session()
    index = sess.navigate((payload.get("direction") or "").strip().lower())
    return ok(current_card_index=index, card_flipped=sess.card_flipped)


@api_bp.route("/api/flashcards/flip", methods=["POST"])
def flip_flashcard():
    sess = current_study_session()
    return ok(card_flipped=sess.flip(), current_card_index=sess.current_card_index)


@api_bp.route("/api/notes", methods=["POST"])
def generate_notes():
    payload = request.get_json(silent=True) or {}
    sess = current_study_session()
    pdf_text = sess.require_document()
    length = flows.parse_note_length(payload.get("noteLength"))

    with sess.call("smart-notes") as generation:
        sess.apply(generation, note_length=length, smart_notes=None)
        notes, err = flows.generate_smart_notes(pdf_text, length)
        if err:
            log_failure("smart-notes", err)
            return failure_response("smart-notes", err)
        sess.apply(generation, smart_notes=notes)
    return ok(notes=notes, note_length=length.value)


@api_bp.route("/api/notes/download", methods=["GET"])
def download_notes():
    sess = current_study_session()
    if not sess.smart_notes:
        raise InvalidInput("Generate notes before downloading them.", title="No notes")

    fmt = (request.args.get("format") or "md").strip().lower()
    length = sess.note_length.value
    if fmt == "md":
        body = sess.smart_notes.encode("utf-8")
        return send_file(
            io.BytesIO(body),
            as_attachment=True,
            download_name=export_service.notes_filename(length),
            mimetype="text/markdown; charset=utf-8",
        )
    if fmt == "pdf":
        title = f"Smart Notes - {sess.file_name}" if sess.file_name else "Smart Notes"
        try:
            pdf_bytes = export_service.markdown_to_pdf(sess.smart_notes, title=title)
        except Exception as e:
            current_app.logger.exception("Notes PDF export failed")
            return jsonify({"ok": False, "error": f"PDF export failed: {type(e).__name__}: {e}"}), 500
        return send_file(
            io.BytesIO(pdf_bytes),
            as_attachment=True,
            download_name=export_service.notes_filename(length, "pdf"),
            mimetype="application/pdf",
        )
    raise InvalidInput("format must be 'md' or 'pdf'")


@api_bp.route("/api/chat", methods=["POST"])
def chat():
    payload = request.get_json(silent=True) or {}
    user_input = (payload.get("userInput") or payload.get("question") or "").strip()
    sess = current_study_session()
    pdf_text = sess.require_document()
    if not user_input:
        raise InvalidInput("Please type a question.")

    with sess.call("qna") as generation:
        history = sess.add_message(Role.USER, user_input, generation=generation)
        reply, err = flows.real_time_ai_interaction(pdf_text, user_input, history)
        if err:
            log_failure("qna", err)
            reply = CHAT_REPLIES[classify_error(err)]
        sess.add_message(Role.AI, reply, generation=generation)

    body: Dict[str, Any] = {
        "ok": not err,
        "aiResponse": reply,
        "messages": [m.to_dict() for m in sess.qna_messages],
    }
    if err:
        body.update(error=err, kind=classify_error(err))
    return jsonify(body), 200


@api_bp.route("/api/ask", methods=["POST"])
def ask():
    payload = request.get_json(silent=True) or {}
    sess = current_study_session()
    pdf_text = sess.require_document()

    with sess.call("ask"):
        answer, err = flows.ask_question(pdf_text, payload.get("question"))
    if err:
        log_failure("qna", err)
        return failure_response("qna", err)
    return ok(answer=answer)


@api_bp.route("/api/videos", methods=["POST"])
def videos():
    if not feature_enabled("FEATURE_VIDEO_SUGGESTIONS"):
        return disabled_response()
    sess = current_study_session()
    pdf_text = sess.require_document()
    sess.open_dialog(Dialog.VIDEOS)
    if sess.video_suggestions:
        return ok(videoSuggestions=[v.to_dict() for v in sess.video_suggestions])

    with sess.call("videos") as generation:
        suggestions, err = flows.topic_related_video_suggestions(pdf_text)
        if err:
            log_failure("videos", err)
            return failure_response("videos", err)
        sess.apply(generation, video_suggestions=suggestions)
    return ok(videoSuggestions=[v.to_dict() for v in suggestions])


@api_bp.route("/api/tts", methods=["POST"])
def tts():
    if not feature_enabled("FEATURE_TTS"):
        return disabled_response()
    payload = request.get_json(silent=True) or {}
    sess = current_study_session()

    with sess.call("tts"):
        media, err = flows.text_to_speech(payload.get("text"))
    if err:
        log_failure("tts", err)
        return failure_response("tts", err)
    return ok(media=media)


# ============ Flow Contracts ============

@api_bp.route("/flows/<name>", methods=["POST"])
def run_flow(name: str):
    if name not in flows.FLOWS:
        return jsonify({"ok": False, "error": f"Unknown flow: {name}"}), 404
    if name == "topicRelatedVideoSuggestions" and not feature_enabled("FEATURE_VIDEO_SUGGESTIONS"):
        return disabled_response()
    if name == "textToSpeech" and not feature_enabled("FEATURE_TTS"):
        return disabled_response()

    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise InvalidInput("Request body must be a JSON object")

    feature, _ = flows.FLOWS[name]
    output, err = flows.run_flow(name, payload)
    if err:
        log_failure(feature, err)
        return failure_response(feature, err)
    return ok(**output)
