"""
Prompt templates, one per flow.

Every template asks for a single JSON object so replies can go through
``llm_json``.
"""
from typing import List

from notewise.models import NoteLength, QnaMessage, Role


def clamp_text(s: str, limit: int) -> str:
    return (s or "")[:limit]


def extract_text_prompt() -> str:
    return """
Extract all the text from the attached PDF document, in reading order.
Keep headings, lists and paragraph breaks. Do not summarize or rewrite.

Output VALID JSON only:
{
  "pdfText": "string - the full extracted text"
}
""".strip()


def summarize_prompt(pdf_text: str, limit: int) -> str:
    excerpt = clamp_text(pdf_text, limit)
    return f"""
You are an expert summarizer of documents.

You will receive text extracted from a document. Generate a concise summary
of the document, highlighting the main ideas and key points.

Output VALID JSON only:
{{
  "summary": "string - the summary"
}}

Document Text:
{excerpt}
""".strip()


def quiz_prompt(pdf_text: str, number_of_questions: int, limit: int) -> str:
    excerpt = clamp_text(pdf_text, limit)
    return f"""
You are an expert in generating multiple-choice quizzes from text documents.

Given the following text from a PDF document, generate a multiple-choice quiz
with {number_of_questions} questions.

For each question, provide the question, 4 options, the correct answer (copied
exactly from the options) and the specific topic from the text the question
is about. The topic is shown to the user if they get the question wrong, to
help them study.

Output VALID JSON only:
{{
  "quiz": [
    {{
      "question": "string",
      "options": ["string", "string", "string", "string"],
      "answer": "string - one of the options",
      "topic": "string"
    }}
  ]
}}

PDF Text:
{excerpt}
""".strip()


def flashcards_prompt(pdf_text: str, count: int, limit: int) -> str:
    excerpt = clamp_text(pdf_text, limit)
    return f"""
You are an expert in creating educational flashcards from text documents.

Given the following text from a PDF document, generate exactly {count} flashcards.
Each flashcard has a "front" with a question or keyword and a "back" with the
corresponding answer or definition. Keep them clear and concise.

Output VALID JSON only:
{{
  "flashcards": [
    {{"front": "string", "back": "string"}}
  ]
}}

PDF Text:
{excerpt}
""".strip()


_NOTE_STYLES = {
    NoteLength.SHORT: (
        "Generate concise, summary-style notes for quick revision, at the level "
        "of an undergraduate student. Focus on the absolute key points."
    ),
    NoteLength.LONG: (
        "Generate detailed, comprehensive notes suitable for in-depth study, at "
        "the level of a doctoral student. Cover all topics thoroughly."
    ),
}


def smart_notes_prompt(pdf_text: str, note_length: NoteLength, limit: int) -> str:
    excerpt = clamp_text(pdf_text, limit)
    return f"""
You are an expert in creating structured, student-friendly study notes from a
text document.

Organize the notes with Markdown headings and bullet points. Highlight
important terms, formulas and concepts with **bold**.

Note Style:
{_NOTE_STYLES[note_length]}

Output VALID JSON only:
{{
  "notes": "string - the notes in Markdown"
}}

Document Text:
{excerpt}
""".strip()


def ask_question_prompt(pdf_content: str, question: str, limit: int) -> str:
    excerpt = clamp_text(pdf_content, limit)
    return f"""
You are an AI assistant that answers questions based on the content of a PDF
document. Give accurate and concise answers using only the information in the
PDF content.

Output VALID JSON only:
{{
  "answer": "string"
}}

PDF Content:
{excerpt}

Question:
{question}
""".strip()


def format_history(history: List[QnaMessage]) -> str:
    lines = []
    for msg in history:
        speaker = "User" if msg.role is Role.USER else "AI"
        lines.append(f"{speaker}: {msg.content}")
    return "\n".join(lines)


def chat_prompt(pdf_content: str, user_input: str, history: List[QnaMessage], limit: int) -> str:
    excerpt = clamp_text(pdf_content, limit)
    transcript = format_history(history) or "(none)"
    return f"""
You are a helpful AI assistant designed to help students understand PDF
documents. Use the content of the PDF provided to answer the user's questions.

If the user says "thanks" or expresses gratitude, respond warmly, thank them
for using NoteWise and invite feedback on how it could improve.

Output VALID JSON only:
{{
  "aiResponse": "string"
}}

PDF Content:
{excerpt}

Conversation History:
{transcript}

User Question:
{user_input}
""".strip()


def video_suggestions_prompt(pdf_content: str, count: int, limit: int) -> str:
    excerpt = clamp_text(pdf_content, limit)
    return f"""
You are a helpful AI assistant that suggests YouTube videos related to a text
document.

Suggest {count} YouTube videos that would help someone understand the content
below. Use full https URLs.

Output VALID JSON only:
{{
  "videoSuggestions": [
    {{"title": "string", "url": "string", "description": "string"}}
  ]
}}

PDF Content:
{excerpt}
""".strip()
