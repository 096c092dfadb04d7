"""
API Endpoint Tests
"""
import json

from conftest import SAMPLE_PDF, SAMPLE_TEXT, upload
from notewise import flows

QUIZ_REPLY = {
    "quiz": [
        {
            "question": "What does photosynthesis produce?",
            "options": ["Sugar", "Salt", "Iron", "Sand"],
            "answer": "Sugar",
            "topic": "Calvin cycle",
        },
        {
            "question": "Which pigment absorbs light?",
            "options": ["Keratin", "Chlorophyll", "Melanin", "Heme"],
            "answer": "Chlorophyll",
            "topic": "Pigments",
        },
        {
            "question": "Which colours does chlorophyll absorb most?",
            "options": ["Green", "Blue and red", "Yellow", "Infrared"],
            "answer": "Blue and red",
            "topic": "Pigments",
        },
    ]
}

FLASHCARD_REPLY = {
    "flashcards": [
        {"front": "Photosynthesis", "back": "Light energy to chemical energy"},
        {"front": "Chlorophyll", "back": "Pigment absorbing blue and red light"},
        {"front": "Calvin cycle", "back": "Fixes CO2 into sugars"},
    ]
}


def post_json(client, url, payload=None):
    return client.post(url, data=json.dumps(payload or {}), content_type='application/json')


class TestHealthEndpoints:
    """Test health check endpoints"""

    def test_healthz(self, client):
        """Health check should return ok"""
        response = client.get('/healthz')
        assert response.status_code == 200

        data = json.loads(response.data)
        assert data['status'] == 'ok'
        assert data['openai_ready'] is True
        assert 'version' in data
        assert 'timestamp' in data

    def test_healthz_degraded_without_key(self, app, client):
        """Missing API key should report a degraded service"""
        app.config['OPENAI_API_KEY'] = ''
        data = json.loads(client.get('/healthz').data)
        assert data['status'] == 'degraded'
        assert 'OPENAI_API_KEY' in data['openai_message']

    def test_version(self, client):
        """Version endpoint should return build info"""
        response = client.get('/version')
        assert response.status_code == 200

        data = json.loads(response.data)
        assert 'version' in data
        assert data['features']['quiz'] is True


class TestIndexPage:
    """Test the study page"""

    def test_index_renders(self, client):
        response = client.get('/')
        assert response.status_code == 200
        assert b'NoteWise AI' in response.data
        assert b'csrf-token' in response.data
        assert b"data-action=\"copy-notes\"" in response.data

    def test_session_state_starts_empty(self, client):
        data = json.loads(client.get('/api/session').data)
        assert data['ok'] is True
        assert data['state']['has_document'] is False
        assert data['state']['num_questions'] == 5
        assert data['state']['note_length'] == 'short'


class TestUpload:
    """Test PDF upload and text extraction"""

    def test_upload_requires_file(self, client):
        response = client.post('/api/upload')
        assert response.status_code == 400
        data = json.loads(response.data)
        assert data['ok'] is False
        assert data['kind'] == 'invalid'

    def test_upload_rejects_non_pdf(self, client, fake_llm):
        response = upload(client, data=b'hello', filename='notes.txt', content_type='text/plain')
        assert response.status_code == 400
        data = json.loads(response.data)
        assert data['notification']['title'] == 'Invalid File Type'
        assert fake_llm.calls == []

    def test_upload_rejects_large_file(self, app, client, fake_llm):
        app.config['MAX_UPLOAD_BYTES'] = 32
        response = upload(client, data=SAMPLE_PDF + b'0' * 64)
        assert response.status_code == 400
        data = json.loads(response.data)
        assert data['notification']['title'] == 'File Too Large'

    def test_upload_extracts_text(self, client, fake_llm):
        fake_llm.queue({"pdfText": SAMPLE_TEXT})
        response = upload(client)
        assert response.status_code == 200

        data = json.loads(response.data)
        assert data['ok'] is True
        assert data['file_name'] == 'notes.pdf'
        assert data['text_length'] == len(SAMPLE_TEXT)

        # The PDF travels to the provider as a data URI
        content = fake_llm.calls[0]['messages'][-1]['content']
        assert content[0]['file']['file_data'].startswith('data:application/pdf;base64,')

        state = json.loads(client.get('/api/session').data)['state']
        assert state['has_document'] is True
        assert state['file_name'] == 'notes.pdf'

    def test_upload_overloaded_resets_session(self, client, fake_llm):
        fake_llm.queue(Exception("Error code: 503 - The model is overloaded"))
        response = upload(client)
        assert response.status_code == 503

        data = json.loads(response.data)
        assert data['kind'] == 'overloaded'
        assert data['notification']['title'] == 'AI is Busy'

        state = json.loads(client.get('/api/session').data)['state']
        assert state['has_document'] is False

    def test_upload_generic_failure(self, client, fake_llm):
        fake_llm.queue(Exception("connection reset"))
        response = upload(client)
        assert response.status_code == 502
        data = json.loads(response.data)
        assert data['kind'] == 'error'
        assert data['notification']['description'] == 'Failed to process PDF. Please try a different file.'

    def test_new_upload_clears_previous_artifacts(self, loaded_client, fake_llm):
        fake_llm.queue({"summary": "Plants make sugar."})
        post_json(loaded_client, '/api/summary')

        fake_llm.queue({"pdfText": "Another document about rocks."})
        assert upload(loaded_client, filename='rocks.pdf').status_code == 200

        state = json.loads(loaded_client.get('/api/session').data)['state']
        assert state['file_name'] == 'rocks.pdf'
        assert state['summary'] is None


class TestSummary:
    """Test summary generation"""

    def test_summary_is_generated_once(self, loaded_client, fake_llm):
        fake_llm.queue({"summary": "Plants turn light into sugar."})
        first = json.loads(post_json(loaded_client, '/api/summary').data)
        assert first['summary'] == 'Plants turn light into sugar.'

        calls = len(fake_llm.calls)
        second = json.loads(post_json(loaded_client, '/api/summary').data)
        assert second['summary'] == first['summary']
        assert len(fake_llm.calls) == calls

        state = json.loads(loaded_client.get('/api/session').data)['state']
        assert state['active_dialog'] == 'summary'

    def test_summary_without_document_skips_llm(self, client, fake_llm):
        data = json.loads(post_json(client, '/api/summary').data)
        assert data['ok'] is True
        assert data['summary'] is None
        assert fake_llm.calls == []

    def test_reset_during_call_discards_summary(self, loaded_client, study_session, monkeypatch):
        """A summary that arrives after a reset is not stored"""
        def summarize(text):
            study_session.reset()
            return "Summary of the old document", ""

        monkeypatch.setattr(flows, "pdf_upload_and_summarize", summarize)
        response = post_json(loaded_client, "/api/summary")
        assert response.status_code == 409
        assert json.loads(response.data)["kind"] == "stale"
        assert study_session.summary is None

    def test_summary_failure_message(self, loaded_client, fake_llm):
        fake_llm.queue(Exception("boom"))
        response = post_json(loaded_client, '/api/summary')
        assert response.status_code == 502
        data = json.loads(response.data)
        assert data['notification']['description'] == 'Failed to generate summary.'


class TestQuiz:
    """Test quiz generation, answering and scoring"""

    def test_quiz_requires_document(self, client):
        response = post_json(client, '/api/quiz', {'numberOfQuestions': 3})
        assert response.status_code == 400
        assert json.loads(response.data)['notification']['title'] == 'No document loaded'

    def test_quiz_question_count_bounds(self, loaded_client, fake_llm):
        for bad in (0, 21, 'ten', True, '\u00b2'):
            response = post_json(loaded_client, '/api/quiz', {'numberOfQuestions': bad})
            assert response.status_code == 400
            data = json.loads(response.data)
            assert data['notification']['title'] == 'Invalid Input'
        assert len(fake_llm.calls) == 1  # only the upload

    def test_quiz_flow_scores_answers(self, loaded_client, fake_llm):
        fake_llm.queue(QUIZ_REPLY)
        response = post_json(loaded_client, '/api/quiz', {'numberOfQuestions': 3})
        assert response.status_code == 200
        assert len(json.loads(response.data)['quiz']) == 3
        assert '3 questions' in fake_llm.last_prompt()

        assert post_json(loaded_client, '/api/quiz/answer', {'index': 0, 'option': 'Sugar'}).status_code == 200
        assert post_json(loaded_client, '/api/quiz/answer', {'index': 1, 'option': 'Melanin'}).status_code == 200

        response = post_json(loaded_client, '/api/quiz/submit')
        data = json.loads(response.data)
        assert data['score'] == 1
        assert data['total'] == 3
        # question 2 wrong and question 3 unanswered share a topic
        assert data['review_topics'] == ['Pigments']
        assert data['duration_seconds'] >= 0
        assert data['notification']['description'] == 'You scored 1 out of 3.'

    def test_submit_accepts_answer_map(self, loaded_client, fake_llm):
        fake_llm.queue(QUIZ_REPLY)
        post_json(loaded_client, '/api/quiz', {'numberOfQuestions': 3})
        data = json.loads(post_json(loaded_client, '/api/quiz/submit', {
            'answers': {'0': 'Sugar', '1': 'Chlorophyll', '2': 'Blue and red'},
        }).data)
        assert data['score'] == 3
        assert data['review_topics'] == []

    def test_answer_rejects_unknown_option(self, loaded_client, fake_llm):
        fake_llm.queue(QUIZ_REPLY)
        post_json(loaded_client, '/api/quiz', {'numberOfQuestions': 3})
        response = post_json(loaded_client, '/api/quiz/answer', {'index': 0, 'option': 'Gold'})
        assert response.status_code == 400
        response = post_json(loaded_client, '/api/quiz/answer', {'index': 9, 'option': 'Sugar'})
        assert response.status_code == 400

    def test_rejected_answer_batch_records_nothing(self, loaded_client, fake_llm):
        fake_llm.queue(QUIZ_REPLY)
        post_json(loaded_client, "/api/quiz", {"numberOfQuestions": 3})
        response = post_json(loaded_client, "/api/quiz/submit", {"answers": {"0": "Sugar", "1": "Gold"}})
        assert response.status_code == 400

        state = json.loads(loaded_client.get("/api/session").data)["state"]
        assert state["user_answers"] == {}
        assert state["quiz_score"] is None

    def test_answer_after_submit_rejected(self, loaded_client, fake_llm):
        fake_llm.queue(QUIZ_REPLY)
        post_json(loaded_client, '/api/quiz', {'numberOfQuestions': 3})
        post_json(loaded_client, '/api/quiz/submit')
        response = post_json(loaded_client, '/api/quiz/answer', {'index': 0, 'option': 'Sugar'})
        assert response.status_code == 400

    def test_regenerating_clears_previous_result(self, loaded_client, fake_llm):
        fake_llm.queue(QUIZ_REPLY, QUIZ_REPLY)
        post_json(loaded_client, '/api/quiz', {'numberOfQuestions': 3})
        post_json(loaded_client, '/api/quiz/submit')
        post_json(loaded_client, '/api/quiz', {'numberOfQuestions': 3})

        state = json.loads(loaded_client.get('/api/session').data)['state']
        assert state['quiz_score'] is None
        assert state['review_topics'] == []
        assert state['user_answers'] == {}

    def test_busy_feature_rejected(self, loaded_client, study_session, fake_llm):
        study_session.loading.add('quiz')
        response = post_json(loaded_client, '/api/quiz', {'numberOfQuestions': 3})
        assert response.status_code == 409
        assert json.loads(response.data)['feature'] == 'quiz'


class TestFlashcards:
    """Test flashcard generation and navigation"""

    def test_generate_and_navigate(self, loaded_client, fake_llm):
        fake_llm.queue(FLASHCARD_REPLY)
        data = json.loads(post_json(loaded_client, '/api/flashcards').data)
        assert len(data['flashcards']) == 3
        assert data['current_card_index'] == 0

        flipped = json.loads(post_json(loaded_client, '/api/flashcards/flip').data)
        assert flipped['card_flipped'] is True

        nav = json.loads(post_json(loaded_client, '/api/flashcards/nav', {'direction': 'prev'}).data)
        assert nav['current_card_index'] == 2
        assert nav['card_flipped'] is False

        nav = json.loads(post_json(loaded_client, '/api/flashcards/nav', {'direction': 'next'}).data)
        assert nav['current_card_index'] == 0

    def test_bad_direction(self, loaded_client):
        response = post_json(loaded_client, '/api/flashcards/nav', {'direction': 'up'})
        assert response.status_code == 400

    def test_empty_flashcards_is_failure(self, loaded_client, fake_llm):
        fake_llm.queue({"flashcards": [{"front": "only a front"}]})
        response = post_json(loaded_client, '/api/flashcards')
        assert response.status_code == 502
        data = json.loads(response.data)
        assert data['notification']['description'] == 'Could not generate flashcards. Please try again.'


class TestSmartNotes:
    """Test note generation and download"""

    def test_generate_long_notes(self, loaded_client, fake_llm):
        fake_llm.queue({"notes": "# Photosynthesis\n- **Chlorophyll** absorbs light"})
        data = json.loads(post_json(loaded_client, '/api/notes', {'noteLength': 'long'}).data)
        assert data['note_length'] == 'long'
        assert data['notes'].startswith('# Photosynthesis')
        assert 'comprehensive' in fake_llm.last_prompt()

    def test_invalid_note_length(self, loaded_client):
        response = post_json(loaded_client, '/api/notes', {'noteLength': 'medium'})
        assert response.status_code == 400

    def test_download_requires_notes(self, loaded_client):
        response = loaded_client.get('/api/notes/download')
        assert response.status_code == 400

    def test_download_markdown(self, loaded_client, fake_llm):
        fake_llm.queue({"notes": "# Heading\n- point"})
        post_json(loaded_client, '/api/notes', {'noteLength': 'short'})
        response = loaded_client.get('/api/notes/download?format=md')
        assert response.status_code == 200
        assert response.mimetype == 'text/markdown'
        assert 'smart-notes-short.md' in response.headers['Content-Disposition']
        assert response.data == b'# Heading\n- point'

    def test_download_pdf_with_overlapping_emphasis(self, loaded_client, fake_llm):
        fake_llm.queue({"notes": "# Notes\n- **bold *and** italic* text"})
        post_json(loaded_client, "/api/notes", {"noteLength": "short"})
        response = loaded_client.get("/api/notes/download?format=pdf")
        assert response.status_code == 200
        assert response.data.startswith(b"%PDF")

    def test_download_pdf(self, loaded_client, fake_llm):
        fake_llm.queue({"notes": "# Heading\n\nSome **bold** text.\n- point one\n- point two"})
        post_json(loaded_client, '/api/notes', {'noteLength': 'short'})
        response = loaded_client.get('/api/notes/download?format=pdf')
        assert response.status_code == 200
        assert response.mimetype == 'application/pdf'
        assert response.data.startswith(b'%PDF')


class TestChat:
    """Test the document chat"""

    def test_chat_keeps_history(self, loaded_client, fake_llm):
        fake_llm.queue({"aiResponse": "It converts light to chemical energy."})
        data = json.loads(post_json(loaded_client, '/api/chat', {'userInput': 'What is photosynthesis?'}).data)
        assert data['ok'] is True
        assert [m['role'] for m in data['messages']] == ['user', 'ai']

        fake_llm.queue({"aiResponse": "Chlorophyll."})
        data = json.loads(post_json(loaded_client, '/api/chat', {'userInput': 'Which pigment?'}).data)
        assert len(data['messages']) == 4
        prompt = fake_llm.last_prompt()
        assert 'User: What is photosynthesis?' in prompt
        assert 'AI: It converts light to chemical energy.' in prompt
        # the question being asked is not repeated inside the history
        assert 'User: Which pigment?' not in prompt

    def test_chat_overloaded_apology(self, loaded_client, fake_llm):
        fake_llm.queue(Exception("Error code: 529 - overloaded_error"))
        response = post_json(loaded_client, '/api/chat', {'userInput': 'Hello?'})
        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['ok'] is False
        assert data['kind'] == 'overloaded'
        assert data['messages'][-1] == {
            'role': 'ai',
            'content': 'Sorry, the AI is a bit busy right now. Please try again in a moment.',
        }

    def test_chat_generic_apology(self, loaded_client, fake_llm):
        fake_llm.queue("not json at all")
        data = json.loads(post_json(loaded_client, '/api/chat', {'userInput': 'Hello?'}).data)
        assert data['messages'][-1]['content'] == 'Sorry, I ran into an error. Please try again.'

    def test_chat_requires_input(self, loaded_client):
        response = post_json(loaded_client, '/api/chat', {'userInput': '   '})
        assert response.status_code == 400

    def test_ask_question(self, loaded_client, fake_llm):
        fake_llm.queue({"answer": "The Calvin cycle."})
        data = json.loads(post_json(loaded_client, '/api/ask', {'question': 'What fixes CO2?'}).data)
        assert data['answer'] == 'The Calvin cycle.'


class TestVideosAndSpeech:
    """Test video suggestions and text to speech"""

    def test_video_suggestions(self, loaded_client, fake_llm):
        fake_llm.queue({"videoSuggestions": [
            {"title": "Photosynthesis explained", "url": "https://www.youtube.com/watch?v=abc", "description": "Intro"},
            {"title": "Bad link", "url": "not a url", "description": ""},
        ]})
        data = json.loads(post_json(loaded_client, '/api/videos').data)
        assert [v['title'] for v in data['videoSuggestions']] == ['Photosynthesis explained']

    def test_videos_disabled(self, app, loaded_client):
        app.config['FEATURE_VIDEO_SUGGESTIONS'] = False
        assert post_json(loaded_client, '/api/videos').status_code == 404

    def test_text_to_speech(self, client, fake_llm):
        data = json.loads(post_json(client, '/api/tts', {'text': 'Hello there'}).data)
        assert data['media'].startswith('data:audio/mpeg;base64,')
        assert fake_llm.speech.calls[0]['input'] == 'Hello there'

    def test_text_to_speech_busy_provider(self, client, fake_llm):
        fake_llm.speech.error = Exception("Error code: 503")
        response = post_json(client, '/api/tts', {'text': 'Hello there'})
        assert response.status_code == 503
        data = json.loads(response.data)
        assert data['notification']['description'].startswith('Text-to-speech is currently unavailable')


class TestReset:
    """Test session reset"""

    def test_reset_clears_everything(self, loaded_client, fake_llm):
        fake_llm.queue(FLASHCARD_REPLY)
        post_json(loaded_client, '/api/flashcards')
        post_json(loaded_client, '/api/dialog', {'dialog': 'flashcards'})

        data = json.loads(post_json(loaded_client, '/api/reset').data)
        state = data['state']
        assert state['has_document'] is False
        assert state['flashcards'] is None
        assert state['active_dialog'] is None

    def test_unknown_dialog(self, client):
        assert post_json(client, '/api/dialog', {'dialog': 'settings'}).status_code == 400


class TestFlowContracts:
    """Test the raw flow endpoints"""

    def test_unknown_flow(self, client):
        assert post_json(client, '/flows/translate', {}).status_code == 404

    def test_missing_input(self, client, fake_llm):
        response = post_json(client, '/flows/pdfUploadAndSummarize', {})
        assert response.status_code == 400
        assert fake_llm.calls == []

    def test_quiz_contract_default_count(self, client, fake_llm):
        fake_llm.queue(QUIZ_REPLY)
        response = post_json(client, '/flows/generateMcqQuiz', {'pdfText': SAMPLE_TEXT})
        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['quiz'][0] == QUIZ_REPLY['quiz'][0]
        assert '5 questions' in fake_llm.last_prompt()

    def test_extract_contract_rejects_bad_data_uri(self, client, fake_llm):
        response = post_json(client, '/flows/extractTextFromPdf', {'pdfDataUri': 'https://example.com/a.pdf'})
        assert response.status_code == 400
        assert fake_llm.calls == []

    def test_chat_contract_history(self, client, fake_llm):
        fake_llm.queue({"aiResponse": "You're welcome!"})
        data = json.loads(post_json(client, '/flows/realTimeAIInteraction', {
            'pdfContent': SAMPLE_TEXT,
            'userInput': 'thanks',
            'history': [{'role': 'user', 'content': 'hi'}, {'role': 'ai', 'content': 'hello'}],
        }).data)
        assert data['aiResponse'] == "You're welcome!"

    def test_chat_contract_bad_history(self, client, fake_llm):
        response = post_json(client, '/flows/realTimeAIInteraction', {
            'pdfContent': SAMPLE_TEXT,
            'userInput': 'hi',
            'history': [{'role': 'system', 'content': 'x'}],
        })
        assert response.status_code == 400

    def test_smart_notes_contract(self, client, fake_llm):
        fake_llm.queue({"notes": "## Notes"})
        data = json.loads(post_json(client, '/flows/generateSmartNotes', {'pdfText': SAMPLE_TEXT}).data)
        assert data['notes'] == '## Notes'
        assert 'concise' in fake_llm.last_prompt()
