"""
Test Configuration and Fixtures
"""
import json
from io import BytesIO
from types import SimpleNamespace

import pytest

from notewise import create_app
from notewise.services import openai_service

SAMPLE_PDF = b"%PDF-1.4\n1 0 obj << /Type /Catalog >> endobj\ntrailer << /Root 1 0 R >>\n%%EOF\n"

SAMPLE_TEXT = (
    "Photosynthesis converts light energy into chemical energy. "
    "Chlorophyll absorbs light mostly in the blue and red wavelengths. "
    "The Calvin cycle fixes carbon dioxide into sugars."
)


class FakeChatCompletions:
    """Stands in for ``client.chat.completions``; replays queued replies."""

    def __init__(self):
        self.replies = []
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if not self.replies:
            raise AssertionError("unexpected LLM call")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if not isinstance(reply, str):
            reply = json.dumps(reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=reply))])


class FakeSpeech:
    def __init__(self):
        self.calls = []
        self.error = None

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return SimpleNamespace(content=b"ID3-fake-mp3")


class FakeOpenAI:
    def __init__(self):
        self.completions = FakeChatCompletions()
        self.speech = FakeSpeech()
        self.chat = SimpleNamespace(completions=self.completions)
        self.audio = SimpleNamespace(speech=self.speech)

    def queue(self, *replies):
        self.completions.replies.extend(replies)

    @property
    def calls(self):
        return self.completions.calls

    def last_prompt(self):
        content = self.calls[-1]["messages"][-1]["content"]
        if isinstance(content, list):
            return content[-1]["text"]
        return content


@pytest.fixture(scope='function')
def app():
    """Create application for testing"""
    app = create_app('testing')
    with app.app_context():
        yield app


@pytest.fixture(scope='function')
def client(app):
    """Create test client"""
    return app.test_client()


@pytest.fixture(scope='function')
def fake_llm(monkeypatch):
    """Route every provider call to an in-memory fake"""
    fake = FakeOpenAI()
    monkeypatch.setattr(openai_service, "get_client", lambda: fake)
    return fake


def upload(client, data=SAMPLE_PDF, filename='notes.pdf', content_type='application/pdf'):
    return client.post(
        '/api/upload',
        data={'file': (BytesIO(data), filename, content_type)},
        content_type='multipart/form-data',
    )


@pytest.fixture(scope='function')
def loaded_client(client, fake_llm):
    """Client whose study session already holds an extracted document"""
    fake_llm.queue({"pdfText": SAMPLE_TEXT})
    response = upload(client)
    assert response.status_code == 200
    return client


@pytest.fixture(scope='function')
def study_session(app, loaded_client):
    """The server-side StudySession behind loaded_client"""
    with loaded_client.session_transaction() as s:
        sid = s['study_session_id']
    return app.extensions['notewise_sessions'].get(sid)
