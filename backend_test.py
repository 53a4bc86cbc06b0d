import pytest
from fastapi.testclient import TestClient

from conftest import FakeLLM
from mindmate.server import app, get_llm, get_store
from mindmate.storage import InMemoryStore


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def client(store, fake_llm):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_llm] = lambda: fake_llm
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def failing_llm():
    llm = FakeLLM(fail=True)
    app.dependency_overrides[get_llm] = lambda: llm
    return llm


class TestCoreAPI:
    def test_root_endpoint(self, client):
        """Test root API endpoint"""
        response = client.get("/api/")
        assert response.status_code == 200
        assert "MindMate" in response.json()["message"]

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestChat:
    def test_chat_message(self, client, fake_llm):
        """Test sending a chat message"""
        response = client.post("/api/chat", json={
            "user_id": "test_user",
            "message": "I'm so stressed about my deadline",
        })
        assert response.status_code == 200
        data = response.json()
        assert data["reply"] == fake_llm.reply
        assert data["mood"] == "stressed"
        assert data["crisis_detected"] is False

        moods = client.get("/api/moods/test_user").json()["moods"]
        assert [(m["mood"], m["source"]) for m in moods] == [("stressed", "chat")]

    def test_neutral_chat_mood_is_recorded(self, client):
        client.post("/api/chat", json={"user_id": "test_user", "message": "What should I cook tonight?"})
        moods = client.get("/api/moods/test_user").json()["moods"]
        assert [(m["mood"], m["source"]) for m in moods] == [("neutral", "chat")]
        assert client.get("/api/mood-patterns/test_user").json()["mood_distribution"]["neutral"] == 1

    def test_crisis_detection(self, client, fake_llm):
        """Test crisis keyword detection short-circuits the companion"""
        response = client.post("/api/chat", json={
            "user_id": "test_user",
            "message": "I want to end my life",
        })
        assert response.status_code == 200
        data = response.json()
        assert data["crisis_detected"] is True
        assert data["mood"] == "crisis"
        assert "988" in data["reply"]
        assert any("741741" in r["phone"] for r in data["resources"])
        assert fake_llm.prompts == []
        assert client.get("/api/moods/test_user").json()["moods"] == []

    def test_empty_message(self, client):
        response = client.post("/api/chat", json={"user_id": "test_user", "message": "   "})
        assert response.status_code == 400

    def test_companion_unavailable(self, client, failing_llm):
        response = client.post("/api/chat", json={"user_id": "test_user", "message": "hi there"})
        assert response.status_code == 502

    def test_chat_with_session_keeps_one_session(self, client):
        first = {"user_id": "test_user", "session_id": "s1", "message": "I feel anxious today"}
        client.post("/api/chat", json=first)
        history = [
            {"role": "user", "content": "I feel anxious today"},
            {"role": "assistant", "content": "I'm here. What's on your mind?"},
        ]
        client.post("/api/chat", json={**first, "message": "My exam is tomorrow", "history": history})

        sessions = client.get("/api/chat/sessions/test_user").json()["sessions"]
        assert len(sessions) == 1
        assert len(sessions[0]["messages"]) == 4

    def test_save_session_twice_updates(self, client):
        payload = {"user_id": "test_user", "session_id": "abc", "messages": [
            {"role": "ai", "content": "Hello! How are you feeling today?"},
            {"role": "user", "content": "pretty calm"},
        ]}
        first = client.post("/api/chat/sessions", json=payload).json()
        payload["messages"].append({"role": "assistant", "content": "Glad to hear it."})
        second = client.post("/api/chat/sessions", json=payload).json()

        assert first["session_id"] == second["session_id"] == "abc"
        assert second["created_at"] == first["created_at"]
        assert second["messages"][0]["role"] == "assistant"
        assert len(client.get("/api/chat/sessions/test_user").json()["sessions"]) == 1

    def test_invalid_role_rejected(self, client):
        payload = {"user_id": "test_user", "messages": [{"role": "system", "content": "x"}]}
        assert client.post("/api/chat/sessions", json=payload).status_code == 422


class TestMoodDetection:
    def test_detect_with_model(self, client):
        response = client.post("/api/detect-mood", json={"text": "a long but okay day"})
        assert response.json() == {"mood": "calm", "source": "ai", "crisis_detected": False, "resources": []}

    def test_detect_falls_back_to_lexicon(self, client, failing_llm):
        response = client.post("/api/detect-mood", json={"text": "I am so happy and excited"})
        data = response.json()
        assert (data["mood"], data["source"]) == ("happy", "lexicon")

    def test_out_of_vocabulary_answer_falls_back(self, client, fake_llm):
        fake_llm.mood_answer = "melancholic"
        data = client.post("/api/detect-mood", json={"text": "my dog passed away"}).json()
        assert (data["mood"], data["source"]) == ("sad", "lexicon")

    def test_detect_crisis(self, client):
        data = client.post("/api/detect-mood", json={"text": "I feel hopeless"}).json()
        assert data["crisis_detected"] is True
        assert data["mood"] == "crisis"
        assert data["source"] == "crisis"

    def test_detect_empty_text(self, client):
        data = client.post("/api/detect-mood", json={"text": ""}).json()
        assert data["mood"] == "neutral"


class TestMoods:
    def test_save_and_list(self, client):
        response = client.post("/api/moods", json={"user_id": "test_user", "mood": "happy", "note": "sunny walk"})
        assert response.status_code == 200
        assert response.json()["crisis"] is None
        moods = client.get("/api/moods/test_user").json()["moods"]
        assert moods[0]["mood"] == "happy"
        assert moods[0]["note"] == "sunny walk"

    def test_invalid_mood_rejected(self, client):
        assert client.post("/api/moods", json={"user_id": "test_user", "mood": "crisis"}).status_code == 422
        assert client.post("/api/moods", json={"user_id": "test_user", "mood": "angry"}).status_code == 422

    def test_note_with_crisis_language(self, client):
        response = client.post("/api/moods", json={"user_id": "test_user", "mood": "sad", "note": "I feel worthless"})
        assert response.json()["crisis"]["crisis_detected"] is True

    def test_patterns_for_new_user(self, client):
        data = client.get("/api/mood-patterns/nobody").json()
        assert data["weekly_average"] == 50
        assert data["trend"] == "stable"
        assert len(data["chart"]) == 7
        assert all(point["score"] is None for point in data["chart"])
        assert data["dominant_mood"] is None

    def test_patterns_after_saving(self, client):
        for _ in range(3):
            client.post("/api/moods", json={"user_id": "test_user", "mood": "happy"})
        data = client.get("/api/mood-patterns/test_user").json()
        assert data["weekly_average"] == 90
        assert data["dominant_mood"] == "happy"
        assert data["chart"][-1]["score"] == 90
        assert data["trend"] == "improving"

    def test_recommendations(self, client):
        data = client.get("/api/mood-recommendations/anxious").json()
        assert data["recommendations"][0]["title"] == "Try Box Breathing"
        assert all("anxious" in a["moods"] for a in data["activities"])
        assert client.get("/api/mood-recommendations/crisis").status_code == 422


class TestJournal:
    def test_entry_with_chosen_mood(self, client):
        response = client.post("/api/journal", json={"user_id": "test_user", "entry": "Quiet evening", "mood": "calm"})
        assert response.json()["mood"] == "calm"
        moods = client.get("/api/moods/test_user").json()["moods"]
        assert [(m["mood"], m["source"]) for m in moods] == [("calm", "journal")]
        entries = client.get("/api/journal/test_user").json()["entries"]
        assert entries[0]["entry"] == "Quiet evening"

    def test_entry_mood_detected(self, client, fake_llm):
        fake_llm.mood_answer = "anxious"
        response = client.post("/api/journal", json={"user_id": "test_user", "entry": "Big interview tomorrow"})
        assert response.json()["mood"] == "anxious"

    def test_entry_with_crisis_language(self, client):
        response = client.post("/api/journal", json={"user_id": "test_user", "entry": "There is no reason to live"})
        data = response.json()
        assert data["mood"] == "crisis"
        assert data["crisis"]["resources"]
        assert len(client.get("/api/journal/test_user").json()["entries"]) == 1
        assert client.get("/api/moods/test_user").json()["moods"] == []

    def test_empty_entry_rejected(self, client):
        assert client.post("/api/journal", json={"user_id": "test_user", "entry": ""}).status_code == 422


class TestInsights:
    def _seed(self, client):
        client.post("/api/chat", json={
            "user_id": "test_user", "session_id": "s1",
            "message": "Stressed about the deadline at work",
        })
        client.post("/api/journal", json={"user_id": "test_user", "entry": "Finished the deadline, relieved", "mood": "calm"})

    def test_weekly_insights(self, client, fake_llm):
        self._seed(client)
        data = client.get("/api/insights/test_user").json()
        assert [e["type"] for e in data["timeline"]] == ["chat", "journal"]
        assert data["timeline"][0]["mood"] == "stressed"
        assert data["timeline"][1]["mood"] == "calm"
        assert data["topic_moods"]["deadline"] == {"stressed": 1}
        assert data["dominant_topic_moods"]["deadline"] == "stressed"
        assert data["summary"] == fake_llm.summary
        assert data["stats"]["total_entries"] == 2

    def test_summary_omitted_when_model_fails(self, client, failing_llm):
        client.post("/api/journal", json={"user_id": "test_user", "entry": "Slow day", "mood": "neutral"})
        response = client.get("/api/insights/test_user")
        assert response.status_code == 200
        assert response.json()["summary"] is None
        assert len(response.json()["timeline"]) == 1

    def test_summary_can_be_skipped(self, client, fake_llm):
        self._seed(client)
        fake_llm.prompts.clear()
        data = client.get("/api/insights/test_user", params={"summary": "false"}).json()
        assert data["summary"] is None
        assert fake_llm.prompts == []

    def test_empty_insights(self, client):
        data = client.get("/api/insights/nobody").json()
        assert data["timeline"] == []
        assert data["topic_moods"] == {}
        assert data["summary"] is None


class TestWellness:
    def test_daily_checkin(self, client):
        first = client.post("/api/wellness/checkin", json={"user_id": "test_user", "mood": "stressed"}).json()
        second = client.post("/api/wellness/checkin", json={"user_id": "test_user"}).json()
        assert first["already_checked_in"] is False
        assert second["already_checked_in"] is True
        assert second["streak"] == 1

        status = client.get("/api/wellness/checkin/test_user").json()
        assert status == {"checked_in": True, "mood": "stressed"}
        assert client.get("/api/wellness/streak/test_user").json() == {"streak": 1}

    def test_no_checkin(self, client):
        assert client.get("/api/wellness/checkin/nobody").json() == {"checked_in": False, "mood": None}
        assert client.get("/api/wellness/streak/nobody").json() == {"streak": 0}

    def test_gratitude(self, client):
        client.post("/api/wellness/gratitude", json={"user_id": "test_user", "text": "My friends"})
        client.post("/api/wellness/gratitude", json={"user_id": "test_user", "text": "Good coffee"})
        entries = client.get("/api/wellness/gratitude/test_user").json()["entries"]
        assert [e["text"] for e in entries] == ["Good coffee", "My friends"]

    def test_activities(self, client):
        client.post("/api/wellness/checkin", json={"user_id": "test_user", "mood": "sad"})
        response = client.post("/api/wellness/activities", json={"user_id": "test_user", "activity_id": 3})
        assert response.json()["completed"] == [3]

        data = client.get("/api/wellness/activities/test_user").json()
        assert data["completed"] == [3]
        assert all("sad" in a["moods"] for a in data["recommended"])

        client.post("/api/wellness/activities", json={"user_id": "test_user", "activity_id": 3, "completed": False})
        assert client.get("/api/wellness/activities/test_user").json()["completed"] == []

    def test_unknown_activity(self, client):
        response = client.post("/api/wellness/activities", json={"user_id": "test_user", "activity_id": 99})
        assert response.status_code == 404


class TestCrisisResources:
    def test_directory(self, client):
        data = client.get("/api/crisis/resources").json()
        names = [r["name"] for r in data["resources"]]
        assert "Crisis Text Line" in names
        assert "SAMHSA National Helpline" in names
        assert data["coping_strategies"]
