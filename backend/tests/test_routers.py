"""HTTP tests for the chat, emotion, diary and health routers."""
from __future__ import annotations

import json
import unittest

from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.companion.emergency import SAFETY_RESPONSE
from src.companion.service import get_chat_service
from src.llm_core import ModelServiceError
from src.routers import chat_router, diary_router, emotion_router, health_router
from src.routers.chat import sse_frame

from test_chat_service import FakeProvider, make_service


def parse_frames(body: str) -> list[dict]:
    frames = []
    for block in body.split("\n\n"):
        if block.startswith("data: "):
            frames.append(json.loads(block[len("data: "):]))
    return frames


class RouterTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.provider = FakeProvider()
        self.app = FastAPI()
        for router in (chat_router, emotion_router, diary_router, health_router):
            self.app.include_router(router)
        self.app.dependency_overrides[get_chat_service] = lambda: make_service(self.provider)
        self.client = TestClient(self.app)


class TestChatSend(RouterTestCase):
    def test_send_returns_reply_emotion_and_sources(self) -> None:
        resp = self.client.post("/api/chat/send", json={"message": "我失眠了，好开心"})
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["response"], "我在这里陪你。")
        self.assertEqual(body["emotion"]["current"], "happy")
        self.assertEqual(body["sources"][0]["kbLabel"], "共情回应")

    def test_send_emergency(self) -> None:
        resp = self.client.post("/api/chat/send", json={"message": "我不想活了"})
        body = resp.json()
        self.assertTrue(body["isEmergency"])
        self.assertEqual(body["response"], SAFETY_RESPONSE)
        self.assertEqual(body["emotion"], {"current": "sad", "intensity": 1, "confidence": 1})
        self.assertEqual(self.provider.calls, [])

    def test_send_failure_is_500(self) -> None:
        self.provider.error = ModelServiceError("quota exceeded")
        resp = self.client.post("/api/chat/send", json={"message": "你好"})
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"success": False, "error": "quota exceeded"})

    def test_missing_message_fails_as_500(self) -> None:
        resp = self.client.post("/api/chat/send", json={"conversationHistory": []})
        self.assertEqual(resp.status_code, 500)
        self.assertFalse(resp.json()["success"])
        self.assertTrue(resp.json()["error"])
        self.assertEqual(self.provider.calls, [])

    def test_system_history_turn_is_forwarded(self) -> None:
        resp = self.client.post(
            "/api/chat/send",
            json={"message": "你好", "conversationHistory": [{"role": "system", "content": "be brief"}]},
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual([m.role for m in self.provider.calls[0]["messages"]], ["system", "system", "user"])

    def test_unknown_history_role_fails_as_500(self) -> None:
        resp = self.client.post(
            "/api/chat/send",
            json={"message": "你好", "conversationHistory": [{"role": "tool", "content": "x"}]},
        )
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(self.provider.calls, [])


class TestChatStream(RouterTestCase):
    def test_stream_frames(self) -> None:
        resp = self.client.post(
            "/api/chat/stream",
            json={"message": "今天好开心", "conversationHistory": [], "apiKey": "user-key"},
        )
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.headers["content-type"].startswith("text/event-stream"))
        self.assertEqual(resp.headers["cache-control"], "no-cache")

        frames = parse_frames(resp.text)
        self.assertEqual(frames[0], {"type": "start"})
        self.assertEqual([f["type"] for f in frames[1:]], ["content", "content", "content", "end"])
        self.assertEqual("".join(f["data"] for f in frames[1:-1]), "我在这里陪你。")
        self.assertEqual(frames[-1]["emotion"]["current"], "happy")
        self.assertEqual(frames[-1]["sources"], [])
        self.assertEqual(self.provider.calls[0]["api_key"], "user-key")

    def test_stream_emergency(self) -> None:
        resp = self.client.post("/api/chat/stream", json={"message": "我想结束生命"})
        frames = parse_frames(resp.text)
        self.assertEqual([f["type"] for f in frames], ["start", "content", "end"])
        self.assertEqual(frames[1]["data"], SAFETY_RESPONSE)
        self.assertTrue(frames[2]["isEmergency"])
        self.assertEqual(frames[2]["emotion"]["current"], "sad")
        self.assertEqual(self.provider.calls, [])

    def test_stream_error_frame(self) -> None:
        self.provider.deltas = ["半句"]
        self.provider.error = ModelServiceError("invalid api key")
        resp = self.client.post("/api/chat/stream", json={"message": "你好"})
        frames = parse_frames(resp.text)
        self.assertEqual([f["type"] for f in frames], ["start", "content", "error"])
        self.assertEqual(frames[-1]["data"], "invalid api key")

    def test_stream_missing_message_ends_with_error_frame(self) -> None:
        resp = self.client.post("/api/chat/stream", json={"apiKey": "k"})
        self.assertEqual(resp.status_code, 200)
        frames = parse_frames(resp.text)
        self.assertEqual([f["type"] for f in frames], ["start", "error"])
        self.assertTrue(frames[-1]["data"])
        self.assertEqual(self.provider.calls, [])

    def test_sse_frame_keeps_unicode(self) -> None:
        self.assertEqual(sse_frame({"type": "content", "data": "你好"}), 'data: {"type": "content", "data": "你好"}\n\n')


class TestOtherRoutes(RouterTestCase):
    def test_analyze(self) -> None:
        resp = self.client.post("/api/emotion/analyze", json={"message": "我好生气"})
        body = resp.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["data"]["emotion"], "angry")
        self.assertEqual(body["data"]["confidence"], 0.9)
        self.assertIn("suggestedResponse", body["data"])

    def test_emotion_history_placeholder(self) -> None:
        body = self.client.get("/api/emotion/history").json()
        self.assertEqual(body["data"], {"current": "normal", "history": []})

    def test_diary_placeholders(self) -> None:
        self.assertTrue(self.client.post("/api/diary/save", json={"text": "x"}).json()["success"])
        self.assertEqual(self.client.get("/api/diary/list").json()["data"], [])
        self.assertIsNone(self.client.get("/api/diary/abc").json()["data"])

    def test_health(self) -> None:
        body = self.client.get("/health").json()
        self.assertEqual(body["status"], "ok")
        self.assertEqual(body["service"], "emotion-companion")
        self.assertIn("timestamp", body)


if __name__ == "__main__":
    unittest.main()
