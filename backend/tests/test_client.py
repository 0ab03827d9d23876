"""Unit tests for the client: stream consumer, persisted stores, memory extraction."""
from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

import httpx

from src.client.chat_client import ChatClient, parse_event_line
from src.client.memory_extraction import extract_memories
from src.client.models import ApiKeys, ChatMessage, EmotionRecord, MemoryDraft
from src.client.stores import ChatStore, EmotionStore, KeyStore, MemoryStore


def sse(*events: dict) -> bytes:
    return "".join(f"data: {json.dumps(e, ensure_ascii=False)}\n\n" for e in events).encode("utf-8")


class Recorder:
    def __init__(self) -> None:
        self.chunks: list[str] = []
        self.completed: list[tuple] = []
        self.errors: list[str] = []

    def on_chunk(self, text: str) -> None:
        self.chunks.append(text)

    async def on_complete(self, sources, emotion) -> None:
        self.completed.append((sources, emotion))

    def on_error(self, message: str) -> None:
        self.errors.append(message)


class TestParseEventLine(unittest.TestCase):
    def test_valid_and_invalid_lines(self) -> None:
        self.assertEqual(parse_event_line('data: {"type": "start"}'), {"type": "start"})
        self.assertIsNone(parse_event_line("data: {oops"))
        self.assertIsNone(parse_event_line("event: ping"))
        self.assertIsNone(parse_event_line("data: [1, 2]"))


class TestChatClientStream(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.keys = KeyStore(self._tmp.name, defaults=ApiKeys(modelscope_api_key="default-key"))

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _client(self, handler) -> ChatClient:
        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        self.addAsyncCleanup(http.aclose)
        return ChatClient("http://companion.test", key_store=self.keys, http_client=http)

    async def test_chunks_then_single_completion(self) -> None:
        seen = {}
        body = sse(
            {"type": "start"},
            {"type": "content", "data": "你"},
            {"type": "content", "data": "好"},
            {"type": "content", "data": "呀"},
            {"type": "end", "sources": [{"id": "s1", "kbName": "empathy"}], "emotion": {"current": "happy"}},
        )

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, content=body, headers={"content-type": "text/event-stream"})

        rec = Recorder()
        text = await self._client(handler).send_message_stream(
            "hi", rec.on_chunk, rec.on_complete, rec.on_error, history=[{"role": "user", "content": "早"}]
        )

        self.assertEqual(text, "你好呀")
        self.assertEqual(rec.chunks, ["你", "好", "呀"])
        self.assertEqual(rec.completed, [([{"id": "s1", "kbName": "empathy"}], {"current": "happy"})])
        self.assertEqual(rec.errors, [])
        self.assertEqual(seen["path"], "/api/chat/stream")
        self.assertEqual(seen["body"]["apiKey"], "default-key")
        self.assertEqual(seen["body"]["conversationHistory"], [{"role": "user", "content": "早"}])

    async def test_malformed_frame_is_skipped(self) -> None:
        body = b'data: {"type": "content", "data": "a"}\n\ndata: {broken\n\n' + sse(
            {"type": "content", "data": "b"}, {"type": "end", "sources": [], "emotion": None}
        )
        rec = Recorder()
        text = await self._client(lambda r: httpx.Response(200, content=body)).send_message_stream(
            "hi", rec.on_chunk, rec.on_complete, rec.on_error
        )
        self.assertEqual(text, "ab")
        self.assertEqual(len(rec.completed), 1)

    async def test_error_frame(self) -> None:
        body = sse({"type": "start"}, {"type": "content", "data": "a"}, {"type": "error", "data": "quota exceeded"})
        rec = Recorder()
        await self._client(lambda r: httpx.Response(200, content=body)).send_message_stream(
            "hi", rec.on_chunk, rec.on_complete, rec.on_error
        )
        self.assertEqual(rec.errors, ["quota exceeded"])
        self.assertEqual(rec.completed, [])

    async def test_http_error_status(self) -> None:
        rec = Recorder()
        await self._client(lambda r: httpx.Response(503, content=b"down")).send_message_stream(
            "hi", rec.on_chunk, rec.on_complete, rec.on_error
        )
        self.assertEqual(rec.errors, ["HTTP 503"])
        self.assertEqual(rec.chunks, [])

    async def test_stream_without_end_still_completes(self) -> None:
        rec = Recorder()
        body = sse({"type": "start"}, {"type": "content", "data": "a"})
        await self._client(lambda r: httpx.Response(200, content=body)).send_message_stream(
            "hi", rec.on_chunk, rec.on_complete, rec.on_error
        )
        self.assertEqual(rec.completed, [([], None)])

    async def test_send_message(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"success": True, "response": "ok"})

        result = await self._client(handler).send_message("hi")
        self.assertEqual(result["response"], "ok")

    async def test_send_message_network_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        result = await self._client(handler).send_message("hi")
        self.assertFalse(result["success"])


class TestStores(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_chat_store_caps_and_persists(self) -> None:
        store = ChatStore(self.dir)
        for i in range(105):
            store.add(ChatMessage(id=f"m{i}", role="user", content=str(i)))
        self.assertEqual(len(store.messages), 100)
        self.assertEqual(store.messages[0].id, "m5")

        reloaded = ChatStore(self.dir)
        self.assertEqual(len(reloaded.messages), 100)
        self.assertEqual(reloaded.conversation_history()[-1], {"role": "user", "content": "104"})

        reloaded.clear()
        self.assertEqual(ChatStore(self.dir).messages, [])

    def test_corrupt_state_file_starts_empty(self) -> None:
        (self.dir / "emotion-companion-chat.json").write_text("{nope", encoding="utf-8")
        self.assertEqual(ChatStore(self.dir).messages, [])

    def test_memory_dedupe_keeps_max_importance(self) -> None:
        store = MemoryStore(self.dir)
        first = store.add(MemoryDraft(type="preference", key="喜欢的猫", value="猫", importance=4))
        second = store.add(MemoryDraft(type="preference", key="喜欢的猫", value="橘猫", importance=2))

        self.assertEqual(len(store.all()), 1)
        self.assertEqual(second.id, first.id)
        self.assertEqual(second.value, "橘猫")
        self.assertEqual(second.importance, 4)
        self.assertEqual(second.mention_count, 2)

        saved = json.loads((self.dir / "emotion-companion-memory.json").read_text(encoding="utf-8"))
        self.assertEqual(saved["state"]["memories"][0]["mentionCount"], 2)
        self.assertEqual(MemoryStore(self.dir).all()[0].value, "橘猫")

    def test_user_profile(self) -> None:
        store = MemoryStore(self.dir)
        self.assertEqual(store.build_user_profile(), "")
        store.add(MemoryDraft(type="important_day", key="生日", value="3月5日", importance=5))
        store.add(MemoryDraft(type="habit", key="散步", value="晚饭后散步", importance=2))
        profile = store.build_user_profile()
        self.assertTrue(profile.startswith("用户画像："))
        self.assertIn("【重要日子】生日: 3月5日", profile)
        self.assertNotIn("散步", profile)

    def test_memory_queries(self) -> None:
        store = MemoryStore(self.dir)
        store.add(MemoryDraft(type="personal_info", key="职业", value="工程师", importance=4))
        store.add(MemoryDraft(type="preference", key="喜欢的音乐", value="音乐", importance=3))
        self.assertEqual([m.key for m in store.important()], ["职业"])
        self.assertEqual([m.key for m in store.by_type("preference")], ["喜欢的音乐"])
        self.assertEqual([m.key for m in store.search("工程")], ["职业"])
        self.assertEqual(len(store.recent()), 2)
        store.delete(store.important()[0].id)
        self.assertEqual(len(store.all()), 1)

    def test_emotion_store(self) -> None:
        store = EmotionStore(self.dir)
        store.add_to_history(EmotionRecord(emotion="sad", intensity=0.4))
        store.add_to_history(EmotionRecord(emotion="sad", intensity=0.8))
        store.add_to_history(EmotionRecord(emotion="happy", intensity=0.3))
        self.assertEqual(store.history()[0].emotion, "happy")
        stats = store.stats()
        self.assertEqual(stats["totalRecords"], 3)
        self.assertEqual(stats["mostCommon"], {"emotion": "sad", "count": 2})
        self.assertAlmostEqual(stats["emotionAvgIntensity"]["sad"], 0.6)

    def test_emotion_history_is_capped_in_memory_and_on_disk(self) -> None:
        store = EmotionStore(self.dir)
        for i in range(35):
            store.add_to_history(EmotionRecord(emotion="sad", intensity=i / 100))
        self.assertEqual(len(store.history()), EmotionStore.PERSISTED_HISTORY)
        self.assertAlmostEqual(store.history()[0].intensity, 0.34)
        self.assertAlmostEqual(store.history()[-1].intensity, 0.05)
        self.assertEqual(store.stats()["totalRecords"], 30)

        reloaded = EmotionStore(self.dir)
        self.assertEqual(
            [r.intensity for r in reloaded.history()],
            [r.intensity for r in store.history()],
        )

    def test_key_store_falls_back_per_field(self) -> None:
        defaults = ApiKeys(modelscope_api_key="d-key", xingyun_app_id="d-id", xingyun_app_secret="d-secret")
        store = KeyStore(self.dir, defaults=defaults)
        self.assertFalse(store.is_configured)
        self.assertEqual(store.modelscope_key(), "d-key")

        store.set_keys(ApiKeys(modelscope_api_key="user-key"))
        reloaded = KeyStore(self.dir, defaults=defaults)
        self.assertTrue(reloaded.is_configured)
        self.assertEqual(reloaded.modelscope_key(), "user-key")
        self.assertEqual(reloaded.xingyun_app_id(), "d-id")

        reloaded.clear()
        self.assertEqual(KeyStore(self.dir, defaults=defaults).modelscope_key(), "d-key")


class TestExtractMemories(unittest.TestCase):
    def test_birthday(self) -> None:
        drafts = extract_memories("我的生日是3月5日")
        self.assertEqual(len(drafts), 1)
        self.assertEqual((drafts[0].key, drafts[0].value, drafts[0].importance), ("生日", "3月5日", 5))

    def test_likes_and_dislikes(self) -> None:
        liked = extract_memories("我喜欢听音乐")
        self.assertEqual([(d.key, d.value) for d in liked], [("喜欢的听音", "听音乐")])
        disliked = extract_memories("我讨厌下雨天。")
        self.assertEqual([(d.key, d.value) for d in disliked], [("不喜欢的下雨", "下雨天")])

    def test_occupation(self) -> None:
        drafts = extract_memories("我是软件工程师")
        self.assertEqual([(d.key, d.type, d.importance) for d in drafts], [("职业", "personal_info", 4)])

    def test_nothing_to_remember(self) -> None:
        self.assertEqual(extract_memories("今天天气不错"), [])


if __name__ == "__main__":
    unittest.main()
