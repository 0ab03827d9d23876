"""Avatar controller: façade over the external 3D avatar SDK.

The SDK itself is a black box. A concrete binding implements `AvatarSDK` and
is handed to the controller through an `SDKLoader`, whose `load` callable
fetches the SDK once per process and returns a factory for SDK instances.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterable, Iterable
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Literal, Optional

logger = logging.getLogger(__name__)

AvatarState = Literal["offline", "online", "idle", "interactive_idle", "listen", "think", "speak"]
LoaderState = Literal["unloaded", "loading", "ready", "failed"]

DEFAULT_GATEWAY_SERVER = "https://nebula-agent.xingyun3d.com/user/v1/ttsa/session"
INSUFFICIENT_CREDITS_CODE = 10003
INSUFFICIENT_CREDITS_MESSAGE = "魔珐星云账户积分不足，无法启动数字人。请联系管理员充值或更新 APP_ID 和 APP_SECRET"

SDK_LOAD_TIMEOUT_S = 30.0
CONTAINER_TIMEOUT_S = 10.0
POLL_INTERVAL_S = 0.1

MIN_SPEECH_MS = 3000
SPEECH_MS_PER_CHAR = 100
STREAM_SEGMENT_CHARS = 15

EMOTION_ACTIONS: Dict[str, str] = {
    "happy": "Happy",
    "sad": "Sad",
    "angry": "Angry",
    "anxious": "Worried",
    "fear": "Scared",
    "surprised": "Surprise",
    "normal": "Idle",
}

EMOTION_SPEAK_ACTIONS: Dict[str, str] = {
    "happy": "Happy_Talk",
    "sad": "Sad_Talk",
    "angry": "Angry_Talk",
    "anxious": "Worried_Talk",
    "fear": "Scared_Talk",
    "surprised": "Surprise_Talk",
    "normal": "Talk",
}


class AvatarInitError(RuntimeError):
    """Avatar could not be brought up; `code` carries the provider error code if any."""

    def __init__(self, message: str, *, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class AvatarSDK(ABC):
    """Interface the controller needs from an avatar SDK instance."""

    @abstractmethod
    async def init(
        self,
        *,
        on_download_progress: Callable[[float], None],
        on_error: Callable[[Any], None],
        on_close: Callable[[], None],
    ) -> None:
        ...

    @abstractmethod
    def speak(self, text: str, is_start: bool, is_end: bool) -> None:
        ...

    @abstractmethod
    def idle(self) -> None:
        ...

    @abstractmethod
    def interactive_idle(self) -> None:
        ...

    @abstractmethod
    def listen(self) -> None:
        ...

    @abstractmethod
    def think(self) -> None:
        ...

    @abstractmethod
    def destroy(self) -> None:
        ...


SDKFactory = Callable[..., AvatarSDK]


class SDKLoader:
    """Loads the SDK once; concurrent callers share the in-flight load.

    States: unloaded -> loading -> ready | failed. A failed load may be retried.
    """

    def __init__(
        self,
        load: Callable[[], Awaitable[SDKFactory]],
        timeout: float = SDK_LOAD_TIMEOUT_S,
    ) -> None:
        self._load = load
        self._timeout = timeout
        self._factory: Optional[SDKFactory] = None
        self._task: Optional[asyncio.Task] = None
        self.state: LoaderState = "unloaded"

    async def _run(self) -> SDKFactory:
        try:
            factory = await asyncio.wait_for(self._load(), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            self.state = "failed"
            raise AvatarInitError("SDK 加载超时，请检查网络连接") from exc
        except Exception as exc:
            self.state = "failed"
            raise AvatarInitError(f"SDK 脚本加载失败: {exc}") from exc
        self._factory = factory
        self.state = "ready"
        logger.info("Avatar SDK loaded")
        return factory

    async def load(self) -> SDKFactory:
        if self.state == "ready" and self._factory is not None:
            return self._factory
        if self.state != "loading" or self._task is None:
            logger.info("Loading avatar SDK")
            self.state = "loading"
            self._task = asyncio.ensure_future(self._run())
        else:
            logger.info("Avatar SDK already loading, waiting")
        return await asyncio.shield(self._task)


async def wait_for_container(
    probe: Callable[[], bool],
    container_id: str,
    *,
    timeout: float = CONTAINER_TIMEOUT_S,
    interval: float = POLL_INTERVAL_S,
) -> None:
    """Poll `probe` until the mount point exists or `timeout` elapses."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not probe():
        if loop.time() >= deadline:
            raise AvatarInitError(f"Container {container_id} not found after timeout")
        logger.debug("Waiting for container %s", container_id)
        await asyncio.sleep(interval)
    logger.info("Container found: %s", container_id)


def estimate_speech_ms(text: str) -> int:
    """Approximate playback time for `text`.

    The SDK reports no completion for spoken audio, so the end of speech is
    estimated from length: at least MIN_SPEECH_MS, else 100 ms per character.
    """
    return max(MIN_SPEECH_MS, len(text) * SPEECH_MS_PER_CHAR)


def action_ssml(text: str, action: str) -> str:
    """Wrap `text` in SSML carrying an action-trigger event for the avatar."""
    return (
        "<speak>"
        "<ue4event>"
        "<type>ka</type>"
        f"<data><action_semantic>{action}</action_semantic></data>"
        "</ue4event>"
        f"{text}"
        "</speak>"
    )


@dataclass
class AvatarConfig:
    container_id: str
    app_id: str
    app_secret: str
    gateway_server: str = DEFAULT_GATEWAY_SERVER
    on_state_change: Optional[Callable[[AvatarState], None]] = None
    on_voice_start: Optional[Callable[[], None]] = None
    on_voice_end: Optional[Callable[[], None]] = None
    on_error: Optional[Callable[[Exception], None]] = None

    def __post_init__(self) -> None:
        if not self.container_id.startswith("#"):
            self.container_id = f"#{self.container_id}"


class AvatarController:
    """Drives avatar state and speech around message delivery."""

    def __init__(
        self,
        config: AvatarConfig,
        loader: SDKLoader,
        container_probe: Callable[[], bool] = lambda: True,
        *,
        settle_delay: float = 0.5,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.config = config
        self._loader = loader
        self._container_probe = container_probe
        self._settle_delay = settle_delay
        self._sleep = sleep
        self._sdk: Optional[AvatarSDK] = None
        self._failure: Optional[AvatarInitError] = None
        self.voice_state: Optional[str] = None

    @property
    def is_initialized(self) -> bool:
        return self._sdk is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Load the SDK, wait for the mount point, construct and init the instance."""
        if not self.config.app_id or not self.config.app_secret:
            raise AvatarInitError("APP_ID 或 APP_SECRET 未配置")

        factory = await self._loader.load()
        await wait_for_container(self._container_probe, self.config.container_id)
        if self._settle_delay:
            await asyncio.sleep(self._settle_delay)

        self._failure = None
        logger.info("Creating avatar SDK instance (app id %s...)", self.config.app_id[:8])
        self._sdk = factory(
            container_id=self.config.container_id,
            app_id=self.config.app_id,
            app_secret=self.config.app_secret,
            gateway_server=self.config.gateway_server,
            on_state_change=self._handle_state_change,
            on_voice_state_change=self._handle_voice_state,
            on_message=self._handle_message,
        )
        await self._sdk.init(
            on_download_progress=lambda progress: logger.debug("Avatar loading progress: %s%%", progress),
            on_error=self._handle_init_error,
            on_close=self._handle_close,
        )

        if self._sdk is None:
            raise self._failure or AvatarInitError("数字人连接失败，请检查账户积分或网络连接")
        logger.info("Avatar SDK initialized")

    def destroy(self) -> None:
        if self._sdk is not None:
            self._sdk.destroy()
        self._sdk = None

    def _teardown(self, error: AvatarInitError) -> None:
        self._failure = error
        sdk, self._sdk = self._sdk, None
        if sdk is not None:
            sdk.destroy()
        if self.config.on_error:
            self.config.on_error(error)

    # ------------------------------------------------------------------
    # SDK callbacks
    # ------------------------------------------------------------------

    def _emit_state(self, state: AvatarState) -> None:
        if self.config.on_state_change:
            self.config.on_state_change(state)

    def _handle_state_change(self, state: str) -> None:
        logger.info("Avatar state changed to %s", state)
        self._emit_state(state)  # type: ignore[arg-type]

    def _handle_voice_state(self, status: str) -> None:
        self.voice_state = status
        if status == "start" and self.config.on_voice_start:
            self.config.on_voice_start()
        elif status == "end" and self.config.on_voice_end:
            self.config.on_voice_end()

    def _handle_message(self, message: Any) -> None:
        code = message.get("code") if isinstance(message, dict) else getattr(message, "code", None)
        if code == INSUFFICIENT_CREDITS_CODE:
            logger.error("Avatar provider reports insufficient credits")
            self._teardown(AvatarInitError(INSUFFICIENT_CREDITS_MESSAGE, code=INSUFFICIENT_CREDITS_CODE))
            self._emit_state("offline")
        else:
            logger.debug("Avatar SDK message: %s", message)

    def _handle_init_error(self, error: Any) -> None:
        logger.error("Avatar SDK init error: %s", error)
        message = getattr(error, "message", None) or (error.get("message") if isinstance(error, dict) else None)
        self._teardown(AvatarInitError(message or "SDK 初始化失败"))

    def _handle_close(self) -> None:
        logger.info("Avatar connection closed")
        self._emit_state("offline")
        self._teardown(AvatarInitError("连接已关闭"))

    # ------------------------------------------------------------------
    # State setters
    # ------------------------------------------------------------------

    def set_idle(self) -> None:
        if self._sdk is not None:
            self._sdk.idle()

    def set_interactive_idle(self) -> None:
        if self._sdk is not None:
            self._sdk.interactive_idle()

    def set_listen(self) -> None:
        if self._sdk is not None:
            self._sdk.listen()

    def set_think(self) -> None:
        if self._sdk is not None:
            self._sdk.think()

    # ------------------------------------------------------------------
    # Speech
    # ------------------------------------------------------------------

    def speak(self, text: str, is_start: bool = True, is_end: bool = True) -> None:
        if self._sdk is None:
            logger.error("Avatar SDK not initialized, dropping speech (%d chars)", len(text or ""))
            return
        logger.debug("speak: %d chars (start=%s, end=%s)", len(text or ""), is_start, is_end)
        self._sdk.speak(text, is_start, is_end)

    def speak_with_action(self, text: str, action: str) -> None:
        self.speak(action_ssml(text, action))

    def set_emotional_state(self, emotion: str) -> None:
        action = EMOTION_ACTIONS.get(emotion, EMOTION_ACTIONS["normal"])
        logger.info("Setting emotional state: %s -> %s", emotion, action)
        self.speak_with_action("", action)

    def speak_with_emotion(self, text: str, emotion: str = "normal") -> None:
        action = EMOTION_SPEAK_ACTIONS.get(emotion, EMOTION_SPEAK_ACTIONS["normal"])
        logger.info("Speaking with emotion: %s -> %s", emotion, action)
        self.speak_with_action(text, action)

    async def speak_stream(self, text_stream: AsyncIterable[str] | Iterable[str]) -> None:
        """Speak incrementally, flushing once more than 15 characters are buffered."""
        is_first = True
        buffer = ""

        async def _chunks():
            if isinstance(text_stream, AsyncIterable):
                async for item in text_stream:
                    yield item
            else:
                for item in text_stream:
                    yield item

        async for chunk in _chunks():
            buffer += chunk
            if len(buffer) > STREAM_SEGMENT_CHARS:
                self.speak(buffer, is_start=is_first, is_end=False)
                buffer = ""
                is_first = False
        if buffer:
            self.speak(buffer, is_start=is_first, is_end=True)

    async def speak_full_text(self, text: str, emotion: str = "normal") -> None:
        """Speak `text` and hold the "speak" UI state for the estimated duration."""
        if not text:
            return
        self._emit_state("speak")
        if emotion != "normal":
            self.speak_with_emotion(text, emotion)
        else:
            self.speak(text, is_start=True, is_end=True)

        wait_ms = estimate_speech_ms(text)
        logger.info("Waiting %d ms for speech to complete", wait_ms)
        await self._sleep(wait_ms / 1000)
        self._emit_state("idle")


__all__ = [
    "AvatarConfig",
    "AvatarController",
    "AvatarInitError",
    "AvatarSDK",
    "AvatarState",
    "EMOTION_ACTIONS",
    "EMOTION_SPEAK_ACTIONS",
    "SDKLoader",
    "action_ssml",
    "estimate_speech_ms",
    "wait_for_container",
]
