"""
Tests for provider integrations and their adapters.

HTTP clients run against httpx.MockTransport; S3 is stubbed with
botocore's Stubber; the OpenAI SDK is replaced by a recording fake.
"""

import json
from collections.abc import Callable
from types import SimpleNamespace
from typing import Any

import boto3
import httpx
import openai
import pytest
from botocore.stub import Stubber

from clipforge.core.config import get_settings
from clipforge.core.exceptions import ExternalServiceError, ProviderError, RateLimitError
from clipforge.integrations import base_client
from clipforge.integrations.elevenlabs_client import ElevenLabsClient
from clipforge.integrations.luma_client import LumaClient, LumaGeneration
from clipforge.integrations.openai_client import OpenAIClient
from clipforge.integrations.runway_client import RunwayClient
from clipforge.integrations.shotstack_client import TimelineClip, build_timeline
from clipforge.integrations.storage_client import StorageClient, UploadResult
from clipforge.models.enums import ProviderRole
from clipforge.providers.base import ClipState
from clipforge.providers.registry import ProviderRegistry
from clipforge.providers.video import LumaVideoProvider, RunwayVideoProvider, luma_clip_status
from clipforge.providers.voice import ElevenLabsVoiceProvider

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture
def sleeps(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    recorded: list[float] = []
    monkeypatch.setattr(base_client.time, "sleep", recorded.append)
    return recorded


def luma_provider(handler: Handler) -> LumaVideoProvider:
    client = LumaClient(api_key="luma-key", transport=httpx.MockTransport(handler))
    return LumaVideoProvider(client=client)


class TestLuma:
    def test_submission_payload(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(201, json={"id": "gen-1", "state": "queued"})

        submission = luma_provider(handler).generate(
            "Slow pan over roasted beans",
            8,
            "9:16",
            callback_url="https://clipforge.test/api/v1/webhooks/video/luma",
        )

        assert submission.is_async
        assert submission.provider_job_id == "gen-1"
        assert submission.duration == 9.0
        body = json.loads(requests[0].content)
        assert requests[0].url.path == "/dream-machine/v1/generations/video"
        assert requests[0].headers["Authorization"] == "Bearer luma-key"
        assert body["duration"] == "9s"
        assert body["aspect_ratio"] == "9:16"
        assert body["callback_url"].endswith("/webhooks/video/luma")

    @pytest.mark.parametrize(
        ("payload", "state", "file_url", "reason"),
        [
            ({"id": "g", "state": "completed", "assets": {"video": "https://cdn/v.mp4"}}, ClipState.COMPLETED, "https://cdn/v.mp4", None),
            ({"id": "g", "state": "completed", "assets": {}}, ClipState.FAILED, None, "Generation completed without a video asset"),
            ({"id": "g", "state": "failed", "failure_reason": "NSFW prompt"}, ClipState.FAILED, None, "NSFW prompt"),
            ({"id": "g", "state": "dreaming"}, ClipState.PENDING, None, None),
        ],
    )
    def test_clip_status_mapping(
        self,
        payload: dict[str, Any],
        state: ClipState,
        file_url: str | None,
        reason: str | None,
    ) -> None:
        status = luma_clip_status(LumaGeneration.from_payload(payload))

        assert status.state == state
        assert status.file_url == file_url
        assert status.failure_reason == reason
        assert status.raw == payload


class TestRetries:
    def test_server_error_is_retried(self, sleeps: list[float]) -> None:
        responses = iter([httpx.Response(503), httpx.Response(200, json={"id": "gen-7", "state": "dreaming"})])

        status = luma_provider(lambda request: next(responses)).get_status("gen-7")

        assert status.state == ClipState.PENDING
        assert len(sleeps) == 1

    def test_retry_after_is_honored(self, sleeps: list[float]) -> None:
        responses = iter(
            [
                httpx.Response(429, headers={"Retry-After": "2"}),
                httpx.Response(200, json={"id": "gen-7", "state": "queued"}),
            ]
        )

        luma_provider(lambda request: next(responses)).get_status("gen-7")

        assert sleeps == [2.0]

    def test_persistent_rate_limit(self, sleeps: list[float]) -> None:
        client = LumaClient(api_key="k", transport=httpx.MockTransport(lambda request: httpx.Response(429)))

        with pytest.raises(RateLimitError):
            client.get_generation("gen-7")
        assert len(sleeps) == 2

    def test_client_error_is_not_retried(self, sleeps: list[float]) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(401, json={"detail": "bad key"})

        with pytest.raises(ProviderError) as exc_info:
            luma_provider(handler).get_status("gen-7")

        assert len(calls) == 1
        assert sleeps == []
        assert exc_info.value.code == "AUTH_ERROR"
        assert exc_info.value.retryable is False
        assert exc_info.value.details["upstream_status"] == 401

    def test_exhausted_server_errors_are_retryable(self, sleeps: list[float]) -> None:
        with pytest.raises(ProviderError) as exc_info:
            luma_provider(lambda request: httpx.Response(502)).get_status("gen-7")

        assert exc_info.value.code == "PROVIDER_ERROR"
        assert exc_info.value.retryable is True
        assert exc_info.value.provider == "luma"
        assert len(sleeps) == 2

    def test_connection_errors(self, sleeps: list[float]) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = LumaClient(api_key="k", transport=httpx.MockTransport(handler))

        with pytest.raises(ExternalServiceError) as exc_info:
            client.get_generation("gen-7")

        assert exc_info.value.upstream_status is None
        assert "connection refused" in exc_info.value.details["original_error"]


class TestRunway:
    def test_duration_snaps_to_supported(self) -> None:
        assert RunwayClient.supported_duration(4) == 5
        assert RunwayClient.supported_duration(6) == 5
        assert RunwayClient.supported_duration(8) == 10

    def test_generate_waits_for_output(self) -> None:
        polls = iter(
            [
                {"id": "task-1", "status": "RUNNING", "progress": 0.4},
                {"id": "task-1", "status": "SUCCEEDED", "output": ["https://cdn.runway/task-1.mp4"]},
            ]
        )
        requests: list[httpx.Request] = []
        waits: list[float] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if request.method == "POST":
                return httpx.Response(200, json={"id": "task-1"})
            return httpx.Response(200, json=next(polls))

        client = RunwayClient(api_key="rw", transport=httpx.MockTransport(handler), sleep=waits.append)
        submission = RunwayVideoProvider(client=client).generate("Latte art close-up", 8, "9:16")

        assert not submission.is_async
        assert submission.file_url == "https://cdn.runway/task-1.mp4"
        assert submission.duration == 10.0
        assert waits == [10.0]
        body = json.loads(requests[0].content)
        assert body["ratio"] == "720:1280"
        assert body["duration"] == 10
        assert requests[0].headers["X-Runway-Version"] == RunwayClient.API_VERSION

    def test_failed_generation(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                return httpx.Response(200, json={"id": "task-2"})
            return httpx.Response(200, json={"id": "task-2", "status": "FAILED", "failure": "Content policy"})

        client = RunwayClient(api_key="rw", transport=httpx.MockTransport(handler), sleep=lambda s: None)

        with pytest.raises(ProviderError) as exc_info:
            RunwayVideoProvider(client=client).generate("Latte art", 5)

        assert "Content policy" in exc_info.value.message
        assert exc_info.value.provider == "runway"

    def test_unsupported_ratio_is_not_retryable(self) -> None:
        client = RunwayClient(api_key="rw", transport=httpx.MockTransport(lambda request: httpx.Response(500)))

        with pytest.raises(ProviderError) as exc_info:
            RunwayVideoProvider(client=client).generate("Latte art", 5, "4:3")

        assert exc_info.value.code == "VALIDATION_ERROR"
        assert exc_info.value.retryable is False


class RecordingStorage:
    def __init__(self) -> None:
        self.uploads: list[dict[str, Any]] = []

    def upload_bytes(
        self,
        data: bytes,
        key: str,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> UploadResult:
        self.uploads.append({"key": key, "content_type": content_type, "metadata": metadata, "size": len(data)})
        return UploadResult(bucket="assets", key=key, url=f"https://cdn.test/{key}", size_bytes=len(data))


class TestVoice:
    def test_synthesize_uploads_audio(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, content=b"ID3-fake-mp3")

        storage = RecordingStorage()
        client = ElevenLabsClient(api_key="el-key", transport=httpx.MockTransport(handler))
        provider = ElevenLabsVoiceProvider(client=client, storage=storage)

        url = provider.synthesize("Every cup starts with a bean.", "pt-BR")

        request = requests[0]
        assert request.url.path.startswith("/v1/text-to-speech/")
        assert request.url.params["output_format"] == "mp3_44100_128"
        assert request.headers["xi-api-key"] == "el-key"
        assert json.loads(request.content)["language_code"] == "pt"
        upload = storage.uploads[0]
        assert upload["key"].startswith("voiceovers/") and upload["key"].endswith(".mp3")
        assert upload["content_type"] == "audio/mpeg"
        assert upload["size"] == len(b"ID3-fake-mp3")
        assert url == f"https://cdn.test/{upload['key']}"

    def test_blank_script_is_rejected(self) -> None:
        client = ElevenLabsClient(api_key="el-key", transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        provider = ElevenLabsVoiceProvider(client=client, storage=RecordingStorage())

        with pytest.raises(ProviderError) as exc_info:
            provider.synthesize("   ", "en")

        assert exc_info.value.code == "VALIDATION_ERROR"


class TestStorage:
    @pytest.fixture
    def s3(self) -> Any:
        return boto3.client(
            "s3",
            region_name="us-east-1",
            aws_access_key_id="test",
            aws_secret_access_key="test",
        )

    def test_upload_returns_public_url(self, s3: Any) -> None:
        settings = get_settings().model_copy(update={"s3_public_url": "https://media.test/"})
        storage = StorageClient(settings=settings, client=s3)

        with Stubber(s3) as stubber:
            stubber.add_response(
                "put_object",
                {"ETag": '"abc123"'},
                {
                    "Bucket": "clipforge-assets",
                    "Key": "voiceovers/a.mp3",
                    "Body": b"audio",
                    "ContentType": "audio/mpeg",
                },
            )
            result = storage.upload_bytes(b"audio", "voiceovers/a.mp3", "audio/mpeg")

        assert result.url == "https://media.test/clipforge-assets/voiceovers/a.mp3"
        assert result.uri == "s3://clipforge-assets/voiceovers/a.mp3"
        assert result.size_bytes == 5

    def test_upload_failure(self, s3: Any) -> None:
        storage = StorageClient(client=s3)

        with Stubber(s3) as stubber:
            stubber.add_client_error(
                "put_object",
                service_error_code="AccessDenied",
                service_message="Access Denied",
                http_status_code=403,
            )
            with pytest.raises(ExternalServiceError) as exc_info:
                storage.upload_bytes(b"audio", "voiceovers/a.mp3", "audio/mpeg")

        assert "Access Denied" in exc_info.value.message

    def test_missing_bucket(self, s3: Any) -> None:
        storage = StorageClient(client=s3)

        with Stubber(s3) as stubber:
            stubber.add_client_error("head_bucket", service_error_code="404", http_status_code=404)
            with pytest.raises(ExternalServiceError):
                storage.check_bucket()


def fake_openai(content: str) -> SimpleNamespace:
    calls: list[dict[str, Any]] = []

    def create(**kwargs: Any) -> SimpleNamespace:
        calls.append(kwargs)
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=content), finish_reason="stop")],
            usage=SimpleNamespace(prompt_tokens=12, completion_tokens=34),
        )

    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)), calls=calls)


class TestOpenAI:
    def test_json_completion(self) -> None:
        sdk = fake_openai('{"scenes": [{"text": "Beans", "duration": 6}]}')
        client = OpenAIClient(client=sdk)  # type: ignore[arg-type]

        result = client.complete_json([{"role": "user", "content": "plan"}], system_message="You plan scenes.")

        assert result.parsed["scenes"][0]["text"] == "Beans"
        assert result.input_tokens == 12
        assert result.output_tokens == 34
        call = sdk.calls[0]
        assert call["response_format"] == {"type": "json_object"}
        assert call["model"] == get_settings().openai_model_planning
        assert call["messages"][0] == {"role": "system", "content": "You plan scenes."}

    def test_plain_completion_has_no_response_format(self) -> None:
        sdk = fake_openai("Every cup starts with a bean.")

        result = OpenAIClient(client=sdk).complete([{"role": "user", "content": "write"}])  # type: ignore[arg-type]

        assert result.content == "Every cup starts with a bean."
        assert "response_format" not in sdk.calls[0]
        assert result.parsed == {}

    @pytest.mark.parametrize("content", ["not json", "[1, 2]"])
    def test_bad_json(self, content: str) -> None:
        client = OpenAIClient(client=fake_openai(content))  # type: ignore[arg-type]

        with pytest.raises(ExternalServiceError):
            client.complete_json([{"role": "user", "content": "plan"}])

    def test_client_error_is_not_retried(self) -> None:
        calls: list[dict[str, Any]] = []

        def create(**kwargs: Any) -> None:
            calls.append(kwargs)
            request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
            raise openai.APIStatusError("bad request", response=httpx.Response(400, request=request), body=None)

        sdk = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))

        with pytest.raises(ExternalServiceError) as exc_info:
            OpenAIClient(client=sdk).complete([{"role": "user", "content": "x"}])  # type: ignore[arg-type]

        assert len(calls) == 1
        assert exc_info.value.upstream_status == 400


class DictCredentials:
    def __init__(self, values: dict[str, str]) -> None:
        self.values = values

    def get_credential(self, key: str) -> str | None:
        return self.values.get(key)


class TestRegistry:
    def test_resolves_adapter_with_credential(self) -> None:
        registry = ProviderRegistry(credentials=DictCredentials({"luma": "luma-key"}))

        adapter = registry.resolve(ProviderRole.VIDEO, "luma")

        assert isinstance(adapter, LumaVideoProvider)
        assert adapter.max_concurrent_jobs == get_settings().luma_max_concurrent_jobs

    @pytest.mark.parametrize(
        ("role", "provider_id", "code"),
        [
            (ProviderRole.VIDEO, "runway", "MISSING_CREDENTIALS"),
            (ProviderRole.VIDEO, "sora", "UNKNOWN_PROVIDER"),
            (ProviderRole.LLM, "luma", "UNKNOWN_PROVIDER"),
        ],
    )
    def test_resolution_failures_are_terminal(self, role: ProviderRole, provider_id: str, code: str) -> None:
        registry = ProviderRegistry(credentials=DictCredentials({"luma": "luma-key"}))

        with pytest.raises(ProviderError) as exc_info:
            registry.resolve(role, provider_id)

        assert exc_info.value.code == code
        assert exc_info.value.retryable is False


def test_timeline_lays_clips_end_to_end() -> None:
    timeline = build_timeline(
        [TimelineClip("https://cdn/1.mp4", 8.0), TimelineClip("https://cdn/2.mp4", 6.5), TimelineClip("https://cdn/3.mp4", 8.0)],
        "https://cdn/voice.mp3",
    )

    clips = timeline["tracks"][0]["clips"]
    assert [clip["start"] for clip in clips] == [0.0, 8.0, 14.5]
    assert [clip["asset"]["src"] for clip in clips] == ["https://cdn/1.mp4", "https://cdn/2.mp4", "https://cdn/3.mp4"]
    assert timeline["soundtrack"]["src"] == "https://cdn/voice.mp3"
