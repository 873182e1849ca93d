"""
External service integrations.

HTTP and SDK clients for the generation providers used by the pipeline:
- OpenAI: script writing and scene planning
- ElevenLabs: voiceover synthesis
- Runway: synchronous text-to-video
- Luma: asynchronous, callback-driven text-to-video
- Shotstack: final assembly
- S3/MinIO: hosting generated audio
"""

from clipforge.integrations.base_client import SyncBaseHTTPClient
from clipforge.integrations.elevenlabs_client import ElevenLabsClient, SpeechResult
from clipforge.integrations.luma_client import LumaClient, LumaGeneration
from clipforge.integrations.openai_client import CompletionResult, OpenAIClient
from clipforge.integrations.runway_client import GenerationJob, GenerationStatus, RunwayClient
from clipforge.integrations.shotstack_client import ShotstackClient, TimelineClip, build_timeline
from clipforge.integrations.storage_client import StorageClient, UploadResult

__all__ = [
    "SyncBaseHTTPClient",
    "OpenAIClient",
    "CompletionResult",
    "ElevenLabsClient",
    "SpeechResult",
    "RunwayClient",
    "GenerationJob",
    "GenerationStatus",
    "LumaClient",
    "LumaGeneration",
    "ShotstackClient",
    "TimelineClip",
    "build_timeline",
    "StorageClient",
    "UploadResult",
]
