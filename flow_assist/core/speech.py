"""
Text-to-speech for flow steps using the OpenAI speech endpoint.

Steps that need audio are synthesized in batches of three concurrent
requests; each generated file is stored as a flow asset whose name carries
the synthesized-asset marker, so later description edits can tell it apart
from user-supplied audio.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from .cache import SYNTHESIS_TTL, TTLCache, derive_cache_key
from .config import Config
from .errors import AIServiceError, ErrorKind, classify_exception
from .progress import reporter
from .store import FlowStore, StoreError
from .types import SYNTHESIZED_ASSET_MARKER, AudioAsset, FlowDocument, Step

logger = logging.getLogger(__name__)

SPEECH_SERVICE = "Text-to-speech"
BATCH_SIZE = 3


class SynthesizedAudio(BaseModel):
    """Audio file produced for one step."""

    step_id: str
    file_name: str
    file_path: str = Field(..., description="Path relative to the flow directory")


class SynthesisResult(BaseModel):
    """Outcome of synthesizing a flow."""

    message: str
    processed_steps: int = 0
    total_steps_needing_audio: int = 0
    audio_files: List[SynthesizedAudio] = Field(default_factory=list)


def synthesized_file_name(step_id: str, extension: str = "mp3") -> str:
    """``step_tts_<first 8 chars of step id>_<epoch ms>.<extension>``"""
    return f"{SYNTHESIZED_ASSET_MARKER}{step_id[:8]}_{int(time.time() * 1000)}.{extension}"


class SpeechSynthesizer:
    """
    Generates step audio for flows.

    Args:
        client: OpenAI client (or anything exposing ``audio.speech.create``)
        config: TTS model, voice and format settings
        store: Persistence collaborator for asset files and the updated flow
        cache: Synthesis result cache (1h TTL if None)
    """

    def __init__(self, client: Any, config: Config, store: FlowStore, cache: Optional[TTLCache[SynthesisResult]] = None):
        self.client = client
        self.config = config
        self.store = store
        self.cache = cache if cache is not None else TTLCache(SYNTHESIS_TTL, name="synthesis cache")

    def cache_key(self, flow: FlowDocument, voice: str) -> str:
        """Key over the flow id, the voice and the texts of the steps still lacking audio."""
        payload = {
            "flow_id": flow.id,
            "steps": [step.description for step in flow.ordered_steps() if step.description.strip() and self._needs_audio(step, False)],
            "voice": voice,
        }
        return derive_cache_key("tts", payload)

    def _files_exist(self, flow_id: str, result: SynthesisResult) -> bool:
        for audio in result.audio_files:
            if not self.store.exists(self.store.get_absolute_file_path(flow_id, audio.file_path)):
                return False
        return True

    def synthesize_flow(self, flow: FlowDocument, voice: Optional[str] = None, force_regenerate: bool = False) -> SynthesisResult:
        """
        Generate audio for every step with text and no audio yet.

        Args:
            flow: Flow whose steps get audio; updated in place and saved
            voice: Voice name (configured default if None)
            force_regenerate: Replace existing synthesized audio as well; steps
                              with user-supplied audio are never touched

        Returns:
            SynthesisResult with processed vs. needing counts

        Raises:
            AIServiceError: If not a single step could be synthesized
        """
        voice = voice or self.config.tts_voice
        key = self.cache_key(flow, voice)

        if not force_regenerate:
            cached = self.cache.get(key)
            if cached is not None:
                if self._files_exist(flow.id, cached):
                    logger.info(f"Synthesis cache hit for flow {flow.id}")
                    self._attach(flow, cached.audio_files)
                    return cached
                logger.info(f"Cached audio for flow {flow.id} is missing on disk, regenerating")
                self.cache.invalidate(key)

        needing = [step for step in flow.ordered_steps() if step.description.strip() and self._needs_audio(step, force_regenerate)]
        if not needing:
            return SynthesisResult(message="All steps already have audio or no text content")

        if force_regenerate:
            for step in needing:
                self._remove_synthesized_audio(flow, step)

        logger.info(f"Processing {len(needing)} steps for speech synthesis")
        produced: List[SynthesizedAudio] = []
        errors: List[AIServiceError] = []
        batch_count = (len(needing) + BATCH_SIZE - 1) // BATCH_SIZE
        for index in range(0, len(needing), BATCH_SIZE):
            batch = needing[index : index + BATCH_SIZE]
            reporter.sub_step("Synthesizing audio", index // BATCH_SIZE + 1, batch_count)
            with ThreadPoolExecutor(max_workers=BATCH_SIZE) as pool:
                futures = [pool.submit(self._synthesize_step, flow.id, step, voice) for step in batch]
                for future in futures:
                    audio, error = future.result()
                    if audio is not None:
                        produced.append(audio)
                    elif error is not None:
                        errors.append(error)
            logger.debug(f"Completed batch {index // BATCH_SIZE + 1} of {batch_count}")

        if not produced:
            first = errors[0] if errors else None
            raise AIServiceError(
                first.kind if first else ErrorKind.UNKNOWN,
                f"Failed to generate audio for any steps{': ' + first.message if first else ''}",
                first.details if first else None,
            )

        self._attach(flow, produced)

        result = SynthesisResult(
            message=f"Successfully generated audio for {len(produced)} steps",
            processed_steps=len(produced),
            total_steps_needing_audio=len(needing),
            audio_files=produced,
        )
        self.cache.set(key, result)
        return result

    def _attach(self, flow: FlowDocument, audio_files: List[SynthesizedAudio]) -> None:
        """Attach generated files to steps that have no audio yet and save the flow."""
        attached = 0
        for audio in audio_files:
            step = flow.find_step(audio.step_id)
            if step is not None and (step.audio_asset is None or step.audio_asset.is_synthesized):
                flow.update_step(audio.step_id, audio_asset=AudioAsset(path=audio.file_path, display_name=audio.file_name))
                attached += 1
        if attached:
            self.store.save(flow)

    def _needs_audio(self, step: Step, force_regenerate: bool) -> bool:
        if step.audio_asset is None:
            return True
        return force_regenerate and step.audio_asset.is_synthesized

    def _remove_synthesized_audio(self, flow: FlowDocument, step: Step) -> None:
        asset = step.audio_asset
        if asset is None or not asset.is_synthesized:
            return
        try:
            self.store.delete_asset(flow.id, asset.path)
        except StoreError as e:
            logger.warning(f"Failed to delete audio {asset.path} before regeneration: {e}")
            return
        step.audio_asset = None

    def _synthesize_step(self, flow_id: str, step: Step, voice: str):
        """Returns (audio, None) on success or (None, error); never raises."""
        try:
            response = self.client.audio.speech.create(
                model=self.config.tts_model,
                voice=voice,
                input=step.description,
                response_format=self.config.tts_format,
            )
            file_name = synthesized_file_name(step.id, self.config.tts_format)
            file_path = self.store.write_asset(flow_id, file_name, response.content)
        except StoreError as e:
            logger.warning(f"Could not store audio for step {step.id}: {e}")
            return None, AIServiceError(ErrorKind.FILE_SYSTEM, "Error saving audio files. Please check disk space and permissions.", str(e))
        except Exception as e:
            error = classify_exception(e, SPEECH_SERVICE)
            logger.warning(f"Speech synthesis failed for step {step.id}: {error.message}")
            return None, error
        logger.debug(f"Generated audio for step {step.id}: {file_name}")
        return SynthesizedAudio(step_id=step.id, file_name=file_name, file_path=file_path), None
