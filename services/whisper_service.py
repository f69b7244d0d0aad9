# services/whisper_service.py
"""
Whisper transcription and transcript summarization via the OpenAI API.

Transcription failures are reported inside the returned result instead of
being raised, so a failed transcription still produces a storable journal
item. Summarization is best effort: failures are logged and dropped.
"""

import asyncio
import logging
from typing import Optional

import openai

from models.journal_entry import TranscriptionResult

logger = logging.getLogger(__name__)

SUMMARY_SYSTEM_PROMPT = (
    "You are a concise summarizer that creates brief, clear bullet points in markdown format. "
    "Extract only the key points and insights. Keep it to 2-4 bullet points maximum."
)
EMPTY_SUMMARY = "- No summary generated"


class TranscriptionService:
    """Wraps an OpenAI client for Whisper transcription plus chat summarization"""

    def __init__(
        self,
        client: openai.OpenAI,
        transcribe_model: str = "whisper-1",
        summary_model: str = "gpt-3.5-turbo",
        language: str = "en"
    ):
        self.openai_client = client
        self.transcribe_model = transcribe_model
        self.summary_model = summary_model
        self.language = language

    @classmethod
    def from_api_key(cls, api_key: str, **kwargs) -> "TranscriptionService":
        return cls(openai.OpenAI(api_key=api_key), **kwargs)

    async def _run_blocking(self, func):
        # SDK calls are synchronous; keep the event loop free while they run
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func)

    async def summarize_text(self, text: str) -> str:
        """Summarize a transcript into 2-4 markdown bullet points"""
        response = await self._run_blocking(
            lambda: self.openai_client.chat.completions.create(
                model=self.summary_model,
                messages=[
                    {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": f"Summarize this journal entry in bullet points:\n{text}"
                    }
                ],
                max_tokens=150,
                temperature=0.5
            )
        )

        content: Optional[str] = None
        if response.choices:
            content = response.choices[0].message.content
        return content or EMPTY_SUMMARY

    async def transcribe(self, audio: bytes) -> TranscriptionResult:
        """
        Transcribe WebM audio bytes with Whisper.

        Never raises: on failure the result carries an empty ``text`` and the
        error message. ``duration`` is the byte length of the input, a rough
        proxy rather than the real audio duration.
        """
        # Format: (filename, file_content, content_type)
        file_tuple = ("audio.webm", audio, "audio/webm")

        try:
            response = await self._run_blocking(
                lambda: self.openai_client.audio.transcriptions.create(
                    model=self.transcribe_model,
                    file=file_tuple,
                    language=self.language,
                    response_format="json"
                )
            )
        except Exception as e:
            logger.error(f"Error transcribing audio ({len(audio)} bytes): {e}")
            return TranscriptionResult(
                text="",
                duration=len(audio),
                error=str(e) or "Unknown error occurred during transcription"
            )

        text = (response.text or "").strip()
        logger.info(f"Transcribed {len(audio)} bytes into {len(text)} characters")

        summary = None
        if text:
            try:
                summary = await self.summarize_text(text)
            except Exception as e:
                logger.error(f"Error generating summary: {e}")

        return TranscriptionResult(
            text=text,
            duration=len(audio),
            language=self.language,
            summary=summary
        )
