import re
import base64
import asyncio
import logging
import time
from typing import List, Optional

from openai import AsyncOpenAI
from pydantic import BaseModel, Field, ValidationError

from ..config import WorkerConfig
from ..models import AIAnnotation, FrameFile

logger = logging.getLogger("frame_worker")


DEFAULT_SAMPLE_SIZE = 5

ANALYSIS_PROMPT = """Analyze this video frame and respond with a single JSON object with exactly these fields:
- "quality": overall image quality from 0 to 100
- "isKeyframe": true if this frame is a visually significant key moment, otherwise false
- "description": a short description of the content (one sentence)
- "isBlurry": true if the frame is noticeably blurry, otherwise false

Respond with the JSON object only."""

_OBJECT_RE = re.compile(r"\{.*?\}", re.DOTALL)


class AIJudgment(BaseModel):
    """Structured judgment expected from the vision service"""
    quality: int = Field(description="Image quality 0-100", ge=0, le=100)
    is_keyframe: bool = Field(alias="isKeyframe", description="Whether the frame is a key moment")
    description: str = Field(description="Short description of the frame content")
    is_blurry: bool = Field(alias="isBlurry", description="Whether the frame is blurry")


def fallback_annotation(filename: str) -> AIAnnotation:
    """Neutral annotation used when the service call or parsing fails"""
    return AIAnnotation(
        filename=filename,
        quality=70,
        is_keyframe=False,
        description="unable to analyze",
        is_blurry=False
    )


def parse_judgment(content: Optional[str]) -> Optional[AIJudgment]:
    """
    Parse the service response

    Tries a strict parse of the whole text, then of the first {...} block.
    Returns None when neither validates.
    """
    if not content:
        return None

    try:
        return AIJudgment.model_validate_json(content.strip())
    except ValidationError:
        pass

    match = _OBJECT_RE.search(content)
    if not match:
        return None
    try:
        return AIJudgment.model_validate_json(match.group(0))
    except ValidationError:
        return None


def sample_frames(frames: List[FrameFile], sample_size: int = DEFAULT_SAMPLE_SIZE) -> List[FrameFile]:
    """Pick up to `sample_size` evenly spaced frames (stride = count // sample_size)"""
    count = min(sample_size, len(frames))
    if count <= 0:
        return []
    stride = max(1, len(frames) // sample_size)
    return [frames[i * stride] for i in range(count)]


async def analyze_frame_async(
    frame: FrameFile,
    client: AsyncOpenAI,
    model: str,
    timeout: float,
    semaphore: asyncio.Semaphore
) -> AIAnnotation:
    """Ask the vision model about one frame; any failure yields the fallback"""
    async with semaphore:
        try:
            logger.debug(f"Analyzing frame with vision: {frame.path}")

            with open(frame.path, 'rb') as image_file:
                base64_image = base64.b64encode(image_file.read()).decode('utf-8')

            response = await asyncio.wait_for(
                client.chat.completions.create(
                    model=model,
                    messages=[
                        {
                            "role": "user",
                            "content": [
                                {"type": "text", "text": ANALYSIS_PROMPT},
                                {
                                    "type": "image_url",
                                    "image_url": {"url": f"data:image/png;base64,{base64_image}"}
                                }
                            ]
                        }
                    ],
                    response_format={"type": "json_object"},
                    temperature=0.1
                ),
                timeout=timeout
            )

            judgment = parse_judgment(response.choices[0].message.content)
            if judgment is None:
                logger.warning(f"Unparseable vision response for {frame.filename}, using fallback")
                return fallback_annotation(frame.filename)

            return AIAnnotation(
                filename=frame.filename,
                quality=judgment.quality,
                is_keyframe=judgment.is_keyframe,
                description=judgment.description,
                is_blurry=judgment.is_blurry
            )

        except asyncio.TimeoutError:
            logger.warning(f"Vision analysis timed out after {timeout}s for {frame.filename}, using fallback")
            return fallback_annotation(frame.filename)
        except Exception as e:
            logger.warning(f"Vision analysis failed for {frame.filename}, using fallback: {e}")
            return fallback_annotation(frame.filename)


async def annotate_frames_async(
    frames: List[FrameFile],
    config: WorkerConfig,
    client: Optional[AsyncOpenAI] = None
) -> List[AIAnnotation]:
    """
    Annotate an evenly spaced sample of frames in parallel, preserving sample order

    A client is created from the config for the duration of the call unless
    one is supplied. Without an API key every sampled frame gets the fallback.
    """
    sample = sample_frames(frames, config.AI_SAMPLE_SIZE)
    if not sample:
        return []

    owns_client = client is None
    if owns_client:
        if not config.OPENAI_API_KEY:
            logger.warning("VISION: OPENAI_API_KEY not set, using fallback annotations")
            return [fallback_annotation(frame.filename) for frame in sample]
        # No automatic retries: a failed call falls back for that frame
        client = AsyncOpenAI(
            api_key=config.OPENAI_API_KEY,
            timeout=config.VISION_TIMEOUT_SEC,
            max_retries=0
        )

    start_time = time.time()
    semaphore = asyncio.Semaphore(config.VISION_MAX_CONCURRENT)

    try:
        annotations = await asyncio.gather(*[
            analyze_frame_async(frame, client, config.VISION_MODEL, config.VISION_TIMEOUT_SEC, semaphore)
            for frame in sample
        ])
    finally:
        if owns_client:
            await client.close()

    elapsed = time.time() - start_time
    logger.info(f"VISION: Annotated {len(annotations)} of {len(frames)} frames in {elapsed:.2f}s")
    return list(annotations)


def annotate_frames(
    frames: List[FrameFile],
    config: WorkerConfig,
    client: Optional[AsyncOpenAI] = None
) -> List[AIAnnotation]:
    """Blocking entry point for annotate_frames_async"""
    return asyncio.run(annotate_frames_async(frames, config, client))
