"""Text-generation collaborator: protocol, MLX implementation and JSON parsing."""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from .errors import CollaboratorError

logger = logging.getLogger("brand_crawler")

AGENT_SYSTEM_PROMPTS: Dict[str, str] = {
    "brand": (
        "You are a brand strategist. Read website copy and describe the brand's voice. "
        "Respond with a single JSON object and nothing else. Do not wrap it in prose."
    ),
    "doc": (
        "You write short, factual company descriptions for brand guides. "
        "Respond with plain text only: two or three sentences, no headings, no lists."
    ),
}


class TextGenerator(Protocol):
    """Anything that turns a prompt into text.

    ``generate`` may be a plain or an ``async`` method.
    """

    def generate(self, prompt: str, agent_type: str) -> Any:
        ...


class MLXTextGenerator:
    """Thin wrapper around an MLX chat model loaded with ``mlx_lm``."""

    def __init__(self, model_id: str, max_tokens: int) -> None:
        self.model_id = model_id
        self.max_tokens = max_tokens
        self._model: Any = None
        self._tokenizer: Any = None
        self._model_load_seconds: float = 0.0

    def _resolve_load_target(self) -> str:
        override = os.getenv("MODEL_DIR")
        if override:
            override_path = Path(override).expanduser()
            if override_path.exists():
                logger.debug("MODEL_DIR override detected at %s", override_path)
                return str(override_path)
            logger.warning(
                "MODEL_DIR is set to %s but the path does not exist; falling back to %s",
                override_path,
                self.model_id,
            )
        return self.model_id

    def _ensure_model(self) -> None:
        if self._model is not None and self._tokenizer is not None:
            return
        try:
            from mlx_lm import load as load_model
        except ImportError as exc:
            raise CollaboratorError(
                "mlx-lm is not installed; install the 'mlx' extra"
            ) from exc
        load_target = self._resolve_load_target()
        logger.info("Loading model %s", load_target)
        start = time.perf_counter()
        self._model, self._tokenizer = load_model(load_target)
        self._model_load_seconds = time.perf_counter() - start
        logger.debug("Loaded model in %.2fs", self._model_load_seconds)

    def _build_prompt(self, prompt: str, agent_type: str) -> List[int]:
        system_prompt = AGENT_SYSTEM_PROMPTS.get(agent_type, AGENT_SYSTEM_PROMPTS["doc"])
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": prompt},
        ]
        return self._tokenizer.apply_chat_template(
            messages, tokenize=True, add_generation_prompt=True
        )

    def generate(self, prompt: str, agent_type: str) -> str:
        self._ensure_model()
        from mlx_lm import generate as generate_text

        tokens = self._build_prompt(prompt, agent_type)
        logger.debug("Prompt token length: %d (agent %s)", len(tokens), agent_type)
        text = generate_text(
            self._model,
            self._tokenizer,
            prompt=tokens,
            max_tokens=self.max_tokens,
            verbose=False,
        )
        return text.strip()


async def call_generator(generator: TextGenerator, prompt: str, agent_type: str) -> str:
    """Invoke ``generator`` off the event loop; any failure is a CollaboratorError."""
    try:
        if inspect.iscoroutinefunction(generator.generate):
            result = await generator.generate(prompt, agent_type)
        else:
            result = await asyncio.to_thread(generator.generate, prompt, agent_type)
    except CollaboratorError:
        raise
    except Exception as exc:  # pylint: disable=broad-except
        raise CollaboratorError(f"{agent_type} generation failed: {exc}") from exc
    if not isinstance(result, str):
        raise CollaboratorError(f"{agent_type} generation returned {type(result).__name__}")
    return result


def strip_code_fence(text: str) -> str:
    """Remove a surrounding Markdown code fence if the model adds one."""
    stripped = text.strip()
    if not stripped.startswith("```"):
        return stripped

    lines = stripped.splitlines()
    closing_index = None
    for idx in range(len(lines) - 1, 0, -1):
        if lines[idx].strip().startswith("```"):
            closing_index = idx
            break

    if closing_index is None:
        return "\n".join(lines[1:]).strip()
    return "\n".join(lines[1:closing_index]).strip()


def parse_json_response(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """Best-effort JSON object from model output; None when there is none."""
    if not text:
        return None
    body = strip_code_fence(text)
    candidates = [body]
    start, end = body.find("{"), body.rfind("}")
    if 0 <= start < end:
        candidates.append(body[start : end + 1])
    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None
