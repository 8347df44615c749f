"""
Model-based field extraction through an OpenAI-compatible chat endpoint.
"""
import json
import logging
from typing import Any, Dict, List, Optional

import openai
from openai import AsyncOpenAI

from ..errors import ExtractionError
from ..models.schema import FieldSchema
from .base import FieldExtractor, normalize_extraction

logger = logging.getLogger(__name__)


SYSTEM_PROMPT_TEMPLATE = """你是一个技术支持信息收集助手。你的唯一任务是从用户的【当前这一条消息】中提取以下信息。
You collect support information. Extract the fields below from the user's CURRENT message only.

需要收集的信息 / Fields:
{field_lines}

严格规则 / Rules:
- 只从用户当前这一条消息中提取新信息 (only use the current message)
- 如果这条消息没有明确提到某项信息，该字段必须返回空字符串 "" (absent means "")
- 不要从"当前已收集信息"中复制任何内容到结果中 (never copy already-collected values)
- 不要把问候语当作任何信息，不要猜测或编造信息 (no greetings, no guessing)
- 如果用户纠正了之前的信息，返回新值 (corrections return the new value)
- 不要返回"未知"、"无"、"N/A"之类的占位词 (no placeholder words)

返回严格的 JSON 格式，不要有其他任何文字 / Reply with JSON only:
{json_template}"""


def parse_extraction_content(content: str) -> Dict[str, Any]:
    """
    Pull the JSON object out of a model reply.

    Tolerates fenced code blocks and prose around the object. Returns an
    empty dict when no valid JSON object is found.
    """
    content = (content or "").strip()

    if content.startswith("```"):
        lines = content.split("\n")
        if len(lines) > 2:
            content = "\n".join(lines[1:-1])

    start = content.find("{")
    end = content.rfind("}")
    if start >= 0 and end > start:
        content = content[start:end + 1]

    try:
        parsed = json.loads(content.strip())
    except json.JSONDecodeError as e:
        logger.warning(f"Extraction reply is not valid JSON: {e} (content: {content[:200]})")
        return {}

    if not isinstance(parsed, dict):
        logger.warning(f"Extraction reply is not a JSON object: {type(parsed).__name__}")
        return {}

    return parsed


class LLMFieldExtractor(FieldExtractor):
    """
    Field extractor backed by a chat completion model.

    Transport and API failures raise ExtractionError; an unparseable reply
    yields an all-empty result.
    """

    def __init__(
        self,
        schema: FieldSchema,
        api_key: str,
        base_url: Optional[str],
        model: str,
        temperature: float = 0.1,
        timeout: float = 30.0,
        client: Optional[AsyncOpenAI] = None
    ):
        super().__init__(schema)

        if not api_key:
            raise ValueError("API key is required")
        if not model:
            raise ValueError("model is required")

        self.model = model
        self.temperature = temperature
        self.client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )
        self.system_prompt = self._build_system_prompt()

        logger.info(f"LLMFieldExtractor initialized (model={model}, fields={len(schema)})")

    def _build_system_prompt(self) -> str:
        field_lines = "\n".join(
            f"{i}. {spec.key} - {spec.label}" + ("" if spec.required else " (optional)")
            for i, spec in enumerate(self.schema, start=1)
        )
        json_template = json.dumps({key: "" for key in self.schema.keys}, ensure_ascii=False)
        return SYSTEM_PROMPT_TEMPLATE.format(
            field_lines=field_lines,
            json_template=json_template,
        )

    def _build_user_prompt(self, text: str, collected: Dict[str, str]) -> str:
        lines: List[str] = ["当前已收集的信息（仅供参考，不要复制到结果中）/ Already collected (reference only):"]
        for spec in self.schema:
            value = collected.get(spec.key)
            if value:
                lines.append(f"- {spec.heading}: {value}（已收集）")
            else:
                lines.append(f"- {spec.heading}: 未收集")

        lines.append("")
        lines.append(f"用户当前消息 / Current message: {text}")
        lines.append("")
        lines.append("请从这条消息中提取信息，返回 JSON。")
        return "\n".join(lines)

    async def extract(self, text: str, collected: Dict[str, str]) -> Dict[str, str]:
        messages = [
            {"role": "system", "content": self.system_prompt},
            {"role": "user", "content": self._build_user_prompt(text, collected)},
        ]

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
            )
        except openai.OpenAIError as e:
            raise ExtractionError(f"Extraction call failed: {e}") from e

        if not response.choices:
            raise ExtractionError("Extraction call returned no choices")

        content = response.choices[0].message.content or ""
        logger.debug(f"Extraction raw reply: {content[:500]}")

        result = normalize_extraction(parse_extraction_content(content), self.schema)

        logger.debug(
            f"Extracted fields: {[k for k, v in result.items() if v]}"
        )
        return result

    async def close(self) -> None:
        await self.client.close()


__all__ = ['LLMFieldExtractor', 'parse_extraction_content']
