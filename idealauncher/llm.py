from abc import ABC
import json
import logging
import re
from typing import Any, AsyncIterator, Dict, List, Optional, Type

import google.generativeai as genai
from pydantic import BaseModel, ValidationError
from tenacity import retry, retry_if_not_exception_type, stop_after_attempt, wait_exponential

from idealauncher import fallbacks
from idealauncher.config import (
    CHAT_HISTORY_LIMIT,
    CHAT_TEMP,
    DEFAULT_MODEL,
    DOCUMENT_CONTEXT_CHARS,
    EXPORT_DOCUMENT_CHARS,
    EXPORT_TEMP,
    MAX_MUST_FEATURES,
    MAX_MVP_FEATURES,
    MAX_TECH_RECOMMENDATIONS,
    MIN_MUST_FEATURES,
    NAMING_TEMP,
    PLANNING_TEMP,
    RESEARCH_DOCUMENT_CHARS,
    RESEARCH_TEMP,
    get_gemini_api_key,
)
from idealauncher.errors import ConfigurationError, UpstreamError
from idealauncher.models import (
    Competitor,
    FeatureSpec,
    MonetizationModel,
    NameSuggestion,
    TechRecommendation,
)
from idealauncher.prompts.loader import get_prompts

logger = logging.getLogger(__name__)

JSON_ARRAY_RE = re.compile(r"\[[\s\S]*\]")
JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


class LLMWrapper(ABC):
    """Base class for LLM interactions"""
    MAX_TOKENS = 8192

    def __init__(self,
                 provider: str = "google_generative_ai",
                 model_name: str = DEFAULT_MODEL,
                 temperature: float = 0.7,
                 agent_name: str = ""):
        self.provider = provider
        self.model_name = model_name
        self.temperature = temperature
        self.total_token_count = 0
        self.input_token_count = 0
        self.output_token_count = 0
        self.agent_name = agent_name
        logger.debug(f"Initializing {agent_name or 'LLM'} with temperature: {temperature}")
        self._setup_provider()

    def _setup_provider(self):
        if self.provider == "google_generative_ai":
            api_key = get_gemini_api_key()
            if not api_key:
                raise ConfigurationError("GEMINI_API_KEY is not configured")
            genai.configure(api_key=api_key)
        else:
            raise ConfigurationError(f"Unsupported LLM provider: {self.provider}")

    def _get_generation_config(self,
                               temperature: Optional[float],
                               response_schema: Optional[Type[BaseModel]] = None) -> Dict[str, Any]:
        actual_temp = temperature if temperature is not None else self.temperature
        config = {
            "temperature": actual_temp,
            "top_p": 0.95,
            "top_k": 40,
            "max_output_tokens": self.MAX_TOKENS,
        }
        if response_schema:
            config["response_schema"] = response_schema
            config["response_mime_type"] = "application/json"
        logger.debug(f"{self.agent_name} generation config: {config}")
        return config

    def _model(self, config: Dict[str, Any], system_instruction: Optional[str] = None):
        return genai.GenerativeModel(
            model_name=self.model_name,
            generation_config=config,
            system_instruction=system_instruction,
        )

    def _track_usage(self, response) -> None:
        usage = getattr(response, "usage_metadata", None)
        if usage is None:
            return
        self.total_token_count += getattr(usage, "total_token_count", 0) or 0
        self.input_token_count += getattr(usage, "prompt_token_count", 0) or 0
        self.output_token_count += getattr(usage, "candidates_token_count", 0) or 0
        logger.debug(f"Total tokens {self.agent_name}: {self.total_token_count} "
                     f"(Input: {self.input_token_count}, Output: {self.output_token_count})")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_not_exception_type(ConfigurationError),
        reraise=True
    )
    async def generate_text(self,
                            prompt: str,
                            temperature: Optional[float] = None,
                            response_schema: Type[BaseModel] = None) -> str:
        """One-shot generation with retry logic built in"""
        config = self._get_generation_config(temperature, response_schema)
        response = await self._model(config).generate_content_async(prompt)
        self._track_usage(response)
        return response.text if response.text else "No response."

    async def stream_text(self,
                          messages: List[Dict[str, str]],
                          system_instruction: Optional[str] = None,
                          temperature: Optional[float] = None) -> AsyncIterator[str]:
        """Yield reply text chunks for a role/content conversation."""
        config = self._get_generation_config(temperature)
        contents = [
            {"role": "model" if m["role"] == "assistant" else "user", "parts": [m["content"]]}
            for m in messages
        ]
        response = await self._model(config, system_instruction).generate_content_async(
            contents, stream=True
        )
        async for chunk in response:
            text = _chunk_text(chunk)
            if text:
                yield text
        self._track_usage(response)


def _chunk_text(chunk) -> str:
    # Blocked or empty candidates have no text parts
    try:
        return chunk.text or ""
    except ValueError:
        return ""


def extract_json_array(text: str) -> List[Any]:
    """
    Pull the first JSON array out of a model reply.

    A lone JSON object is treated as a one-element array. Raises ValueError
    when nothing parseable is found.
    """
    text = (text or "").strip()
    match = JSON_ARRAY_RE.search(text)
    if match:
        raw = match.group(0)
    else:
        match = JSON_OBJECT_RE.search(text)
        if not match:
            raise ValueError("No valid JSON found in AI response")
        raw = f"[{match.group(0)}]"

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"Malformed JSON in AI response: {e}")
    if not isinstance(data, list):
        raise ValueError("AI response JSON is not an array")
    return data


def _clip(text: Optional[str], limit: int) -> str:
    return (text or "")[:limit]


def format_chat(messages: List[Dict[str, Any]], per_message: int = 500, total: int = 800) -> str:
    return _clip("\n".join(f"{m.get('role')}: {_clip(m.get('content'), per_message)}" for m in messages), total)


def format_findings(findings: List[Dict[str, Any]], per_item: int = 200, total: int = 600) -> str:
    return _clip("\n".join(f"- {f.get('title')}: {_clip(f.get('content'), per_item)}" for f in findings), total)


def format_features(features: List[Dict[str, Any]], per_item: int = 200, total: Optional[int] = None) -> str:
    text = "\n".join(
        f"- {f.get('title')}: {_clip(f.get('description'), per_item) or 'No description'}" for f in features
    )
    return _clip(text, total) if total else text


class ChatAssistant(LLMWrapper):
    """Streams replies in the idea's chat"""
    agent_name = "ChatAssistant"

    def __init__(self, **kwargs):
        kwargs.setdefault("temperature", CHAT_TEMP)
        super().__init__(agent_name=self.agent_name, **kwargs)

    def build_system_prompt(self, idea: Dict[str, Any]) -> str:
        one_liner = idea.get("oneLiner")
        return get_prompts("chat").render(
            "system",
            title=idea.get("title", ""),
            tagline=f' with the tagline: "{one_liner}"' if one_liner else "",
            document=idea.get("documentMd") or "No content yet.",
        )

    async def stream_reply(self, idea: Dict[str, Any], messages: List[Dict[str, str]]) -> AsyncIterator[str]:
        history = messages[-CHAT_HISTORY_LIMIT:]
        async for chunk in self.stream_text(history, system_instruction=self.build_system_prompt(idea)):
            yield chunk


class Researcher(LLMWrapper):
    """Competitor, monetization and naming research"""
    agent_name = "Researcher"

    SCHEMAS = {
        "competitors": (Competitor, fallbacks.COMPETITOR_ERROR),
        "monetization": (MonetizationModel, fallbacks.MONETIZATION_ERROR),
        "naming": (NameSuggestion, fallbacks.NAMING_ERROR),
    }

    def __init__(self, **kwargs):
        kwargs.setdefault("temperature", RESEARCH_TEMP)
        super().__init__(agent_name=self.agent_name, **kwargs)

    async def research(self, idea: Dict[str, Any], research_type: str) -> List[Dict[str, Any]]:
        if research_type not in self.SCHEMAS:
            raise ValueError(f"Invalid research type: {research_type}")
        schema, fallback = self.SCHEMAS[research_type]

        prompt = get_prompts("research").render(
            research_type,
            title=idea.get("title", ""),
            one_liner=idea.get("oneLiner") or "No description provided",
            document=_clip(idea.get("documentMd"), RESEARCH_DOCUMENT_CHARS),
        )
        temperature = NAMING_TEMP if research_type == "naming" else None
        try:
            text = await self.generate_text(prompt, temperature=temperature)
        except ConfigurationError:
            raise
        except Exception as e:
            raise UpstreamError(f"Research generation failed: {e}")

        try:
            items = extract_json_array(text)
        except ValueError as e:
            logger.warning(f"Could not parse {research_type} research: {e}")
            return [dict(item) for item in fallback]

        results = []
        for item in items:
            try:
                results.append(schema(**item).dict())
            except (TypeError, ValidationError) as e:
                logger.warning(f"Skipping invalid {research_type} item: {e}")
        if not results:
            return [dict(item) for item in fallback]
        return results


class MVPPlanner(LLMWrapper):
    """MoSCoW feature lists for an MVP"""
    agent_name = "MVPPlanner"

    def __init__(self, **kwargs):
        kwargs.setdefault("temperature", PLANNING_TEMP)
        super().__init__(agent_name=self.agent_name, **kwargs)

    def parse_features(self, text: str) -> List[Dict[str, Any]]:
        """Validated features; raises ValueError when the list is unusable."""
        items = extract_json_array(text)
        try:
            features = [FeatureSpec(**item).dict() for item in items][:MAX_MVP_FEATURES]
        except (TypeError, ValidationError) as e:
            raise ValueError(f"Invalid feature in AI response: {e}")

        must_count = sum(1 for f in features if f["priority"] == "MUST")
        if must_count < MIN_MUST_FEATURES:
            raise ValueError(f"Need at least {MIN_MUST_FEATURES} MUST features for a viable MVP")
        if must_count > MAX_MUST_FEATURES:
            raise ValueError("Too many MUST features - MVP should be focused")
        return features

    async def plan(self, idea: Dict[str, Any], recent_chat: List[Dict[str, Any]],
                   competitors: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        prompt = get_prompts("planning").render(
            "mvp",
            title=idea.get("title", ""),
            one_liner=idea.get("oneLiner") or "Not provided",
            document=_clip(idea.get("documentMd"), DOCUMENT_CONTEXT_CHARS) or "No document content yet",
            recent_chat=format_chat(recent_chat[:5]),
            competitors=format_findings(competitors),
        )
        try:
            return self.parse_features(await self.generate_text(prompt))
        except Exception as e:
            logger.error(f"Error generating MVP features, using fallback: {e}")
            return fallbacks.fallback_features()


class TechAdvisor(LLMWrapper):
    """Tech stack recommendations"""
    agent_name = "TechAdvisor"

    def __init__(self, **kwargs):
        kwargs.setdefault("temperature", PLANNING_TEMP)
        super().__init__(agent_name=self.agent_name, **kwargs)

    def parse_recommendations(self, text: str) -> List[Dict[str, Any]]:
        items = extract_json_array(text)
        try:
            recommendations = [TechRecommendation(**item).dict() for item in items]
        except (TypeError, ValidationError) as e:
            raise ValueError(f"Invalid recommendation in AI response: {e}")
        if not recommendations:
            raise ValueError("No recommendations in AI response")
        return recommendations[:MAX_TECH_RECOMMENDATIONS]

    async def recommend(self, idea: Dict[str, Any], recent_chat: List[Dict[str, Any]],
                        must_features: List[Dict[str, Any]],
                        competitors: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        prompt = get_prompts("planning").render(
            "tech",
            title=idea.get("title", ""),
            one_liner=idea.get("oneLiner") or "Not provided",
            document=_clip(idea.get("documentMd"), DOCUMENT_CONTEXT_CHARS) or "No document content yet",
            recent_chat=format_chat(recent_chat[:5]),
            must_features=format_features(must_features, total=600),
            competitors=format_findings(competitors),
        )
        try:
            return self.parse_recommendations(await self.generate_text(prompt))
        except Exception as e:
            logger.error(f"Error generating tech stack recommendations, using fallback: {e}")
            return fallbacks.fallback_tech_stack()


class SpecWriter(LLMWrapper):
    """Developer-ready specification export"""
    agent_name = "SpecWriter"

    def __init__(self, **kwargs):
        kwargs.setdefault("temperature", EXPORT_TEMP)
        super().__init__(agent_name=self.agent_name, **kwargs)

    def build_prompt(self, idea: Dict[str, Any], features: List[Dict[str, Any]],
                     score: Optional[Dict[str, Any]], research: List[Dict[str, Any]],
                     recent_chat: List[Dict[str, Any]]) -> str:
        by_priority = {p: [f for f in features if f.get("priority") == p] for p in ("MUST", "SHOULD", "COULD")}
        competitors = [r for r in research if r.get("type") == "competitor"][:3]
        tech = [r for r in research if r.get("type") == "tech_stack"][:1]

        if score:
            if score.get("framework") == "RICE":
                factors = (f"Reach: {score.get('reach')}, Impact: {score.get('impact')}, "
                           f"Confidence: {score.get('confidence')}, Effort: {score.get('effort')}")
            else:
                factors = (f"Impact: {score.get('impact')}, Confidence: {score.get('confidence')}, "
                           f"Ease: {score.get('ease')}")
            scoring = (f"{score.get('framework')} Score: {score.get('total')} ({factors})\n"
                       f"Notes: {score.get('notes') or 'No notes'}")
        else:
            scoring = "No scoring data available"

        return get_prompts("export").render(
            "spec",
            title=idea.get("title", ""),
            one_liner=idea.get("oneLiner") or "Not provided",
            document=_clip(idea.get("documentMd"), EXPORT_DOCUMENT_CHARS) or "No document content yet",
            must_features=format_features(by_priority["MUST"]),
            should_features=format_features(by_priority["SHOULD"]),
            could_features=format_features(by_priority["COULD"]),
            scoring=scoring,
            competitors="\n".join(f"- {c.get('title')}: {_clip(c.get('content'), 150)}" for c in competitors),
            tech_stack="\n".join(_clip(t.get("content"), 300) for t in tech),
            recent_chat=format_chat(recent_chat[:10], per_message=300),
        )

    async def write(self, idea: Dict[str, Any], features: List[Dict[str, Any]],
                    score: Optional[Dict[str, Any]], research: List[Dict[str, Any]],
                    recent_chat: List[Dict[str, Any]]) -> str:
        try:
            prompt = self.build_prompt(idea, features, score, research, recent_chat)
            return (await self.generate_text(prompt)).strip()
        except Exception as e:
            logger.error(f"Error generating spec, using template: {e}")
            return fallbacks.fallback_spec(idea.get("title", ""), idea.get("oneLiner"), features)
