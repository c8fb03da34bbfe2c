# backend/services/groq_service.py
from groq import AsyncGroq
from pydantic import BaseModel, Field
from typing import Dict, Any, List, Optional
import logging
import json
from config.settings import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

SEVERITY_LEVELS = ("info", "warning", "critical")

LOG_SYSTEM_PROMPT = "You are LogWise AI, a log analysis expert. Always return valid JSON."
QUERY_SYSTEM_PROMPT = "You are LogWise AI, a database query optimization expert. Always return valid JSON."


class AIAnalysisError(Exception):
    """Raised when the AI provider gives no usable answer"""


class LogAnalysis(BaseModel):
    summary: str = "No summary available"
    cause: str = "No cause identified"
    severity: str = "info"
    fix: str = "No fix recommendation"
    code_patch: str = ""
    raw: Dict[str, Any] = Field(default_factory=dict)


class OptimizationSuggestion(BaseModel):
    suggestion: str = ""
    reason: str = ""
    impact: str = ""


class IndexSuggestion(BaseModel):
    index: str = ""
    reason: str = ""
    columns: List[str] = Field(default_factory=list)


class QueryOptimization(BaseModel):
    query_type: str = "Unknown"
    language: str = "Unknown"
    is_valid: bool = True
    errors: List[str] = Field(default_factory=list)
    optimized_query: str = ""
    optimization_reason: str = ""
    optimizations: List[OptimizationSuggestion] = Field(default_factory=list)
    index_suggestions: List[IndexSuggestion] = Field(default_factory=list)
    corrected_query: str = ""
    raw: Dict[str, Any] = Field(default_factory=dict)


def _text(value: Any, default: str = "") -> str:
    # Empty values count as missing
    if value is None or value == "":
        return default
    if isinstance(value, str):
        return value
    return json.dumps(value) if isinstance(value, (dict, list)) else str(value)


def _text_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [_text(item) for item in value if item not in (None, "")]


def parse_log_analysis(data: Dict[str, Any]) -> LogAnalysis:
    """Normalize a provider answer into a LogAnalysis record"""
    severity = data.get("severity")
    if severity not in SEVERITY_LEVELS:
        severity = "info"

    return LogAnalysis(
        summary=_text(data.get("summary"), "No summary available"),
        cause=_text(data.get("cause"), "No cause identified"),
        severity=severity,
        fix=_text(data.get("fix"), "No fix recommendation"),
        code_patch=_text(data.get("codePatch")),
        raw=data,
    )


def parse_query_optimization(data: Dict[str, Any]) -> QueryOptimization:
    """Normalize a provider answer into a QueryOptimization record"""
    optimizations = [
        OptimizationSuggestion(
            suggestion=_text(item.get("suggestion")),
            reason=_text(item.get("reason")),
            impact=_text(item.get("impact")),
        )
        for item in data.get("optimizations") or []
        if isinstance(item, dict)
    ]
    index_suggestions = [
        IndexSuggestion(
            index=_text(item.get("index")),
            reason=_text(item.get("reason")),
            columns=_text_list(item.get("columns")),
        )
        for item in data.get("indexSuggestions") or []
        if isinstance(item, dict)
    ]
    is_valid = data.get("isValid")

    return QueryOptimization(
        query_type=_text(data.get("queryType"), "Unknown"),
        language=_text(data.get("language"), "Unknown"),
        is_valid=is_valid if isinstance(is_valid, bool) else True,
        errors=_text_list(data.get("errors")),
        optimized_query=_text(data.get("optimizedQuery")),
        optimization_reason=_text(data.get("optimizationReason")),
        optimizations=optimizations,
        index_suggestions=index_suggestions,
        corrected_query=_text(data.get("correctedQuery")),
        raw=data,
    )


def _strip_code_fence(content: str) -> str:
    content = content.strip()
    if content.startswith('```'):
        content = content.split('```')[1]
        if content.startswith('json'):
            content = content[4:]
        content = content.strip()
    return content


def build_log_prompt(log_text: str) -> str:
    return f"""You are LogWise AI, an expert log analyzer. Analyze this application log and return a JSON response with the following structure:

{{
  "summary": "Brief summary of the log issue",
  "cause": "Root cause analysis",
  "severity": "info|warning|critical",
  "fix": "Human-readable fix recommendation",
  "codePatch": "Optional code patch suggestion if applicable"
}}

LOG TEXT:
{log_text}

Return ONLY valid JSON, no additional text."""


def build_query_prompt(query: str, function_name: Optional[str] = None) -> str:
    context = f"\nCALLING FUNCTION: {function_name}\n" if function_name else ""
    return f"""You are LogWise AI, an expert in database queries. Detect the query language, validate the query, and suggest optimizations. Return a JSON response with the following structure:

{{
  "queryType": "SQL|MongoDB|...",
  "language": "Dialect, e.g. PostgreSQL, MySQL, MongoDB aggregation",
  "isValid": true,
  "errors": ["Syntax errors, empty if the query is valid"],
  "optimizedQuery": "Rewritten, faster version of the query",
  "optimizationReason": "Why the rewritten query is faster",
  "optimizations": [{{"suggestion": "...", "reason": "...", "impact": "high|medium|low"}}],
  "indexSuggestions": [{{"index": "Index definition", "reason": "...", "columns": ["col"]}}],
  "correctedQuery": "Corrected query when the original has errors, otherwise empty"
}}
{context}
QUERY:
{query}

Return ONLY valid JSON, no additional text."""


class GroqAIService:
    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None, client=None):
        self.model = model or settings.GROQ_MODEL
        if client is not None:
            self.client = client
        elif api_key or settings.GROQ_API_KEY:
            self.client = AsyncGroq(api_key=api_key or settings.GROQ_API_KEY)
        else:
            logger.warning("⚠️ Groq API key not set")
            self.client = None

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    async def _complete_json(self, system_prompt: str, prompt: str) -> Dict[str, Any]:
        """Request a JSON-only completion and parse it"""
        if not self.client:
            raise AIAnalysisError("AI analysis failed: Groq AI not configured")

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": prompt}
                ],
                temperature=settings.GROQ_TEMPERATURE,
                max_tokens=settings.GROQ_MAX_TOKENS,
                response_format={"type": "json_object"},
            )
            content = response.choices[0].message.content if response.choices else None
        except Exception as e:
            logger.error(f"❌ Groq API error: {e}")
            raise AIAnalysisError(f"AI analysis failed: {e}") from e

        if not content:
            raise AIAnalysisError("AI analysis failed: No response from Groq API")

        try:
            data = json.loads(_strip_code_fence(content))
        except ValueError as e:
            logger.error(f"❌ Groq returned invalid JSON: {e}")
            raise AIAnalysisError(f"AI analysis failed: {e}") from e

        if not isinstance(data, dict):
            raise AIAnalysisError("AI analysis failed: response is not a JSON object")
        return data

    async def analyze_log(self, log_text: str) -> LogAnalysis:
        """Classify a log text into summary/cause/severity/fix"""
        data = await self._complete_json(LOG_SYSTEM_PROMPT, build_log_prompt(log_text))
        return parse_log_analysis(data)

    async def optimize_query(self, query: str, function_name: Optional[str] = None) -> QueryOptimization:
        """Validate a database query and suggest optimizations"""
        data = await self._complete_json(QUERY_SYSTEM_PROMPT, build_query_prompt(query, function_name))
        return parse_query_optimization(data)
