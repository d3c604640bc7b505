from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, validator

from idealauncher.config import TITLE_MAX_LENGTH

Phase = Literal["ideation", "validation", "scoring", "mvp", "export"]
Role = Literal["user", "assistant"]
ResearchType = Literal["competitors", "monetization", "naming"]
FindingType = Literal["competitor", "monetization", "naming", "tech_stack"]
Priority = Literal["MUST", "SHOULD", "COULD"]
Estimate = Literal["S", "M", "L"]
Framework = Literal["ICE", "RICE"]
Difficulty = Literal["Beginner", "Intermediate", "Advanced"]
ChangeType = Literal["manual", "ai_insert", "auto_save"]
SortField = Literal["title", "iceScore", "riceScore", "createdAt", "updatedAt"]
SortOrder = Literal["asc", "desc"]

# Maps research request types onto stored finding types
FINDING_TYPE_FOR_RESEARCH = {
    "competitors": "competitor",
    "monetization": "monetization",
    "naming": "naming",
}


# --- Ideas ---

class IdeaCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH)
    oneLiner: Optional[str] = None

    @validator("title")
    def title_not_blank(cls, v):
        if not v.strip():
            raise ValueError("Title is required")
        return v.strip()


class IdeaUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=TITLE_MAX_LENGTH)
    oneLiner: Optional[str] = None
    documentMd: Optional[str] = None
    phase: Optional[Phase] = None
    isArchived: Optional[bool] = None


class TitleCheck(BaseModel):
    title: str = Field(..., min_length=1)
    excludeId: Optional[str] = None


# --- Chat ---

class ChatTurn(BaseModel):
    role: Role
    content: str = Field(..., min_length=1)


class ChatRequest(BaseModel):
    messages: List[ChatTurn] = Field(..., min_items=1)

    @validator("messages")
    def last_message_from_user(cls, v):
        if v and v[-1].role != "user":
            raise ValueError("Last message must be from user")
        return v


# --- Research ---

class ResearchRequest(BaseModel):
    type: ResearchType


class FindingUpdate(BaseModel):
    isInserted: bool


class Competitor(BaseModel):
    name: str
    description: str = ""
    url: Optional[str] = None
    features: List[str] = Field(default_factory=list)
    differentiation: str = ""


class MonetizationModel(BaseModel):
    model: str
    description: str = ""
    examples: List[str] = Field(default_factory=list)
    pricing: str = ""
    pros: List[str] = Field(default_factory=list)
    cons: List[str] = Field(default_factory=list)


class NameSuggestion(BaseModel):
    name: str
    explanation: str = ""
    style: str = "Unknown"


# --- MVP / tech ---

class GenerateRequest(BaseModel):
    action: Literal["generate"]


class FeatureSpec(BaseModel):
    title: str
    description: Optional[str] = None
    priority: Priority
    estimate: Optional[Estimate] = None
    dependencies: List[str] = Field(default_factory=list)


class FeatureEstimateUpdate(BaseModel):
    featureId: str
    estimate: Estimate


class TechRecommendation(BaseModel):
    category: str
    technology: str
    description: str
    rationale: str
    implementationTips: List[str]
    alternatives: List[str] = Field(default_factory=list)
    difficulty: Difficulty


# --- Scores ---

class ScoreRequest(BaseModel):
    framework: Framework
    impact: float = Field(..., ge=0, le=10)
    confidence: float = Field(..., ge=0, le=10)
    ease: Optional[float] = Field(None, ge=0, le=10)
    reach: Optional[float] = Field(None, ge=0, le=10)
    effort: Optional[float] = Field(None, ge=1, le=10)
    # Client-computed total; the server recomputes it
    total: Optional[float] = None
    notes: Optional[str] = None


# --- Exports / versions / documents ---

class ExportRequest(BaseModel):
    action: Literal["generate"]
    format: Literal["kiro"] = "kiro"


class VersionCreate(BaseModel):
    content: str
    changeType: ChangeType = "manual"
    summary: Optional[str] = None


class InsertRequest(BaseModel):
    sectionId: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    source: Optional[str] = None
    findingId: Optional[str] = None


class DomainCheckRequest(BaseModel):
    domains: List[str] = Field(..., min_items=1, max_items=20)


def finding_view(finding: Dict[str, Any]) -> Dict[str, Any]:
    """Shape a stored research finding for the client, by type."""
    metadata = finding.get("metadata") or {}
    kind = finding.get("type")
    base = {"id": finding.get("id"), "isInserted": finding.get("isInserted", False)}
    if kind == "competitor":
        return {
            **base,
            "name": finding.get("title"),
            "description": finding.get("content"),
            "url": finding.get("url"),
            "features": metadata.get("features", []),
            "differentiation": metadata.get("differentiation", ""),
        }
    if kind == "monetization":
        return {
            **base,
            "model": finding.get("title"),
            "description": finding.get("content"),
            "examples": metadata.get("examples", []),
            "pricing": metadata.get("pricing", ""),
            "pros": metadata.get("pros", []),
            "cons": metadata.get("cons", []),
        }
    if kind == "naming":
        return {
            **base,
            "name": finding.get("title"),
            "explanation": finding.get("content"),
            "style": metadata.get("style", "Unknown"),
        }
    return {**base, **finding}
