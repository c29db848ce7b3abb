"""Pydantic models for API request/response validation."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="API health status")
    version: str = Field(description="Application version")


class PriceRequest(BaseModel):
    """Request model for price questions.

    ``query`` is optional here so that a missing question is answered with
    a 400 usage hint instead of a validation error.
    """

    query: Optional[str] = Field(
        default=None,
        description="Natural language price question",
        examples=["갤럭시 S25 256 SK 번호이동 얼마예요?"],
    )


class PriceQueryResponse(BaseModel):
    """Response model for a price question."""

    query: str = Field(description="The question as received")
    scenario: str = Field(description="Detected question scenario")
    response: str = Field(description="Answer text")
    query_breakdown: dict[str, Any] = Field(
        default_factory=dict,
        description="Parsed question fields (brand, model, capacity, telecom, type)",
    )


class KakaoUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None


class KakaoUserRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    utterance: Optional[str] = Field(default=None, description="What the user typed")
    user: Optional[KakaoUser] = None


class KakaoSkillPayload(BaseModel):
    """Skill request sent by Kakao i Open Builder (only the fields we read)."""

    model_config = ConfigDict(extra="ignore")

    userRequest: Optional[KakaoUserRequest] = None

    @property
    def utterance(self) -> Optional[str]:
        if self.userRequest is None or self.userRequest.utterance is None:
            return None
        return self.userRequest.utterance.strip() or None


class SimpleText(BaseModel):
    text: str


class KakaoOutput(BaseModel):
    simpleText: SimpleText


class KakaoTemplate(BaseModel):
    outputs: list[KakaoOutput]


class KakaoSkillResponse(BaseModel):
    """Skill reply envelope with a single simpleText output."""

    version: str = "2.0"
    template: KakaoTemplate

    @classmethod
    def from_text(cls, text: str) -> KakaoSkillResponse:
        return cls(template=KakaoTemplate(outputs=[KakaoOutput(simpleText=SimpleText(text=text))]))
