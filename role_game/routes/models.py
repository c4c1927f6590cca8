"""Pydantic request models for API endpoints."""

from pydantic import BaseModel


class ChatBody(BaseModel):
    message: str


class SelectModelBody(BaseModel):
    model: str


class UpdateGame(BaseModel):
    system_prompt: str | None = None


class OptimizeBody(BaseModel):
    keep: int | None = None


class CreateJournalEntry(BaseModel):
    content: str
    title: str = "Player Note"


class UpdateJournalEntry(BaseModel):
    title: str | None = None
    content: str | None = None
    ai_summary: str | None = None
