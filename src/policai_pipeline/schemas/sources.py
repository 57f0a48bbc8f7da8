"""Pydantic schema for the source registry."""

from pydantic import BaseModel


class Source(BaseModel):
    id: str
    name: str
    url: str
