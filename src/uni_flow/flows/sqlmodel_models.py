"""SQLModel ORM tables for flow storage."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, Text
from sqlmodel import Field, SQLModel


class FlowRecord(SQLModel, table=True):
    __tablename__ = "flows"  # type: ignore[bad-override]

    name: str = Field(primary_key=True)
    commands_json: str = Field(sa_column=Column(Text, nullable=False))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
