"""OpenAPI to FastAPI server skeleton generator package."""

from __future__ import annotations

from .cli import main
from .generator import GenerationRun, build_generation_model, run_generation

__all__ = ["GenerationRun", "build_generation_model", "main", "run_generation"]
