"""Public interface for the Dockerfile adapter."""

from __future__ import annotations

from .extractor import DockerfileExtractor, Instruction, iter_instructions, parse_arguments

__all__ = ["DockerfileExtractor", "Instruction", "iter_instructions", "parse_arguments"]
