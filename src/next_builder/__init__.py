"""
NextJS Builder Library

This package contains the generation-validate-repair pipeline for the NextJS builder:
- response_parser: Turns raw LLM task output into a normalized file set
- materializer: Writes generated files to the project directory
- validators / fixers: Structural contract checks and their deterministic repairs
- build_validator: Runs the build and classifies failures against known signatures
- orchestrator: The repair loop tying everything together
"""

__version__ = "1.0.0"
