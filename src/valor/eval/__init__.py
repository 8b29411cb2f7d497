"""Evaluator helper modules for the Valor runtime."""

__all__ = [
    "control",
    "decls",
    "effects",
    "expr",
    "fn",
    "helpers",
]
