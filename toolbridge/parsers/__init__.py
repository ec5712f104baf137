"""Parsers for XML tool calls embedded in model output."""
