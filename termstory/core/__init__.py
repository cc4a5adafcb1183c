"""Core rendering primitives (line records and the scrollback view).

Kept free of asyncio and transport concerns so it can be reused by the
renderer, the console presenter, and tests.
"""
