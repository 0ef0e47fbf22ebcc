"""
Core: ports, events, errors, persistence mirroring and the chat turn.
"""
