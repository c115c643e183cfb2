# chain_bridge/runtime/__init__.py
"""
Envelope construction, signing delegation, broadcast and state queries.
"""
