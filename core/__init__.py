"""Core (UI-agnostic) EV dashboard logic.

This package contains:
- dataset transport and CSV parsing (text -> pandas)
- the make filter and filter normalization
- page compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
- the per-session state machine that ties them together
"""
