"""QML-facing application facade and state objects.

- Single command entry: backend.dispatch(cmd, payload)
- UI binding via state QObjects (backend.operation / backend.prompts)
- Python→QML notifications via backend.event
"""
