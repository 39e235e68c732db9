"""Chain engine: brace expansion, operator parsing and step orchestration.

A raw chain such as ``"gh pr list | slack send general && gcal next"`` is
expanded (``{1..3}``, ``{a,b}``), split into steps on ``&&``, ``||`` and ``|``,
and driven step by step through the subprocess backend.  Every step re-enters
the tool's own entry point, so the engine never interprets the arguments of
individual services.

Parallel runs are a plain fan-out: conditions and pipes are ignored and every
step runs to completion regardless of its siblings.
"""
