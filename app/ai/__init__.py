"""
CigroTrack
AI assist module.

Submodules:
    - quota: per-user request quota (10/minute, 100/day) enforced atomically
"""
