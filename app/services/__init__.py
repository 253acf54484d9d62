"""
CigroTrack
Service layer — one module per domain. Services validate, enforce limits
and membership, and own the transaction boundary (db.session.commit()).
"""
