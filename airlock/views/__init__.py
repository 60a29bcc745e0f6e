"""
Airlock - Views Package
=======================

Persistent Discord UI components.
"""
