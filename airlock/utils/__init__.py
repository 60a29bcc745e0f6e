"""
Airlock - Utilities Package
===========================

Error handling and async helpers shared by views, commands and services.
"""
