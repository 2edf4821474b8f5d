"""
App Module - Application Wiring
===============================

Modules:
    bootstrap: Builds settings, preferences, transport and controller
"""
