"""
Application distribution backend.

This package provides a FastAPI service that registers mobile app projects,
stores native binaries (APK/IPA) as versioned releases and serves
over-the-air JavaScript bundle updates to polling clients.
"""
