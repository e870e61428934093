"""
Creative canvas relay.

A FastAPI service that forwards hand drawings to Gemini for analysis, image
regeneration and Veo video generation, and files the results per user in
Cloud Storage and a metadata store.
"""
