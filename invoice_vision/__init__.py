"""
Invoice Vision Service

A serverless endpoint that extracts structured invoice data from images and
PDFs using a generative-AI vision model (Gemini or OpenAI).
"""

__version__ = "0.2.0"
