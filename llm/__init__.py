"""
LLM Orchestration Module for the RadioCare chatbot.

This module handles:
- LLM provider abstraction (OpenAI, Bedrock) behind a bounded gateway
- Prompt templates for context selection and reply generation
- Conversation, benefit-account and alert stores
- The per-turn response orchestrator

Submodules are imported directly (``from llm.orchestrator import ...``).
"""
