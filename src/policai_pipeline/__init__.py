"""Policai pipeline - discovers, verifies and applies Australian AI policy findings.

The pipeline crawls a fixed registry of government sources, classifies each page
with a language model, verifies the resulting findings with deterministic rules,
pauses for human approval and finally writes approved findings into the policy
dataset.

Components:
- pipeline: research, verification and implementation stages plus the run state machine
- retrieval: page fetching, link discovery, text extraction, rate limiting
- llm: OpenAI client and the content classifier
- store: JSON document store for runs, findings, verifications and policies
- main_api: admin HTTP endpoint
- main_pipeline: command line runner
"""
