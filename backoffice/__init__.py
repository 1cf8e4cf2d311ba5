"""
ZZP Back Office Package

This package contains the automation and retrieval core of the back office
assistant:
- automations: Rule-driven scheduler, action pipeline, and run bookkeeping
- workflows: Named workflow actions exposed to n8n and the automation engine
- rag: Embedding generation, vector storage, indexing, and retrieval
- auth: Workflow context resolution and JWT authentication
- db: Persistence clients (Supabase and in-memory)
- services: External service integrations (OpenAI, messaging webhooks)
- worker: Celery tasks and beat schedule
- api: FastAPI routes for cron triggers, workflows, and automation management
- tests: Test suites
"""
