"""External service integrations: OpenAI, the assistant and outbound messaging."""
