"""OpenAI-compatible transport used to reach the search oracle."""
